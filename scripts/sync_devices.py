#!/usr/bin/env python3
"""
Knowledge Base Device Sync Utility
Rebuilds the device documents in the knowledge base from the device directory,
e.g. after devices were edited directly in the database.
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_assistant.core import config
from voice_assistant.core.dao import DeviceDirectory
from voice_assistant.core.db import init_db
from voice_assistant.vector.knowledge_base import KnowledgeBase


def main(clear: bool = False) -> int:
    """Sync enabled devices into the knowledge base. Returns the process exit code."""
    for issue in config.validate_config():
        print(f"WARNING: {issue}")

    init_db()

    print(f"Starting device sync ({config.VOICE_MODE} mode, {config.VECTOR_STORE_TYPE} store)...")

    knowledge_base = KnowledgeBase(config.get_vector_store(), config.get_embedding_provider())

    if clear:
        knowledge_base.clear()
        print("✓ Cleared existing knowledge base")

    devices = DeviceDirectory(config.DB_PATH).find_all(enabled_only=True)
    print(f"Found {len(devices)} enabled devices in the directory")

    added = knowledge_base.sync_from_devices(devices)
    if added == 0:
        print("ERROR: No documents were added; check the embedding backend")
        return 1

    print(f"✓ Added {added} documents; knowledge base now holds {knowledge_base.count()}")

    # Quick smoke test: the rule document should be retrievable
    results = knowledge_base.search("turn on the light", k=min(3, knowledge_base.count()))
    print(f"✓ Verification search returned {len(results)} results")

    print("Device sync complete!")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Rebuild device documents in the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s            # Re-index enabled devices
  %(prog)s --clear    # Empty the knowledge base first

Environment variables:
- VOICE_MODE=local|online (selects the embedding backend)
- VECTOR_STORE_TYPE=sqlite|file
        """
    )

    parser.add_argument(
        "--clear", "-c",
        action="store_true",
        help="Remove every document, not just device ones, before syncing"
    )

    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    sys.exit(main(clear=args.clear))
