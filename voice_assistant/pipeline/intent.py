"""
Device-control intents embedded in model replies.

The model signals a device action by adding a marker such as
``[DEVICE_CTL] room=living_room action=on`` to its reply. This module is the
only place that knows the marker grammar: ``parse`` pulls the first directive
out, ``strip`` removes every marker so it is never spoken.
"""

import re
from dataclasses import dataclass
from typing import Optional

DEVICE_CTL_PATTERN = re.compile(r"\[DEVICE_CTL\]\s*room=([^\s]+)\s+action=(on|off)", re.IGNORECASE)
BLANK_LINES_PATTERN = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class ControlIntent:
    room: str
    turn_on: bool


class IntentExtractor:
    """Parses and strips device-control markers. Never raises on odd input."""

    def __init__(self, pattern: re.Pattern = DEVICE_CTL_PATTERN):
        self.pattern = pattern

    def parse(self, reply: Optional[str]) -> Optional[ControlIntent]:
        if not reply or not reply.strip():
            return None
        match = self.pattern.search(reply)
        if not match:
            return None
        return ControlIntent(room=match.group(1).strip(), turn_on=match.group(2).lower() == "on")

    def strip(self, reply: Optional[str]) -> str:
        if not reply:
            return ""
        text = self.pattern.sub("", reply)
        text = BLANK_LINES_PATTERN.sub("\n", text)
        return text.strip()
