"""
Knowledge base used for retrieval-augmented generation.

Combines an embedding provider with a vector store: documents go in as text,
queries come back as ranked matches or as a single context string ready to be
placed in a generation prompt.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .embeddings import IEmbeddingProvider
from .index import IVectorStore
from .types import VectorDocument, SearchResult
from ..core.schema import Device
from ..util.logging import logger

DEVICE_SOURCE = "device"
DEVICE_RULE_SOURCE = "device_rule"


def new_document_id() -> str:
    return uuid.uuid4().hex[:16]


def device_to_text(device: Device) -> str:
    """Plain-language description of a device for the knowledge base."""
    parts = [f"Device {device.device_name} (id {device.device_id}) is in room {device.room}."]
    if device.device_type:
        parts.append(f"Type: {device.device_type}.")
    parts.append(f"Current status: {device.status or 'unknown'}.")
    parts.append(f"It can be turned on or off by voice, e.g. 'turn on the {device.device_name} in {device.room}'.")
    return " ".join(parts)


def device_to_metadata(device: Device) -> Dict[str, Any]:
    metadata = {
        "source": DEVICE_SOURCE,
        "deviceId": device.device_id,
        "room": device.room,
        "deviceName": device.device_name,
    }
    if device.device_type:
        metadata["deviceType"] = device.device_type
    return metadata


def device_rule_text(rooms: Sequence[str]) -> str:
    """Instruction teaching the model the device-control marker convention."""
    room_list = ", ".join(rooms) if rooms else "(none registered)"
    return (
        "Device control rule: when the user asks to turn devices on or off, reply normally "
        "and add one extra line in exactly this form: [DEVICE_CTL] room=<room> action=on|off. "
        "Use room=all to control every device. "
        f"Known rooms: {room_list}. "
        "Only add the line when the user clearly asks to switch a device."
    )


class KnowledgeBase:
    """Document ingestion, similarity search and RAG context building."""

    def __init__(self, vector_store: IVectorStore, embedding_provider: IEmbeddingProvider,
                 top_k: int = 5, min_score: float = 0.5):
        self.vector_store = vector_store
        self.embedding_provider = embedding_provider
        self.top_k = top_k
        self.min_score = min_score

    def add_document(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Embed and store one document. Returns its id, or None if embedding failed."""
        if not text or not text.strip():
            return None
        embedding = self.embedding_provider.embed_text(text)
        if embedding is None:
            logger.log_vector_operation("add", "-", {"error": "embedding failed"}, status="failed")
            return None

        doc = VectorDocument(id=new_document_id(), text=text, embedding=embedding, metadata=dict(metadata or {}))
        self.vector_store.add(doc)
        logger.log_vector_operation("add", doc.id, {"source": doc.source, "dimension": len(embedding)})
        return doc.id

    def add_documents(self, items: List[Tuple[str, Optional[Dict[str, Any]]]]) -> List[str]:
        """Embed and store several (text, metadata) pairs in one batch.

        The batch is embedded atomically, so either every document is stored or none is.
        """
        items = [(text, metadata) for text, metadata in items if text and text.strip()]
        if not items:
            return []

        embeddings = self.embedding_provider.embed_batch([text for text, _ in items])
        if len(embeddings) != len(items):
            logger.log_vector_operation("add_all", "-", {"requested": len(items), "error": "embedding failed"}, status="failed")
            return []

        docs = [
            VectorDocument(id=new_document_id(), text=text, embedding=embedding, metadata=dict(metadata or {}))
            for (text, metadata), embedding in zip(items, embeddings)
        ]
        self.vector_store.add_all(docs)
        logger.log_vector_operation("add_all", docs[0].id, {"count": len(docs)})
        return [doc.id for doc in docs]

    def search(self, query: str, k: Optional[int] = None) -> List[SearchResult]:
        if not query or not query.strip():
            return []
        embedding = self.embedding_provider.embed_text(query)
        if embedding is None:
            return []
        return self.vector_store.search(embedding, self.top_k if k is None else k)

    def build_context(self, query: str, k: Optional[int] = None) -> str:
        """Context for ``query`` built from sufficiently similar documents.

        Returns "" when nothing relevant is known, which callers treat as
        "no augmentation".
        """
        if self.vector_store.size() == 0 or not query or not query.strip():
            return ""

        results = self.search(query, k)
        relevant = [r for r in results if r.score >= self.min_score]
        if not relevant:
            return ""

        logger.log_vector_operation("build_context", "-", {
            "candidates": len(results),
            "relevant": len(relevant),
            "top_score": round(relevant[0].score, 4),
        })
        return "\n\n".join(r.document.text for r in relevant)

    def remove_by_source(self, source: str) -> int:
        return self.vector_store.remove_by_source(source)

    def clear(self) -> None:
        self.vector_store.clear()
        logger.log_vector_operation("clear", "*")

    def count(self) -> int:
        return self.vector_store.size()

    def sync_from_devices(self, devices: List[Device]) -> int:
        """Replace device documents with one per enabled device plus the control rule."""
        self.remove_by_source(DEVICE_SOURCE)
        self.remove_by_source(DEVICE_RULE_SOURCE)

        enabled = [d for d in devices if d.enabled]
        items = [(device_to_text(d), device_to_metadata(d)) for d in enabled]
        rooms = sorted({d.room for d in enabled if d.room})
        items.append((device_rule_text(rooms), {"source": DEVICE_RULE_SOURCE}))

        added = len(self.add_documents(items))
        logger.log_operation("knowledge_base.sync_devices", "success" if added else "failed", {
            "devices": len(enabled),
            "added": added,
        })
        return added
