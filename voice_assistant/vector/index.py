"""
Vector store interface and the snapshot (JSON file) backend.
Both backends rank by brute-force cosine similarity over every stored
document; corpus sizes here are small enough that no index is maintained.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import numpy as np

from .types import VectorDocument, SearchResult
from ..util.logging import logger


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two equal-length vectors; 0.0 when either has zero norm."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def rank_documents(documents: Iterable[VectorDocument], query_vector, k: int) -> List[SearchResult]:
    """Score documents against the query and return the top ``k``.

    Documents whose embedding dimensionality differs from the query are
    skipped. Ordering is descending score, then ascending id, so equal scores
    come back in the same order regardless of backend.
    """
    query = np.asarray(query_vector, dtype=np.float64)
    if k <= 0 or query.ndim != 1 or query.size == 0:
        return []

    results = []
    for doc in documents:
        if doc.embedding.shape != query.shape:
            continue
        results.append(SearchResult(document=doc, score=cosine_similarity(query, doc.embedding)))

    results.sort(key=lambda r: (-r.score, r.document.id))
    return results[:k]


def build_document(doc_id: Any, text: Any, embedding: Any, metadata: Any) -> Optional[VectorDocument]:
    """Build a document from persisted parts, or None if any part is malformed."""
    if not isinstance(doc_id, str) or not doc_id or not isinstance(text, str):
        return None
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        return None
    try:
        vector = np.asarray(embedding, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if vector.ndim != 1 or vector.size == 0 or not np.all(np.isfinite(vector)):
        return None
    return VectorDocument(id=doc_id, text=text, embedding=vector, metadata=metadata)


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, doc: VectorDocument) -> None:
        """Add a document, replacing any existing document with the same id."""
        pass

    @abstractmethod
    def add_all(self, docs: List[VectorDocument]) -> None:
        """Add multiple documents."""
        pass

    @abstractmethod
    def remove(self, doc_id: str) -> bool:
        """Remove a document by id. Returns whether it existed."""
        pass

    @abstractmethod
    def remove_by_source(self, source: str) -> int:
        """Remove every document whose metadata source equals ``source``."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all documents from the store."""
        pass

    @abstractmethod
    def size(self) -> int:
        """Number of stored documents."""
        pass

    @abstractmethod
    def search(self, query_vector: np.ndarray, k: int = 5) -> List[SearchResult]:
        """Search for similar documents and return ranked results."""
        pass


class SnapshotVectorStore(IVectorStore):
    """In-memory store persisted by rewriting one JSON file on every mutation.

    Not safe under concurrent writers: the in-memory change and the file
    rewrite are not atomic together. Intended for low write rates.
    """

    def __init__(self, file_path: str = "data/vector-store.json"):
        self.file_path = Path(file_path)
        self._documents: Dict[str, VectorDocument] = {}
        self._load()

    def _load(self):
        if not self.file_path.exists():
            return
        try:
            raw = json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read vector snapshot {self.file_path}: {e}")
            return
        if not isinstance(raw, list):
            logger.warning(f"Vector snapshot {self.file_path} is not a list, ignoring")
            return

        dropped = 0
        for item in raw:
            doc = None
            if isinstance(item, dict):
                doc = build_document(item.get("id"), item.get("text"), item.get("embedding"), item.get("metadata"))
            if doc is None:
                dropped += 1
                continue
            self._documents[doc.id] = doc

        if dropped:
            logger.debug(f"Dropped {dropped} malformed records from {self.file_path}")
        logger.log_vector_operation("load", "snapshot", {"count": len(self._documents), "dropped": dropped})

    def _persist(self):
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            payload = [doc.to_dict() for doc in self._documents.values()]
            self.file_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write vector snapshot {self.file_path}: {e}")

    def add(self, doc: VectorDocument) -> None:
        self._documents[doc.id] = doc
        self._persist()

    def add_all(self, docs: List[VectorDocument]) -> None:
        if not docs:
            return
        for doc in docs:
            self._documents[doc.id] = doc
        self._persist()

    def remove(self, doc_id: str) -> bool:
        if self._documents.pop(doc_id, None) is None:
            return False
        self._persist()
        return True

    def remove_by_source(self, source: str) -> int:
        doomed = [doc_id for doc_id, doc in self._documents.items() if doc.source == source]
        for doc_id in doomed:
            del self._documents[doc_id]
        if doomed:
            self._persist()
        return len(doomed)

    def clear(self) -> None:
        self._documents.clear()
        self._persist()

    def size(self) -> int:
        return len(self._documents)

    def search(self, query_vector: np.ndarray, k: int = 5) -> List[SearchResult]:
        return rank_documents(list(self._documents.values()), query_vector, k)
