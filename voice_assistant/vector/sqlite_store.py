"""
Durable vector store backend: one SQLite row per document plus an in-memory
mirror keyed by id. The mirror is loaded once at startup, updated after every
successful write, and is the only thing searched.
"""

import json
import threading
from typing import Dict, List, Optional
import numpy as np

from .index import IVectorStore, build_document, rank_documents
from .types import VectorDocument, SearchResult
from ..core.db import get_db, init_db
from ..util.logging import logger


class SqliteVectorStore(IVectorStore):
    """Vector store backed by the ``vector_document`` table."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        self._mirror: Dict[str, VectorDocument] = {}
        self._lock = threading.RLock()
        init_db(db_path)
        self._load()

    def _load(self):
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, text, embedding_json, metadata_json FROM vector_document")
            rows = cursor.fetchall()

        dropped = 0
        loaded = {}
        for doc_id, text, embedding_json, metadata_json in rows:
            try:
                embedding = json.loads(embedding_json)
                metadata = json.loads(metadata_json) if metadata_json else {}
            except (TypeError, ValueError):
                dropped += 1
                continue
            doc = build_document(doc_id, text, embedding, metadata)
            if doc is None:
                dropped += 1
                continue
            loaded[doc.id] = doc

        with self._lock:
            self._mirror = loaded

        if dropped:
            logger.debug(f"Dropped {dropped} malformed vector rows at load")
        logger.log_vector_operation("load", "sqlite", {"count": len(loaded), "dropped": dropped})

    @staticmethod
    def _row(doc: VectorDocument):
        return (
            doc.id,
            doc.text,
            json.dumps(doc.embedding.tolist()),
            json.dumps(doc.metadata, ensure_ascii=False),
            doc.source,
        )

    def add(self, doc: VectorDocument) -> None:
        self.add_all([doc])

    def add_all(self, docs: List[VectorDocument]) -> None:
        if not docs:
            return
        # Each row is its own write; a failure part-way leaves earlier rows in place
        for doc in docs:
            with get_db(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO vector_document (id, text, embedding_json, metadata_json, source) "
                    "VALUES (?, ?, ?, ?, ?)",
                    self._row(doc),
                )
                conn.commit()
            with self._lock:
                self._mirror[doc.id] = doc

    def remove(self, doc_id: str) -> bool:
        with get_db(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM vector_document WHERE id = ?", (doc_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        with self._lock:
            existed = self._mirror.pop(doc_id, None) is not None
        return deleted or existed

    def remove_by_source(self, source: str) -> int:
        with get_db(self.db_path) as conn:
            conn.execute("DELETE FROM vector_document WHERE source = ?", (source,))
            conn.commit()

        with self._lock:
            doomed = [doc_id for doc_id, doc in self._mirror.items() if doc.source == source]
            for doc_id in doomed:
                del self._mirror[doc_id]

        logger.log_vector_operation("remove_by_source", source, {"removed": len(doomed)})
        return len(doomed)

    def clear(self) -> None:
        with get_db(self.db_path) as conn:
            conn.execute("DELETE FROM vector_document")
            conn.commit()
        with self._lock:
            self._mirror.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._mirror)

    def search(self, query_vector: np.ndarray, k: int = 5) -> List[SearchResult]:
        with self._lock:
            snapshot = list(self._mirror.values())
        return rank_documents(snapshot, query_vector, k)
