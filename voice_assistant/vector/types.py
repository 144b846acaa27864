"""
Value types shared by the vector store backends.
"""

from typing import Any, Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorDocument:
    """A text fragment with its embedding, as held by a vector store."""

    id: str
    """Unique identifier within a store instance"""

    text: str
    """The embedded content"""

    embedding: np.ndarray
    """Fixed-length embedding of ``text``"""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Additional metadata; ``source`` groups documents for bulk removal"""

    def __post_init__(self):
        self.embedding = np.asarray(self.embedding, dtype=np.float64)

    @property
    def source(self) -> Optional[str]:
        value = self.metadata.get("source") if self.metadata else None
        return str(value) if value is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "embedding": self.embedding.tolist(),
            "metadata": self.metadata,
        }


@dataclass
class SearchResult:
    """Represents a search result from a vector store."""

    document: VectorDocument
    """The matching document"""

    score: float
    """Cosine similarity of the match, in [-1, 1]"""
