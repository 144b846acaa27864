"""
Embedding providers backed by remote models.

Two protocols sit behind one interface: the OpenAI-compatible DashScope
``/v1/embeddings`` endpoint (online mode) and Ollama's embed API (local mode).
Every failure is reported as "no result" and nothing is retried. Batch calls
are all-or-nothing: the result either has one vector per input, in input
order, or is empty.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Union

import ollama
import requests

from ..util.logging import logger


def _as_vector(raw: Any) -> Optional[List[float]]:
    if not isinstance(raw, (list, tuple)) or not raw:
        return None
    try:
        return [float(x) for x in raw]
    except (TypeError, ValueError):
        return None


def _aligned(vectors: Optional[Sequence[Any]], expected: int) -> List[List[float]]:
    """Return vectors only when every input got a usable vector."""
    if not vectors or len(vectors) != expected:
        return []
    parsed = [_as_vector(v) for v in vectors]
    if any(v is None for v in parsed):
        return []
    return parsed


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    name = "embedding"

    @abstractmethod
    def embed_text(self, text: str) -> Optional[List[float]]:
        """Generate an embedding for ``text``, or None on any failure."""
        pass

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed all ``texts``; returns one vector per input or an empty list."""
        pass


class DashScopeEmbedding(IEmbeddingProvider):
    """OpenAI-compatible embeddings (``data[].embedding``) served by DashScope."""

    name = "dashscope"

    def __init__(self, api_key: str, base_url: str, model: str = "text-embedding-v3",
                 dimensions: int = 1024, timeout: int = 30):
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout

    def _request(self, payload_input: Union[str, List[str]], input_count: int) -> Optional[List[Any]]:
        if not self.api_key.strip():
            logger.warning("Embedding skipped: QWEN_API_KEY is not configured")
            return None

        try:
            response = requests.post(
                f"{self.base_url}/v1/embeddings",
                json={
                    "model": self.model,
                    "input": payload_input,
                    "dimensions": self.dimensions,
                    "encoding_format": "float",
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.log_embedding_call(self.name, input_count, "failed", {"error": str(e)})
            return None

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or not data:
            logger.log_embedding_call(self.name, input_count, "failed", {"error": "empty response"})
            return None

        # Entries carry their input position; order by it rather than trusting response order
        items = [item for item in data if isinstance(item, dict)]
        items.sort(key=lambda item: item.get("index", 0))
        logger.log_embedding_call(self.name, input_count)
        return [item.get("embedding") for item in items]

    def embed_text(self, text: str) -> Optional[List[float]]:
        if not text or not text.strip():
            return None
        vectors = self._request(text, 1)
        if not vectors:
            return None
        return _as_vector(vectors[0])

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        result = _aligned(self._request(list(texts), len(texts)), len(texts))
        if not result:
            logger.warning(f"Embedding batch of {len(texts)} failed; no vectors returned")
        return result


class OllamaEmbedding(IEmbeddingProvider):
    """Local embeddings through the Ollama embed API (``{embeddings: [...]}``)."""

    name = "ollama"

    def __init__(self, host: str = "http://localhost:11434", model: str = "qwen3-embedding",
                 timeout: int = 30, client: Optional[ollama.Client] = None):
        self.host = host
        self.model = model
        self.client = client or ollama.Client(host=host, timeout=timeout)

    def _request(self, payload_input: Union[str, List[str]], input_count: int) -> Optional[List[Any]]:
        try:
            response = self.client.embed(model=self.model, input=payload_input)
            embeddings = response["embeddings"]
        except ollama.ResponseError as e:
            logger.log_embedding_call(self.name, input_count, "failed", {"error": e.error})
            return None
        except Exception as e:
            logger.log_embedding_call(self.name, input_count, "failed", {"error": str(e)})
            return None

        if not embeddings:
            logger.log_embedding_call(self.name, input_count, "failed", {"error": "empty response"})
            return None

        logger.log_embedding_call(self.name, input_count)
        return list(embeddings)

    def embed_text(self, text: str) -> Optional[List[float]]:
        if not text or not text.strip():
            return None
        vectors = self._request(text, 1)
        if not vectors:
            return None
        return _as_vector(vectors[0])

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        result = _aligned(self._request(list(texts), len(texts)), len(texts))
        if not result:
            logger.warning(f"Embedding batch of {len(texts)} failed; no vectors returned")
        return result
