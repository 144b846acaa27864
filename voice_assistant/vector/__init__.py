"""
Semantic memory: vector stores, embedding providers and the RAG knowledge base.
"""

# Package initialization for vector module
from .index import IVectorStore, SnapshotVectorStore, cosine_similarity
from .sqlite_store import SqliteVectorStore
from .types import VectorDocument, SearchResult
from .embeddings import IEmbeddingProvider, DashScopeEmbedding, OllamaEmbedding
from .knowledge_base import KnowledgeBase

__all__ = [
    'IVectorStore',
    'SnapshotVectorStore',
    'SqliteVectorStore',
    'cosine_similarity',
    'VectorDocument',
    'SearchResult',
    'IEmbeddingProvider',
    'DashScopeEmbedding',
    'OllamaEmbedding',
    'KnowledgeBase'
]
