"""
Service wiring for the HTTP layer.
Backends are built once, on first use, and shared by every request. Tests
replace these through ``app.dependency_overrides``.
"""

from functools import lru_cache

from ..core import config
from ..core.dao import ChatAudit, DeviceDirectory
from ..pipeline.devices import DeviceDispatcher
from ..pipeline.orchestrator import PipelineOrchestrator
from ..vector.knowledge_base import KnowledgeBase


@lru_cache(maxsize=None)
def get_device_directory() -> DeviceDirectory:
    return DeviceDirectory(config.DB_PATH)


@lru_cache(maxsize=None)
def get_knowledge_base() -> KnowledgeBase:
    return KnowledgeBase(
        config.get_vector_store(),
        config.get_embedding_provider(),
        top_k=config.RAG_TOP_K,
        min_score=config.RAG_MIN_SCORE,
    )


@lru_cache(maxsize=None)
def get_dispatcher() -> DeviceDispatcher:
    return DeviceDispatcher(
        get_device_directory(),
        timeout=config.DEVICE_TIMEOUT_SEC,
        max_workers=config.DEVICE_DISPATCH_WORKERS,
    )


@lru_cache(maxsize=None)
def get_chat_audit() -> ChatAudit:
    return ChatAudit(config.DB_PATH, knowledge_base=get_knowledge_base(), index_chats=config.CHAT_INDEX_ENABLED)


@lru_cache(maxsize=None)
def get_orchestrator() -> PipelineOrchestrator:
    return PipelineOrchestrator(
        knowledge_base=get_knowledge_base(),
        dispatcher=get_dispatcher(),
        audit=get_chat_audit(),
    )
