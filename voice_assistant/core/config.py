"""
Process configuration for the voice assistant.
All settings come from the environment (optionally via a .env file) and are
read once at import time. Backend factories live here so every dependent gets
the same strategy chosen at startup.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Deployment mode: local (vLLM + Ollama + PaddleSpeech) or online (DashScope)
VOICE_MODE = os.getenv("VOICE_MODE", "local").lower()  # local|online
MOCK_MODE = os.getenv("MOCK_MODE", "false").lower() == "true"
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Storage
DB_PATH = os.getenv("DB_PATH", "./data/voice.db")
TEMP_DIR = os.getenv("TEMP_DIR", "temp")
TTS_DIR = os.getenv("TTS_DIR", "tts-output")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

# Retrieval-augmented generation
RAG_ENABLED = os.getenv("RAG_ENABLED", "true").lower() == "true"
RAG_TOP_K = int(os.getenv("RAG_TOP_K", "5"))
RAG_MIN_SCORE = float(os.getenv("RAG_MIN_SCORE", "0.5"))
VECTOR_STORE_TYPE = os.getenv("VECTOR_STORE_TYPE", "sqlite").lower()  # sqlite|file
VECTOR_STORE_FILE = os.getenv("VECTOR_STORE_FILE", "data/vector-store.json")
CHAT_INDEX_ENABLED = os.getenv("CHAT_INDEX_ENABLED", "true").lower() == "true"

# Local backends
VLLM_BASE_URL = os.getenv("VLLM_BASE_URL", "http://localhost:8000")
VLLM_MODEL = os.getenv("VLLM_MODEL", "deepseek-ai/DeepSeek-R1-Distill-Qwen-7B")
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "qwen3-embedding")
PADDLESPEECH_CMD = os.getenv("PADDLESPEECH_CMD", "paddlespeech")

# Online backends (DashScope)
QWEN_API_KEY = os.getenv("QWEN_API_KEY", "")
QWEN_BASE_URL = os.getenv("QWEN_BASE_URL", "https://dashscope.aliyuncs.com/compatible-mode")
QWEN_CHAT_MODEL = os.getenv("QWEN_CHAT_MODEL", "qwen-plus")
QWEN_ASR_MODEL = os.getenv("QWEN_ASR_MODEL", "qwen3-asr-flash")
QWEN_TTS_URL = os.getenv(
    "QWEN_TTS_URL",
    "https://dashscope.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation",
)
QWEN_TTS_MODEL = os.getenv("QWEN_TTS_MODEL", "qwen3-tts-flash")
QWEN_TTS_VOICE = os.getenv("QWEN_TTS_VOICE", "Cherry")
QWEN_TTS_LANGUAGE = os.getenv("QWEN_TTS_LANGUAGE", "Chinese")
QWEN_EMBED_MODEL = os.getenv("QWEN_EMBED_MODEL", "text-embedding-v3")
EMBED_DIMENSIONS = int(os.getenv("EMBED_DIMENSIONS", "1024"))

# Per-stage limits (seconds unless noted)
ASR_TIMEOUT_SEC = int(os.getenv("ASR_TIMEOUT_SEC", "60"))
TTS_TIMEOUT_SEC = int(os.getenv("TTS_TIMEOUT_SEC", "120"))
LLM_TIMEOUT_SEC = int(os.getenv("LLM_TIMEOUT_SEC", "120"))
EMBED_TIMEOUT_SEC = int(os.getenv("EMBED_TIMEOUT_SEC", "30"))
DEVICE_TIMEOUT_SEC = int(os.getenv("DEVICE_TIMEOUT_SEC", "10"))
DEVICE_DISPATCH_WORKERS = int(os.getenv("DEVICE_DISPATCH_WORKERS", "4"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "512"))
TTS_MAX_INPUT_LENGTH = int(os.getenv("TTS_MAX_INPUT_LENGTH", "500"))

VERSION = "1.0.0"


def is_online_mode() -> bool:
    """Check if the online (DashScope) backends are selected."""
    return VOICE_MODE == "online"


def ensure_directories():
    """Create the temp upload and TTS output directories."""
    Path(TEMP_DIR).mkdir(parents=True, exist_ok=True)
    Path(TTS_DIR).mkdir(parents=True, exist_ok=True)


def get_vector_store():
    """Get the configured vector store backend. Selected once, at startup."""
    if VECTOR_STORE_TYPE == "file":
        from ..vector.index import SnapshotVectorStore
        return SnapshotVectorStore(VECTOR_STORE_FILE)

    from ..vector.sqlite_store import SqliteVectorStore
    return SqliteVectorStore(DB_PATH)


def get_embedding_provider():
    """Get the embedding provider matching the deployment mode."""
    if is_online_mode():
        from ..vector.embeddings import DashScopeEmbedding
        return DashScopeEmbedding(
            api_key=QWEN_API_KEY,
            base_url=QWEN_BASE_URL,
            model=QWEN_EMBED_MODEL,
            dimensions=EMBED_DIMENSIONS,
            timeout=EMBED_TIMEOUT_SEC,
        )

    from ..vector.embeddings import OllamaEmbedding
    return OllamaEmbedding(
        host=OLLAMA_BASE_URL,
        model=OLLAMA_EMBED_MODEL,
        timeout=EMBED_TIMEOUT_SEC,
    )


def get_speech_backend():
    """Get the ASR/TTS backend matching the deployment mode."""
    if is_online_mode():
        from ..pipeline.speech import DashScopeSpeechBackend
        return DashScopeSpeechBackend(
            api_key=QWEN_API_KEY,
            base_url=QWEN_BASE_URL,
            asr_model=QWEN_ASR_MODEL,
            tts_url=QWEN_TTS_URL,
            tts_model=QWEN_TTS_MODEL,
            voice=QWEN_TTS_VOICE,
            language=QWEN_TTS_LANGUAGE,
            asr_timeout=ASR_TIMEOUT_SEC,
            tts_timeout=TTS_TIMEOUT_SEC,
        )

    from ..pipeline.speech import PaddleSpeechBackend
    return PaddleSpeechBackend(
        command=PADDLESPEECH_CMD,
        work_dir=TEMP_DIR,
        asr_timeout=ASR_TIMEOUT_SEC,
        tts_timeout=TTS_TIMEOUT_SEC,
        max_input_length=TTS_MAX_INPUT_LENGTH,
    )


def get_chat_client():
    """Get the OpenAI-compatible generation client matching the deployment mode."""
    from ..pipeline.llm import ChatCompletionClient

    if is_online_mode():
        return ChatCompletionClient(
            base_url=QWEN_BASE_URL,
            model=QWEN_CHAT_MODEL,
            api_key=QWEN_API_KEY,
            timeout=LLM_TIMEOUT_SEC,
            max_tokens=LLM_MAX_TOKENS,
        )

    return ChatCompletionClient(
        base_url=VLLM_BASE_URL,
        model=VLLM_MODEL,
        timeout=LLM_TIMEOUT_SEC,
        max_tokens=LLM_MAX_TOKENS,
    )


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if VOICE_MODE not in ["local", "online"]:
        issues.append(f"Invalid VOICE_MODE: {VOICE_MODE}")

    if VECTOR_STORE_TYPE not in ["sqlite", "file"]:
        issues.append(f"Invalid VECTOR_STORE_TYPE: {VECTOR_STORE_TYPE}")

    if is_online_mode() and not QWEN_API_KEY.strip():
        issues.append("VOICE_MODE=online requires QWEN_API_KEY")

    if not -1.0 <= RAG_MIN_SCORE <= 1.0:
        issues.append("RAG_MIN_SCORE must be within [-1, 1]")

    if RAG_TOP_K < 1:
        issues.append("RAG_TOP_K must be >= 1")

    if TTS_MAX_INPUT_LENGTH < 1:
        issues.append("TTS_MAX_INPUT_LENGTH must be >= 1")

    if DEVICE_DISPATCH_WORKERS < 1:
        issues.append("DEVICE_DISPATCH_WORKERS must be >= 1")

    return issues
