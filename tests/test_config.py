"""
Test cases for configuration validation and backend selection.
"""

import pytest
from unittest.mock import patch

from voice_assistant.core import config
from voice_assistant.pipeline.llm import ChatCompletionClient
from voice_assistant.pipeline.speech import DashScopeSpeechBackend, PaddleSpeechBackend
from voice_assistant.vector import SnapshotVectorStore, SqliteVectorStore
from voice_assistant.vector.embeddings import DashScopeEmbedding, OllamaEmbedding


def test_local_mode_backends():
    """Local mode selects PaddleSpeech, Ollama and the keyless vLLM client."""
    with patch.object(config, 'VOICE_MODE', 'local'):
        assert isinstance(config.get_speech_backend(), PaddleSpeechBackend)
        assert isinstance(config.get_embedding_provider(), OllamaEmbedding)

        client = config.get_chat_client()
        assert isinstance(client, ChatCompletionClient)
        assert client.base_url == config.VLLM_BASE_URL.rstrip("/")
        assert client.requires_key is False


def test_online_mode_backends():
    """Online mode selects the DashScope backends with the API key."""
    with patch.object(config, 'VOICE_MODE', 'online'), patch.object(config, 'QWEN_API_KEY', 'sk-test'):
        assert config.is_online_mode()
        assert isinstance(config.get_speech_backend(), DashScopeSpeechBackend)
        assert isinstance(config.get_embedding_provider(), DashScopeEmbedding)

        client = config.get_chat_client()
        assert client.model == config.QWEN_CHAT_MODEL
        assert client.api_key == 'sk-test'


def test_vector_store_selection(tmp_path):
    """VECTOR_STORE_TYPE picks the snapshot or SQLite backend."""
    with patch.object(config, 'VECTOR_STORE_TYPE', 'file'), \
            patch.object(config, 'VECTOR_STORE_FILE', str(tmp_path / "store.json")):
        assert isinstance(config.get_vector_store(), SnapshotVectorStore)

    with patch.object(config, 'VECTOR_STORE_TYPE', 'sqlite'), \
            patch.object(config, 'DB_PATH', str(tmp_path / "voice.db")):
        assert isinstance(config.get_vector_store(), SqliteVectorStore)


def test_ensure_directories_creates_missing_paths(tmp_path):
    """Missing temp and TTS directories are created, nested parents included."""
    temp_dir = tmp_path / "a" / "temp"
    tts_dir = tmp_path / "b" / "tts"
    with patch.object(config, 'TEMP_DIR', str(temp_dir)), patch.object(config, 'TTS_DIR', str(tts_dir)):
        config.ensure_directories()
        config.ensure_directories()

    assert temp_dir.is_dir()
    assert tts_dir.is_dir()


class TestValidateConfig:

    def test_defaults_are_valid_locally(self):
        """The default local settings report no issues."""
        with patch.object(config, 'VOICE_MODE', 'local'), patch.object(config, 'VECTOR_STORE_TYPE', 'sqlite'):
            assert config.validate_config() == []

    def test_online_without_key(self):
        """Online mode without an API key is reported."""
        with patch.object(config, 'VOICE_MODE', 'online'), patch.object(config, 'QWEN_API_KEY', ''):
            assert "VOICE_MODE=online requires QWEN_API_KEY" in config.validate_config()

    @pytest.mark.parametrize("name, value", [
        ('VOICE_MODE', 'hybrid'),
        ('VECTOR_STORE_TYPE', 'faiss'),
        ('RAG_MIN_SCORE', 1.5),
        ('RAG_TOP_K', 0),
        ('TTS_MAX_INPUT_LENGTH', 0),
        ('DEVICE_DISPATCH_WORKERS', 0),
    ])
    def test_invalid_values_reported(self, name, value):
        """Test that each out-of-range setting produces an issue."""
        with patch.object(config, name, value):
            assert len(config.validate_config()) >= 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
