"""
Shared fixtures for the voice assistant test suite.
"""

import pytest

from voice_assistant.core.db import init_db
from voice_assistant.core.schema import Device
from voice_assistant.pipeline.audio import wav_header
from voice_assistant.vector.embeddings import IEmbeddingProvider


class KeywordEmbedding(IEmbeddingProvider):
    """Deterministic test embedder: keyword counts, or fixed vectors per text."""

    name = "keyword"
    VOCAB = ["light", "lamp", "fan", "weather", "music", "door", "kitchen", "bedroom"]

    def __init__(self, vectors=None, fail=False):
        self.vectors = vectors or {}
        self.fail = fail
        self.calls = []

    def embed_text(self, text):
        self.calls.append(text)
        if self.fail:
            return None
        if text in self.vectors:
            return list(self.vectors[text])
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.VOCAB]

    def embed_batch(self, texts):
        if self.fail:
            return []
        return [self.embed_text(text) for text in texts]


def make_wav(payload_len: int, fill: int = 1) -> bytes:
    return wav_header(payload_len) + bytes([fill]) * payload_len


def make_device(device_id, room, enabled=True, method="GET", on="/on", off="/off",
                url="http://device.local", name=None):
    return Device(
        device_id=device_id,
        device_name=name or f"lamp-{device_id}",
        room=room,
        connection_url=url,
        control_method=method,
        control_on=on,
        control_off=off,
        enabled=enabled,
    )


@pytest.fixture
def db_path(tmp_path):
    """Fresh SQLite database with all tables created."""
    path = str(tmp_path / "voice.db")
    init_db(path)
    return path


@pytest.fixture
def embedder():
    return KeywordEmbedding()
