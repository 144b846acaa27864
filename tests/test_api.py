"""
Test cases for the HTTP API.
"""

import pytest
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient

from voice_assistant.api import deps
from voice_assistant.api.main import app
from voice_assistant.core.dao import ChatAudit, DeviceDirectory
from voice_assistant.pipeline.orchestrator import PipelineResult, PipelineStage
from voice_assistant.vector import SnapshotVectorStore
from voice_assistant.vector.knowledge_base import KnowledgeBase
from conftest import KeywordEmbedding, make_wav


@pytest.fixture
def tts_dir(tmp_path):
    path = tmp_path / "tts"
    path.mkdir()
    return path


@pytest.fixture
def services(db_path, tmp_path):
    return {
        "directory": DeviceDirectory(db_path),
        "kb": KnowledgeBase(SnapshotVectorStore(str(tmp_path / "kb.json")), KeywordEmbedding(), min_score=0.1),
        "audit": ChatAudit(db_path),
        "dispatcher": Mock(),
        "orchestrator": Mock(),
    }


@pytest.fixture
def client(services, db_path, tts_dir):
    app.dependency_overrides[deps.get_device_directory] = lambda: services["directory"]
    app.dependency_overrides[deps.get_knowledge_base] = lambda: services["kb"]
    app.dependency_overrides[deps.get_chat_audit] = lambda: services["audit"]
    app.dependency_overrides[deps.get_dispatcher] = lambda: services["dispatcher"]
    app.dependency_overrides[deps.get_orchestrator] = lambda: services["orchestrator"]
    with patch('voice_assistant.core.config.DB_PATH', db_path), \
            patch('voice_assistant.core.config.TTS_DIR', str(tts_dir)), \
            patch('voice_assistant.core.config.MAX_UPLOAD_BYTES', 1024):
        yield TestClient(app)
    app.dependency_overrides.clear()


def responded(**fields):
    return PipelineResult(stage=PipelineStage.RESPONDED, **fields)


def device_payload(device_id="lamp-1", room="kitchen", **overrides):
    payload = {
        "device_id": device_id,
        "device_name": f"lamp {device_id}",
        "room": room,
        "connection_url": "http://10.0.0.9",
        "control_method": "get",
        "control_on": "/on",
        "control_off": "/off",
    }
    payload.update(overrides)
    return payload


class TestVoiceEndpoints:

    def test_health(self, client):
        """Health reports a reachable database as healthy."""
        response = client.get("/api/voice/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["db_healthy"] is True

    def test_upload_success(self, client, services):
        """An uploaded recording is handed to the pipeline with the request base URL."""
        services["orchestrator"].process_voice.return_value = responded(
            text="turn on the light", reply="Done.", audio_file="voice_1.wav",
            audio_url="http://testserver/tts/voice_1.wav", rag_context="doc",
        )

        response = client.post("/api/voice/upload", files={"file": ("rec.wav", make_wav(10), "audio/wav")})

        assert response.status_code == 200
        assert response.json() == {
            "text": "turn on the light",
            "reply": "Done.",
            "audio_file": "voice_1.wav",
            "audio_url": "http://testserver/tts/voice_1.wav",
            "rag_used": True,
        }
        audio_bytes, base_url = services["orchestrator"].process_voice.call_args.args
        assert audio_bytes == make_wav(10)
        assert base_url == "http://testserver"

    def test_upload_pipeline_failure(self, client, services):
        """A failed pipeline run surfaces as a 500 with its error message."""
        services["orchestrator"].process_voice.return_value = PipelineResult(
            stage=PipelineStage.FAILED, error="Speech recognition returned no result, please try again",
        )

        response = client.post("/api/voice/upload", files={"file": ("rec.wav", make_wav(10), "audio/wav")})

        assert response.status_code == 500
        assert "Speech recognition" in response.json()["detail"]

    def test_upload_empty(self, client, services):
        """Empty uploads are rejected before the pipeline runs."""
        response = client.post("/api/voice/upload", files={"file": ("rec.wav", b"", "audio/wav")})

        assert response.status_code == 400
        services["orchestrator"].process_voice.assert_not_called()

    def test_upload_too_large(self, client, services):
        """Uploads over the size limit are rejected with 413."""
        response = client.post("/api/voice/upload", files={"file": ("rec.wav", b"\x00" * 2048, "audio/wav")})

        assert response.status_code == 413
        services["orchestrator"].process_voice.assert_not_called()

    def test_text_chat(self, client, services):
        """Typed questions return the reply without RAG when no context was used."""
        services["orchestrator"].process_text.return_value = responded(
            text="hi", reply="hello", audio_file="text_1.wav", audio_url="u",
        )

        response = client.post("/api/voice/chat", json={"text": "hi"})

        assert response.status_code == 200
        assert response.json()["rag_used"] is False

    def test_text_chat_rejects_blank(self, client):
        """Blank text fails request validation."""
        assert client.post("/api/voice/chat", json={"text": "  "}).status_code == 422

    def test_asr(self, client, services):
        """Standalone transcription returns the recognized text."""
        services["orchestrator"].transcribe.return_value = "hello"

        response = client.post("/api/voice/asr", files={"file": ("rec.wav", make_wav(4), "audio/wav")})

        assert response.json() == {"text": "hello"}

    def test_tts(self, client, services):
        """Standalone synthesis returns the file name and its public URL."""
        services["orchestrator"].synthesize.return_value = "tts_1.wav"

        response = client.post("/api/voice/tts", json={"text": "hello"})

        assert response.json() == {"file": "tts_1.wav", "url": "http://testserver/tts/tts_1.wav"}

    def test_tts_failure(self, client, services):
        """A failed synthesis is reported as a server error."""
        services["orchestrator"].synthesize.return_value = None

        assert client.post("/api/voice/tts", json={"text": "hello"}).status_code == 500


class TestAudioFiles:

    def test_serves_wav(self, client, tts_dir):
        """Synthesized files are served as audio/wav."""
        (tts_dir / "voice_1.wav").write_bytes(make_wav(8))

        response = client.get("/tts/voice_1.wav")

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/wav"
        assert response.content == make_wav(8)

    def test_missing_file(self, client):
        """Unknown audio files return 404."""
        assert client.get("/tts/nope.wav").status_code == 404

    def test_rejects_parent_reference(self, client):
        """Names containing a parent reference are refused."""
        assert client.get("/tts/..secret.wav").status_code == 400


class TestKnowledgeBaseEndpoints:

    def test_add_search_and_stats(self, client):
        """Test adding documents, searching them and reading store stats."""
        assert client.post("/api/vector/documents", json={"text": "the kitchen light", "metadata": {"source": "faq"}}).status_code == 200
        client.post("/api/vector/documents", json={"text": "the bedroom fan"})

        response = client.post("/api/vector/search", json={"query": "kitchen light", "top_k": 1})

        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 1
        assert results[0]["text"] == "the kitchen light"
        assert results[0]["metadata"] == {"source": "faq"}

        assert client.get("/api/vector/stats").json() == {"count": 2, "store": "SnapshotVectorStore"}

    def test_batch_and_source_removal(self, client):
        """Test batch ingestion followed by removal by source and full clear."""
        response = client.post("/api/vector/documents/batch", json={"documents": [
            {"text": "light", "metadata": {"source": "a"}},
            {"text": "fan", "metadata": {"source": "a"}},
            {"text": "door", "metadata": {"source": "b"}},
        ]})
        assert len(response.json()["ids"]) == 3

        assert client.delete("/api/vector/sources/a").json() == {"removed": 2}
        assert client.delete("/api/vector/documents").json() == {"removed": 1}

    def test_empty_batch_rejected(self, client):
        """An empty batch is a client error."""
        assert client.post("/api/vector/documents/batch", json={"documents": []}).status_code == 400

    def test_blank_search_rejected(self, client):
        """A blank search query is a client error."""
        assert client.post("/api/vector/search", json={"query": " "}).status_code == 400

    def test_context_preview(self, client):
        """The context endpoint shows what generation would receive."""
        client.post("/api/vector/documents", json={"text": "the kitchen light"})

        data = client.get("/api/vector/context", params={"q": "kitchen light"}).json()

        assert data["context"] == "the kitchen light"


class TestDeviceEndpoints:

    def test_crud(self, client, services):
        """Test creating, reading, listing, updating and deleting a device."""
        created = client.post("/api/devices/", json=device_payload())
        assert created.status_code == 200
        device = created.json()
        assert device["control_method"] == "GET"

        assert client.get(f"/api/devices/{device['id']}").json()["device_id"] == "lamp-1"
        assert [d["device_id"] for d in client.get("/api/devices/", params={"room": "kitchen"}).json()] == ["lamp-1"]

        updated = client.put(f"/api/devices/{device['id']}", json=device_payload(room="bedroom"))
        assert updated.json()["room"] == "bedroom"

        assert client.delete(f"/api/devices/{device['id']}").status_code == 200
        assert client.get(f"/api/devices/{device['id']}").status_code == 404

    def test_changes_resync_knowledge_base(self, client, services):
        """Device writes rebuild the device documents in the knowledge base."""
        client.post("/api/devices/", json=device_payload())

        # one device document plus the control rule
        assert services["kb"].count() == 2

    def test_duplicate_device(self, client):
        """A second device with the same device_id conflicts."""
        client.post("/api/devices/", json=device_payload())

        assert client.post("/api/devices/", json=device_payload(room="bedroom")).status_code == 409

    def test_invalid_method(self, client):
        """Only GET and POST control methods are accepted."""
        assert client.post("/api/devices/", json=device_payload(control_method="PUT")).status_code == 422

    def test_control_by_room(self, client, services):
        """Room control resolves through the dispatcher and reports successes."""
        services["dispatcher"].resolve.return_value = 2

        response = client.post("/api/devices/control", json={"room": "all", "action": "ON"})

        assert response.json() == {"success_count": 2}
        services["dispatcher"].resolve.assert_called_once_with("all", True)

    def test_control_by_device_id(self, client, services):
        """Single-device control goes straight to that device."""
        client.post("/api/devices/", json=device_payload())
        services["dispatcher"].control_device.return_value = True

        response = client.post("/api/devices/control", json={"device_id": "lamp-1", "action": "off"})

        assert response.json() == {"success_count": 1}
        device, turn_on = services["dispatcher"].control_device.call_args.args
        assert device.device_id == "lamp-1"
        assert turn_on is False

    def test_control_errors(self, client):
        """Unknown, disabled and unaddressed devices are rejected."""
        client.post("/api/devices/", json=device_payload("old", enabled=False))

        assert client.post("/api/devices/control", json={"device_id": "ghost", "action": "on"}).status_code == 404
        assert client.post("/api/devices/control", json={"device_id": "old", "action": "on"}).status_code == 400
        assert client.post("/api/devices/control", json={"action": "on"}).status_code == 400
        assert client.post("/api/devices/control", json={"room": "x", "action": "toggle"}).status_code == 422


class TestChatHistory:

    def test_paging(self, client, services):
        """History pages are newest first with a total count."""
        for i in range(3):
            services["audit"].append(f"q{i}", f"a{i}", "text-local", "LLM")

        data = client.get("/api/chat-history", params={"page": 0, "size": 2}).json()

        assert data["total"] == 3
        assert [item["question"] for item in data["items"]] == ["q2", "q1"]

    def test_size_bounds(self, client):
        """Page sizes outside 1..100 fail validation."""
        assert client.get("/api/chat-history", params={"size": 0}).status_code == 422
        assert client.get("/api/chat-history", params={"size": 101}).status_code == 422


class TestLifespan:
    """Startup and shutdown hooks of the application."""

    def test_startup_creates_work_directories(self, services, db_path, tmp_path):
        """Startup creates the temp and TTS directories before serving."""
        temp_dir = tmp_path / "work" / "temp"
        tts_out = tmp_path / "work" / "tts"
        app.dependency_overrides[deps.get_dispatcher] = lambda: services["dispatcher"]
        try:
            with patch('voice_assistant.core.config.DB_PATH', db_path), \
                    patch('voice_assistant.core.config.TEMP_DIR', str(temp_dir)), \
                    patch('voice_assistant.core.config.TTS_DIR', str(tts_out)):
                with TestClient(app) as client:
                    assert temp_dir.is_dir()
                    assert tts_out.is_dir()
                    assert client.get("/api/voice/health").status_code == 200
        finally:
            app.dependency_overrides.clear()

    def test_shutdown_stops_dispatcher(self, services, db_path, tmp_path):
        """Shutdown stops the device dispatch pool without waiting."""
        app.dependency_overrides[deps.get_dispatcher] = lambda: services["dispatcher"]
        try:
            with patch('voice_assistant.core.config.DB_PATH', db_path), \
                    patch('voice_assistant.core.config.TEMP_DIR', str(tmp_path / "temp")), \
                    patch('voice_assistant.core.config.TTS_DIR', str(tmp_path / "tts")):
                with TestClient(app):
                    services["dispatcher"].shutdown.assert_not_called()
        finally:
            app.dependency_overrides.clear()

        services["dispatcher"].shutdown.assert_called_once_with(wait=False)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
