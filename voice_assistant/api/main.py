"""
HTTP entry point for the voice assistant.

Route handlers are plain functions so FastAPI runs each request on its own
worker thread; every pipeline call is blocking.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from .deps import get_chat_audit, get_dispatcher, get_orchestrator
from .devices import router as devices_router
from .schemas import (
    AsrResponse,
    ChatHistoryItem,
    ChatHistoryPage,
    HealthResponse,
    TextRequest,
    TtsResponse,
    VoiceResponse,
)
from .vector import router as vector_router
from ..core import config
from ..core.db import health_check, init_db
from ..pipeline.orchestrator import PipelineResult, audio_url
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    config.ensure_directories()
    for issue in config.validate_config():
        logger.warning(f"Configuration issue: {issue}")
    yield
    dispatcher = app.dependency_overrides.get(get_dispatcher, get_dispatcher)()
    dispatcher.shutdown(wait=False)


# Initialize the FastAPI application
app = FastAPI(
    lifespan=lifespan,
    title="Voice Assistant API",
    version=config.VERSION,
    description="Voice pipeline with RAG knowledge base and smart home device control",
    docs_url="/docs" if config.DEBUG else None,
    redoc_url="/redoc" if config.DEBUG else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vector_router, prefix="/api/vector", tags=["knowledge-base"])
app.include_router(devices_router, prefix="/api/devices", tags=["devices"])


def _base_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _read_upload(file: UploadFile) -> bytes:
    data = file.file.read(config.MAX_UPLOAD_BYTES + 1)
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"Upload exceeds {config.MAX_UPLOAD_BYTES} bytes")
    return data


def _voice_response(result: PipelineResult) -> VoiceResponse:
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "processing failed")
    return VoiceResponse(
        text=result.text,
        reply=result.reply,
        audio_file=result.audio_file,
        audio_url=result.audio_url,
        rag_used=bool(result.rag_context),
    )


@app.get("/api/voice/health", response_model=HealthResponse)
def voice_health():
    """Check system health."""
    db_healthy = health_check()
    return HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        version=config.VERSION,
        mode=config.VOICE_MODE,
        mock=config.MOCK_MODE,
        rag_enabled=config.RAG_ENABLED,
        vector_store=config.VECTOR_STORE_TYPE,
        db_healthy=db_healthy,
        config_issues=config.validate_config(),
    )


@app.post("/api/voice/upload", response_model=VoiceResponse)
def upload_voice(request: Request, file: UploadFile = File(...), orchestrator=Depends(get_orchestrator)):
    """Run a recorded utterance through the full voice pipeline."""
    audio_bytes = _read_upload(file)
    return _voice_response(orchestrator.process_voice(audio_bytes, _base_url(request)))


@app.post("/api/voice/chat", response_model=VoiceResponse)
def text_chat(req: TextRequest, request: Request, orchestrator=Depends(get_orchestrator)):
    """Answer a typed question and speak the reply."""
    return _voice_response(orchestrator.process_text(req.text, _base_url(request)))


@app.post("/api/voice/asr", response_model=AsrResponse)
def transcribe(file: UploadFile = File(...), orchestrator=Depends(get_orchestrator)):
    audio_bytes = _read_upload(file)
    text = orchestrator.transcribe(audio_bytes)
    if not text:
        raise HTTPException(status_code=500, detail="Speech recognition returned no result")
    return AsrResponse(text=text)


@app.post("/api/voice/tts", response_model=TtsResponse)
def synthesize(req: TextRequest, request: Request, orchestrator=Depends(get_orchestrator)):
    filename = orchestrator.synthesize(req.text)
    if not filename:
        raise HTTPException(status_code=500, detail="Speech synthesis failed")
    return TtsResponse(file=filename, url=audio_url(_base_url(request), filename))


@app.get("/tts/{filename}")
def serve_tts(filename: str):
    """Serve a synthesized WAV file from the TTS output directory."""
    if ".." in filename or "/" in filename or "\\" in filename:
        raise HTTPException(status_code=400, detail="Invalid file name")
    tts_dir = Path(config.TTS_DIR).resolve()
    path = (tts_dir / filename).resolve()
    if path.parent != tts_dir or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type="audio/wav", filename=filename)


@app.get("/api/chat-history", response_model=ChatHistoryPage)
def chat_history(page: int = Query(0, ge=0), size: int = Query(20, ge=1, le=100), audit=Depends(get_chat_audit)):
    records, total = audit.list_page(page, size)
    return ChatHistoryPage(
        items=[ChatHistoryItem.model_validate(record) for record in records],
        page=page,
        size=size,
        total=total,
    )
