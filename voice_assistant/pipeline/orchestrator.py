"""
Voice pipeline orchestration.

Sequences one request through a fixed, linear set of stages:

1. Transcribe the uploaded audio (skipped for text requests)
2. Optionally retrieve knowledge-base context for the question
3. Generate a reply, with the context as a system instruction
4. Extract a device-control intent and hand it to the dispatcher (not awaited)
5. Synthesize the spoken reply in chunks and merge the audio
6. Append an audit record

Any stage that produces nothing ends the run in FAILED with a user-facing
reason. External calls are made once each; nothing is retried.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from . import audio
from .intent import ControlIntent, IntentExtractor
from ..core import config
from ..core.errors import ConfigurationMissingError, VoiceAssistantError
from ..util.logging import logger

MOCK_TEXT = "(Mock) Hello"
MOCK_REPLY = "(Mock) Hello, I am your voice assistant."
MOCK_AUDIO_FILE = "mock_reply.wav"

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
NO_CONTEXT_SYSTEM_PROMPT = (
    "You are an assistant. If you cannot determine the answer, say clearly that you "
    "don't know. Do not make things up."
)
RAG_SYSTEM_PROMPT = (
    "Answer strictly from the knowledge base below and the user's question. Use only "
    "information present in the knowledge base; do not invent or guess. If the knowledge "
    "base has nothing relevant to the question, answer clearly that the current knowledge "
    "base has no relevant content, or that you don't know.\n\n[Knowledge base]\n"
)

MSG_CONFIG_MISSING = "Online mode requires QWEN_API_KEY to be configured"
MSG_DIRECTORIES = "Could not prepare working directories"
MSG_NO_TRANSCRIPT = "Speech recognition returned no result, please try again"
MSG_NO_REPLY = "The language model returned no reply"
MSG_TTS_FAILED = "Speech synthesis failed"


class PipelineStage(Enum):
    RECEIVED = "received"
    MOCK_SHORT_CIRCUIT = "mock_short_circuit"
    TRANSCRIBING = "transcribing"
    TRANSCRIBED = "transcribed"
    AUGMENTING = "augmenting"
    GENERATING = "generating"
    GENERATED = "generated"
    EXTRACTING_INTENT = "extracting_intent"
    DISPATCHING_DEVICE = "dispatching_device"
    SYNTHESIZING = "synthesizing"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run. ``stage`` is RESPONDED or FAILED."""
    stage: PipelineStage = PipelineStage.RECEIVED
    text: Optional[str] = None
    reply: Optional[str] = None
    audio_file: Optional[str] = None
    audio_url: Optional[str] = None
    rag_context: str = ""
    intent: Optional[ControlIntent] = None
    error: Optional[str] = None
    timeline: List[PipelineStage] = field(default_factory=lambda: [PipelineStage.RECEIVED])

    @property
    def success(self) -> bool:
        return self.stage == PipelineStage.RESPONDED


class StageFailed(VoiceAssistantError):
    """Raised inside a run to short-circuit to FAILED."""
    pass


def rag_system_prompt(context: str) -> str:
    if context and context.strip():
        return RAG_SYSTEM_PROMPT + context
    return NO_CONTEXT_SYSTEM_PROMPT


def audio_url(base_url: str, filename: str) -> str:
    return f"{(base_url or '').rstrip('/')}/tts/{filename}"


def _timestamped_name(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.wav"


class PipelineOrchestrator:
    """Runs voice and text requests through ASR, RAG, LLM, device control and TTS."""

    def __init__(self, speech=None, chat_client=None, knowledge_base=None, dispatcher=None, audit=None,
                 intent_extractor: Optional[IntentExtractor] = None, online: Optional[bool] = None,
                 api_key: Optional[str] = None, mock: Optional[bool] = None, rag_enabled: Optional[bool] = None,
                 temp_dir: Optional[str] = None, tts_dir: Optional[str] = None,
                 max_tts_chunk: Optional[int] = None, rag_top_k: Optional[int] = None):
        self.speech = speech or config.get_speech_backend()
        self.chat_client = chat_client or config.get_chat_client()
        self.knowledge_base = knowledge_base
        self.dispatcher = dispatcher
        self.audit = audit
        self.intent_extractor = intent_extractor or IntentExtractor()

        self.online = config.is_online_mode() if online is None else online
        self.api_key = config.QWEN_API_KEY if api_key is None else api_key
        self.mock = config.MOCK_MODE if mock is None else mock
        self.rag_enabled = config.RAG_ENABLED if rag_enabled is None else rag_enabled
        self.temp_dir = Path(temp_dir or config.TEMP_DIR)
        self.tts_dir = Path(tts_dir or config.TTS_DIR)
        self.max_tts_chunk = max_tts_chunk or config.TTS_MAX_INPUT_LENGTH
        self.rag_top_k = rag_top_k or config.RAG_TOP_K

    def mode_tag(self, channel: str) -> str:
        return f"{channel}-{'online' if self.online else 'local'}"

    # Entry points

    def process_voice(self, audio_bytes: bytes, base_url: str = "") -> PipelineResult:
        """Full pipeline for an uploaded WAV recording."""
        result = PipelineResult()
        if self.mock:
            return self._mock_response(result, base_url)

        upload_path = None
        try:
            self._prepare_directories()
            self._check_configuration()
            upload_path = self._save_upload(audio_bytes)

            self._advance(result, PipelineStage.TRANSCRIBING)
            transcript = self.speech.transcribe(str(upload_path))
            if not transcript or not transcript.strip():
                raise StageFailed(MSG_NO_TRANSCRIPT)
            result.text = transcript.strip()
            self._advance(result, PipelineStage.TRANSCRIBED, {"text": result.text})

            self._respond(result, base_url, "voice")
        except (StageFailed, ConfigurationMissingError) as e:
            self._fail(result, str(e))
        except Exception as e:
            logger.error(f"Voice pipeline crashed at {result.stage.value}: {e}")
            self._fail(result, f"processing failed: {e}")
        finally:
            if upload_path is not None:
                upload_path.unlink(missing_ok=True)

        return result

    def process_text(self, question: str, base_url: str = "") -> PipelineResult:
        """Pipeline for a typed question: everything from generation onward."""
        result = PipelineResult(text=(question or "").strip())
        if self.mock:
            return self._mock_response(result, base_url, text=result.text)

        try:
            if not result.text:
                raise StageFailed("Question must not be empty")
            self._prepare_directories()
            self._check_configuration()
            self._respond(result, base_url, "text")
        except (StageFailed, ConfigurationMissingError) as e:
            self._fail(result, str(e))
        except Exception as e:
            logger.error(f"Text pipeline crashed at {result.stage.value}: {e}")
            self._fail(result, f"processing failed: {e}")

        return result

    def transcribe(self, audio_bytes: bytes) -> Optional[str]:
        """Transcription only. Returns None when nothing was recognized."""
        if self.mock:
            return MOCK_TEXT
        if self.online and not self.api_key.strip():
            return None

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        upload_path = self._save_upload(audio_bytes)
        try:
            transcript = self.speech.transcribe(str(upload_path))
        finally:
            upload_path.unlink(missing_ok=True)
        return transcript.strip() if transcript and transcript.strip() else None

    def synthesize(self, text: str) -> Optional[str]:
        """Standalone TTS. Returns the written file name, or None."""
        if not text or not text.strip():
            return None
        if self.online and not self.api_key.strip():
            logger.warning(MSG_CONFIG_MISSING)
            return None

        wav = self._synthesize_audio(text.strip())
        if not wav:
            return None
        self.tts_dir.mkdir(parents=True, exist_ok=True)
        return self._write_audio(wav, "tts")

    # Stages

    def _respond(self, result: PipelineResult, base_url: str, channel: str):
        """Augment, generate, extract intent, synthesize and audit."""
        if self.rag_enabled:
            self._advance(result, PipelineStage.AUGMENTING)
            result.rag_context = self._retrieve(result.text)
            system_prompt = rag_system_prompt(result.rag_context)
        else:
            system_prompt = DEFAULT_SYSTEM_PROMPT

        self._advance(result, PipelineStage.GENERATING)
        reply = self.chat_client.complete([
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": result.text},
        ])
        if not reply or not reply.strip():
            raise StageFailed(MSG_NO_REPLY)
        self._advance(result, PipelineStage.GENERATED, {"reply": reply})

        self._advance(result, PipelineStage.EXTRACTING_INTENT)
        result.intent = self.intent_extractor.parse(reply)
        if result.intent is not None:
            self._advance(result, PipelineStage.DISPATCHING_DEVICE, {
                "room": result.intent.room,
                "turn_on": result.intent.turn_on,
            })
            self._dispatch(result.intent)
        result.reply = self.intent_extractor.strip(reply)

        self._advance(result, PipelineStage.SYNTHESIZING)
        wav = self._synthesize_audio(result.reply)
        if not wav:
            raise StageFailed(MSG_TTS_FAILED)
        result.audio_file = self._write_audio(wav, channel)
        result.audio_url = audio_url(base_url, result.audio_file)

        self._advance(result, PipelineStage.RESPONDED, {"audio_file": result.audio_file})
        self._record_audit(result, channel)

    def _retrieve(self, question: str) -> str:
        if self.knowledge_base is None:
            return ""
        try:
            return self.knowledge_base.build_context(question, self.rag_top_k)
        except Exception as e:
            logger.warning(f"Knowledge base lookup failed, answering without context: {e}")
            return ""

    def _dispatch(self, intent: ControlIntent):
        if self.dispatcher is None:
            logger.warning(f"Device intent for room '{intent.room}' ignored: no dispatcher configured")
            return
        try:
            self.dispatcher.dispatch_async(intent.room, intent.turn_on)
        except RuntimeError as e:
            logger.error(f"Could not hand off device dispatch for room '{intent.room}': {e}")

    def _synthesize_audio(self, text: str) -> Optional[bytes]:
        chunks = audio.split_text(text, self.max_tts_chunk)
        segments = []
        for index, chunk in enumerate(chunks):
            segment = self.speech.synthesize(chunk)
            if segment:
                segments.append(segment)
            else:
                logger.warning(f"TTS chunk {index + 1}/{len(chunks)} produced no audio, skipping")
        if not segments:
            return None
        return audio.merge_segments(segments)

    def _record_audit(self, result: PipelineResult, channel: str):
        if self.audit is None:
            return
        try:
            self.audit.append(
                question=result.text,
                answer=result.reply,
                mode=self.mode_tag(channel),
                answer_source="RAG" if self.rag_enabled else "LLM",
                rag_context=result.rag_context or None,
            )
        except Exception as e:
            logger.log_audit_write(self.mode_tag(channel), result.text or "", status="failed")
            logger.warning(f"Audit append failed, response unaffected: {e}")

    # Helpers

    def _advance(self, result: PipelineResult, stage: PipelineStage, details: Optional[dict] = None):
        result.stage = stage
        result.timeline.append(stage)
        logger.log_pipeline_stage(stage.value, "entered", details)

    def _fail(self, result: PipelineResult, reason: str):
        result.error = reason
        result.stage = PipelineStage.FAILED
        result.timeline.append(PipelineStage.FAILED)
        logger.log_pipeline_stage(PipelineStage.FAILED.value, "failed", {"reason": reason})

    def _check_configuration(self):
        if self.online and not self.api_key.strip():
            raise ConfigurationMissingError(MSG_CONFIG_MISSING)

    def _prepare_directories(self):
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            self.tts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"{MSG_DIRECTORIES}: {e}")
            raise StageFailed(MSG_DIRECTORIES) from e

    def _save_upload(self, audio_bytes: bytes) -> Path:
        path = self.temp_dir / _timestamped_name("voice")
        path.write_bytes(audio_bytes)
        return path

    def _write_audio(self, wav: bytes, prefix: str) -> str:
        filename = _timestamped_name(prefix)
        (self.tts_dir / filename).write_bytes(wav)
        return filename

    def _mock_response(self, result: PipelineResult, base_url: str, text: Optional[str] = None) -> PipelineResult:
        self._advance(result, PipelineStage.MOCK_SHORT_CIRCUIT)
        self._ensure_mock_audio()
        result.text = text or MOCK_TEXT
        result.reply = MOCK_REPLY
        result.audio_file = MOCK_AUDIO_FILE
        result.audio_url = audio_url(base_url, MOCK_AUDIO_FILE)
        self._advance(result, PipelineStage.RESPONDED)
        return result

    def _ensure_mock_audio(self):
        # Half a second of silence so the mock URL is playable
        path = self.tts_dir / MOCK_AUDIO_FILE
        if path.exists():
            return
        try:
            self.tts_dir.mkdir(parents=True, exist_ok=True)
            silence = bytes(24000)
            path.write_bytes(audio.wav_header(len(silence)) + silence)
        except OSError as e:
            logger.warning(f"Could not write mock audio {path}: {e}")
