"""
Speech recognition and synthesis backends.

Local mode shells out to the PaddleSpeech CLI; online mode calls DashScope
(ASR through the chat completions endpoint with an inline audio part, TTS
through the multimodal generation endpoint). Each call is attempted once,
bounded by a timeout, and every failure comes back as None.
"""

import base64
import subprocess
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import requests

from .llm import ChatCompletionClient
from ..util.logging import logger


class ISpeechBackend(ABC):
    """Abstract interface for ASR/TTS backends."""

    name = "speech"

    @abstractmethod
    def transcribe(self, audio_path: str) -> Optional[str]:
        """Transcribe a WAV file. Returns None when nothing was recognized."""
        pass

    @abstractmethod
    def synthesize(self, text: str) -> Optional[bytes]:
        """Synthesize ``text`` into a complete WAV container."""
        pass


class PaddleSpeechBackend(ISpeechBackend):
    """PaddleSpeech CLI (``paddlespeech asr`` / ``paddlespeech tts``)."""

    name = "paddlespeech"

    def __init__(self, command: str = "paddlespeech", work_dir: str = "temp",
                 asr_timeout: int = 60, tts_timeout: int = 120, max_input_length: int = 500):
        self.command = command
        self.work_dir = Path(work_dir)
        self.asr_timeout = asr_timeout
        self.tts_timeout = tts_timeout
        self.max_input_length = max_input_length

    def _run(self, args, timeout: int) -> Optional[subprocess.CompletedProcess]:
        try:
            result = subprocess.run(
                [self.command] + args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.command} {args[0]} timed out after {timeout}s")
            return None
        except OSError as e:
            logger.error(f"Could not run {self.command} {args[0]}: {e}")
            return None

        if result.returncode != 0:
            logger.warning(f"{self.command} {args[0]} exited with {result.returncode}: {result.stderr.strip()[:200]}")
            return None
        return result

    def transcribe(self, audio_path: str) -> Optional[str]:
        result = self._run(["asr", "--lang", "zh", "--input", str(Path(audio_path).absolute())], self.asr_timeout)
        if result is None:
            return None
        # The transcript is the last line; earlier lines are model loading chatter
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return lines[-1] if lines else None

    def synthesize(self, text: str) -> Optional[bytes]:
        if not text or not text.strip():
            return None
        text = text[:self.max_input_length]
        text = text.replace('"', "'").replace("\r", " ").replace("\n", " ")

        self.work_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.work_dir / f"tts_{uuid.uuid4().hex[:8]}.wav"
        try:
            result = self._run(["tts", "--input", text, "--output", str(out_path.absolute())], self.tts_timeout)
            if result is None or not out_path.exists():
                return None
            return out_path.read_bytes()
        finally:
            out_path.unlink(missing_ok=True)


class DashScopeSpeechBackend(ISpeechBackend):
    """DashScope qwen3 ASR and TTS."""

    name = "dashscope"

    def __init__(self, api_key: str, base_url: str, asr_model: str = "qwen3-asr-flash",
                 tts_url: str = "https://dashscope.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation",
                 tts_model: str = "qwen3-tts-flash", voice: str = "Cherry", language: str = "Chinese",
                 asr_timeout: int = 60, tts_timeout: int = 120):
        self.api_key = api_key or ""
        self.asr_model = asr_model
        self.tts_url = tts_url
        self.tts_model = tts_model
        self.voice = voice
        self.language = language
        self.asr_timeout = asr_timeout
        self.tts_timeout = tts_timeout
        self.asr_client = ChatCompletionClient(base_url, asr_model, api_key=self.api_key,
                                               timeout=asr_timeout, max_tokens=None)

    def transcribe(self, audio_path: str) -> Optional[str]:
        try:
            audio = Path(audio_path).read_bytes()
        except OSError as e:
            logger.error(f"Could not read audio {audio_path}: {e}")
            return None
        if not audio:
            return None

        data_uri = "data:audio/wav;base64," + base64.b64encode(audio).decode("ascii")
        messages = [{
            "role": "user",
            "content": [{"type": "input_audio", "input_audio": {"data": data_uri}}],
        }]
        return self.asr_client.complete(
            messages,
            timeout=self.asr_timeout,
            stream=False,
            asr_options={"enable_itn": False},
        )

    def synthesize(self, text: str) -> Optional[bytes]:
        if not text or not text.strip():
            return None
        if not self.api_key.strip():
            logger.warning("TTS skipped: QWEN_API_KEY is not configured")
            return None

        try:
            response = requests.post(
                self.tts_url,
                json={
                    "model": self.tts_model,
                    "input": {"text": text, "voice": self.voice, "language_type": self.language},
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.tts_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"TTS request failed: {e}")
            return None

        output = body.get("output") if isinstance(body, dict) else None
        audio = output.get("audio") if isinstance(output, dict) else None
        if not isinstance(audio, dict):
            audio = {}
        if audio.get("data"):
            try:
                return base64.b64decode(audio["data"])
            except ValueError as e:
                logger.error(f"TTS returned undecodable audio: {e}")
                return None
        if audio.get("url"):
            return self._download(audio["url"])

        logger.warning("TTS response carried neither audio data nor url")
        return None

    def _download(self, url: str) -> Optional[bytes]:
        # Cloud audio URLs expire, so the bytes are fetched right away
        try:
            response = requests.get(url, timeout=self.tts_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Downloading synthesized audio failed: {e}")
            return None
        return response.content or None
