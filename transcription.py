"""Speech-to-text through the ElevenLabs API."""
from typing import Optional

import httpx

import config
from errors import TranscriptionError
from log import get_logger

logger = get_logger("yuedu.transcription")


class ElevenLabsTranscriber:
    def __init__(self, api_key: Optional[str] = None, url: Optional[str] = None,
                 model: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else config.ELEVENLABS_API_KEY
        self.url = url or config.STT_URL
        self.model = model or config.STT_MODEL
        self.timeout = timeout or config.STT_TIMEOUT
        self._transport = transport

    async def transcribe(self, audio_bytes: bytes, file_name: str = "audio") -> dict:
        """Return ``{"transcript": {...}, "language_code", "language_probability"}``."""
        if not self.api_key:
            raise TranscriptionError("speech-to-text API key not configured", configured=False)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.url,
                    headers={"xi-api-key": self.api_key},
                    data={"model_id": self.model},
                    files={"file": (file_name, audio_bytes)},
                )
        except httpx.HTTPError as exc:
            logger.warning("Speech-to-text request failed", extra={"component": "transcription", "detail": str(exc)})
            raise TranscriptionError(f"speech-to-text request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.warning("Speech-to-text API error",
                           extra={"component": "transcription", "status_code": resp.status_code})
            raise TranscriptionError(f"speech-to-text API returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise TranscriptionError("speech-to-text API returned invalid JSON") from exc
        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            raise TranscriptionError("speech-to-text response has no text")

        words = data.get("words")
        return {
            "transcript": {"text": data["text"], "words": words if isinstance(words, list) else []},
            "language_code": data.get("language_code"),
            "language_probability": data.get("language_probability"),
        }
