"""Audio-hash scoped caches: transcripts and per-recording phrase definitions."""
from typing import Dict, List, Optional

from definitions import DefinitionResolver
from errors import StoreError
from log import get_logger, short_hash
from models import Definition, TranscriptRecord
from segmenter import contains_cjk
from store import Store
from transcription import ElevenLabsTranscriber

logger = get_logger("yuedu.transcripts")


def _transcript_payload(record: TranscriptRecord, cached: bool) -> dict:
    return {
        "cached": cached,
        "transcript": record.transcript,
        "language_code": record.language_code,
        "language_probability": record.language_probability,
    }


class TranscriptService:
    def __init__(self, store: Store, resolver: DefinitionResolver, transcriber: ElevenLabsTranscriber):
        self.store = store
        self.resolver = resolver
        self.transcriber = transcriber

    def _cached_record(self, file_hash: str) -> Optional[TranscriptRecord]:
        try:
            return self.store.get_cached_transcript(file_hash)
        except StoreError:
            logger.warning("Transcript cache read failed, treating as miss", exc_info=True,
                           extra={"component": "transcripts", "audio_hash": short_hash(file_hash)})
            return None

    def check_cache(self, file_hash: str) -> dict:
        record = self._cached_record(file_hash)
        if record is None:
            return {"cached": False}
        logger.info("Transcript cache hit", extra={"component": "transcripts", "audio_hash": short_hash(file_hash)})
        return _transcript_payload(record, cached=True)

    async def transcribe(self, audio_bytes: bytes, file_hash: str, file_name: Optional[str] = None) -> dict:
        """Transcribe unless ``file_hash`` is already cached.

        Raises TranscriptionError when the speech-to-text call fails.
        """
        record = self._cached_record(file_hash)
        if record is not None:
            return _transcript_payload(record, cached=True)

        result = await self.transcriber.transcribe(audio_bytes, file_name or "audio")
        record = TranscriptRecord(
            file_hash=file_hash,
            file_name=file_name,
            file_size=len(audio_bytes),
            transcript=result["transcript"],
            language_code=result.get("language_code"),
            language_probability=result.get("language_probability"),
        )
        try:
            self.store.put_transcript(record)
        except StoreError:
            logger.warning("Transcript cache write failed", exc_info=True,
                           extra={"component": "transcripts", "audio_hash": short_hash(file_hash)})
        logger.info("Transcribed audio", extra={"component": "transcripts", "audio_hash": short_hash(file_hash),
                                                "count": len(audio_bytes)})
        return _transcript_payload(record, cached=False)

    async def lookup_definitions(self, phrases: List[str], audio_hash: Optional[str] = None) -> Dict[str, Definition]:
        """Definitions for the Chinese phrases in ``phrases``.

        With ``audio_hash`` the per-recording cache is consulted first and
        newly resolved phrases are merged back into it.
        """
        wanted = [p for p in dict.fromkeys(phrases) if contains_cjk(p)]
        if not audio_hash:
            return await self.resolver.resolve_texts(wanted)

        try:
            cached = self.store.get_cached_phrase_translations(audio_hash) or {}
        except StoreError:
            logger.warning("Phrase translation cache read failed", exc_info=True,
                           extra={"component": "transcripts", "audio_hash": short_hash(audio_hash)})
            cached = {}

        missing = [p for p in wanted if p not in cached]
        fresh, failed = await self.resolver.resolve_checked(missing) if missing else ({}, False)
        if fresh and not failed:
            try:
                self.store.merge_cached_phrase_translations(audio_hash, fresh)
            except StoreError:
                logger.warning("Phrase translation cache write failed", exc_info=True,
                               extra={"component": "transcripts", "audio_hash": short_hash(audio_hash)})

        logger.info("Looked up phrase definitions", extra={
            "component": "transcripts", "audio_hash": short_hash(audio_hash),
            "count": len(missing), "detail": f"{len(wanted) - len(missing)} cached",
        })
        return {p: fresh.get(p) or cached[p] for p in wanted}
