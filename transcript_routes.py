"""Audio transcript cache and transcription routes."""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

import config
from analyze_routes import get_transcripts
from auth import enforce_rate_limit, require_password
from errors import TranscriptionError
from hashing import content_hash, is_hex_digest
from log import get_logger, short_hash
from models import TranscriptCacheRequest

logger = get_logger("yuedu.transcript_routes")

router = APIRouter()


@router.post("/api/check-transcript-cache", tags=["Transcripts"], summary="Look up a transcript by audio hash")
async def check_transcript_cache(
    req: TranscriptCacheRequest,
    transcripts=Depends(get_transcripts),
    _pw=Depends(require_password),
):
    if not is_hex_digest(req.file_hash):
        raise HTTPException(400, "file_hash must be a SHA-256 hex digest")
    return transcripts.check_cache(req.file_hash)


@router.post("/api/transcribe", tags=["Transcripts"], summary="Transcribe an uploaded audio file")
async def transcribe(
    audio: UploadFile = File(...),
    file_hash: Optional[str] = Form(default=None),
    transcripts=Depends(get_transcripts),
    _pw=Depends(require_password),
    _rl=Depends(enforce_rate_limit),
):
    """Callers check /api/check-transcript-cache first and upload only on a miss."""
    audio_bytes = await audio.read()
    if not audio_bytes:
        raise HTTPException(400, "Audio file is empty")
    if len(audio_bytes) > config.MAX_AUDIO_BYTES:
        raise HTTPException(413, "Audio file too large")

    actual_hash = content_hash(audio_bytes)
    if file_hash and file_hash != actual_hash:
        raise HTTPException(400, "file_hash does not match uploaded audio")

    try:
        result = await transcripts.transcribe(audio_bytes, actual_hash, audio.filename)
    except TranscriptionError as exc:
        logger.warning("Transcription failed", extra={"component": "transcripts",
                                                      "audio_hash": short_hash(actual_hash), "detail": str(exc)})
        if not exc.configured:
            raise HTTPException(500, "Speech-to-text not configured")
        raise HTTPException(502, "Transcription failed")
    return result
