"""Text analysis, segmentation and definition lookup routes."""
from fastapi import APIRouter, Depends, HTTPException, Request

import config
from auth import enforce_rate_limit, require_password
from errors import SegmentationError
from hashing import is_hex_digest
from log import get_logger, short_hash
from models import AnalyzeRequest, LookupDefinitionsRequest, SegmentRequest

logger = get_logger("yuedu.analyze_routes")

router = APIRouter()


def get_analyzer(request: Request):
    return request.app.state.analyzer


def get_transcripts(request: Request):
    return request.app.state.transcripts


def _check_text_length(text: str):
    if len(text) > config.MAX_TEXT_LEN:
        raise HTTPException(400, f"Input too long (max {config.MAX_TEXT_LEN} characters)")


@router.post("/api/analyze-text", tags=["Analysis"], summary="Segment, define and optionally translate text",
             description="Returns phrases, phrase definitions and (when requested or already cached) "
                         "sentence translations, cached by text hash.")
async def analyze_text(
    req: AnalyzeRequest,
    analyzer=Depends(get_analyzer),
    _pw=Depends(require_password),
    _rl=Depends(enforce_rate_limit),
):
    if not req.text or not req.text.strip():
        raise HTTPException(400, "Text is required")
    if not is_hex_digest(req.text_hash):
        raise HTTPException(400, "text_hash must be a SHA-256 hex digest")
    _check_text_length(req.text)

    try:
        bundle = await analyzer.analyze(req.text, req.text_hash, req.include_sentences)
    except SegmentationError:
        logger.exception("Segmentation failed", extra={"component": "analysis",
                                                       "text_hash": short_hash(req.text_hash)})
        raise HTTPException(503, "Segmentation unavailable")
    return bundle.model_dump()


@router.post("/api/segment-text", tags=["Analysis"], summary="Split text into phrases")
async def segment_text(
    req: SegmentRequest,
    analyzer=Depends(get_analyzer),
    _pw=Depends(require_password),
):
    """Fast word segmentation using jieba. No LLM needed."""
    _check_text_length(req.text)
    try:
        phrases = analyzer.segment_only(req.text)
    except SegmentationError:
        logger.exception("Segmentation failed", extra={"component": "segmenter"})
        raise HTTPException(503, "Segmentation unavailable")
    return {"phrases": [p.model_dump() for p in phrases]}


@router.post("/api/lookup-definitions", tags=["Analysis"], summary="Definitions for a list of phrases")
async def lookup_definitions(
    req: LookupDefinitionsRequest,
    transcripts=Depends(get_transcripts),
    _pw=Depends(require_password),
    _rl=Depends(enforce_rate_limit),
):
    if not req.phrases:
        raise HTTPException(400, "phrases is required")
    if len(req.phrases) > config.MAX_LOOKUP_PHRASES:
        raise HTTPException(400, f"Too many phrases (max {config.MAX_LOOKUP_PHRASES})")
    if req.audio_hash is not None and not is_hex_digest(req.audio_hash):
        raise HTTPException(400, "audio_hash must be a SHA-256 hex digest")

    definitions = await transcripts.lookup_definitions(req.phrases, req.audio_hash)
    return {phrase: d.model_dump() for phrase, d in definitions.items()}
