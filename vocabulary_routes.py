"""Highlighted-word vocabulary routes, keyed by an externally supplied user id."""
from fastapi import APIRouter, Depends, HTTPException, Request

from auth import require_password
from errors import StoreError
from log import get_logger
from models import HIGHLIGHT_SORTS, HighlightRequest, PinRequest

logger = get_logger("yuedu.vocabulary_routes")

router = APIRouter()


def get_store(request: Request):
    return request.app.state.store


def _storage_unavailable(exc: StoreError):
    logger.error("Vocabulary store failed", extra={"component": "vocabulary", "detail": str(exc)})
    return HTTPException(500, "Storage unavailable")


@router.post("/api/highlighted-words", tags=["Vocabulary"], summary="Record a highlighted word")
async def add_highlighted_word(req: HighlightRequest, store=Depends(get_store), _pw=Depends(require_password)):
    if not req.user_id or not req.word.strip():
        raise HTTPException(400, "user_id and word are required")
    try:
        word = store.record_highlight(req.user_id, req.word.strip(), req.pinyin, req.definition)
    except StoreError as exc:
        raise _storage_unavailable(exc)
    return {"word": word.model_dump()}


@router.get("/api/highlighted-words", tags=["Vocabulary"], summary="List a user's highlighted words")
async def list_highlighted_words(user_id: str = "", sort: str = "count", store=Depends(get_store),
                                 _pw=Depends(require_password)):
    if not user_id:
        raise HTTPException(400, "user_id is required")
    if sort not in HIGHLIGHT_SORTS:
        raise HTTPException(400, f"sort must be one of {', '.join(HIGHLIGHT_SORTS)}")
    try:
        words = store.list_highlights(user_id, sort)
    except StoreError as exc:
        raise _storage_unavailable(exc)
    return {"words": [w.model_dump() for w in words]}


@router.delete("/api/highlighted-words/{word_id}", tags=["Vocabulary"], summary="Remove a highlighted word")
async def delete_highlighted_word(word_id: str, user_id: str = "", store=Depends(get_store),
                                  _pw=Depends(require_password)):
    if not user_id:
        raise HTTPException(400, "user_id is required")
    try:
        removed = store.delete_highlight(user_id, word_id)
    except StoreError as exc:
        raise _storage_unavailable(exc)
    if not removed:
        raise HTTPException(404, "Word not found")
    return {"ok": True}


@router.patch("/api/highlighted-words/{word_id}/pin", tags=["Vocabulary"], summary="Pin or unpin a word")
async def pin_highlighted_word(word_id: str, req: PinRequest, store=Depends(get_store),
                               _pw=Depends(require_password)):
    try:
        updated = store.set_pinned(req.user_id, word_id, req.pinned)
    except StoreError as exc:
        raise _storage_unavailable(exc)
    if not updated:
        raise HTTPException(404, "Word not found")
    return {"ok": True, "pinned": req.pinned}
