"""Client-side transcript flow: hash locally, check the cache, upload only on a miss."""
import httpx

from hashing import content_hash
from log import get_logger, short_hash

logger = get_logger("yuedu.client")


class TranscriptFetchError(Exception):
    pass


def fetch_transcript(http: httpx.Client, audio_bytes: bytes, file_name: str = "audio") -> dict:
    """Return the transcript for ``audio_bytes`` with ``audio_hash`` and ``cached`` set.

    ``http`` must be bound to the API base URL. The audio payload is sent
    only when the cache check misses.
    """
    file_hash = content_hash(audio_bytes)

    resp = http.post("/api/check-transcript-cache", json={"file_hash": file_hash})
    if resp.status_code == 200:
        data = resp.json()
        if data.get("cached"):
            logger.info("Transcript cache hit, skipping upload",
                        extra={"component": "client", "audio_hash": short_hash(file_hash)})
            return {**data, "audio_hash": file_hash}
    else:
        logger.warning("Transcript cache check failed", extra={"component": "client",
                                                               "status_code": resp.status_code})

    resp = http.post(
        "/api/transcribe",
        data={"file_hash": file_hash},
        files={"audio": (file_name, audio_bytes)},
    )
    if resp.status_code != 200:
        try:
            detail = resp.json().get("detail", "Transcription failed")
        except ValueError:
            detail = "Transcription failed"
        raise TranscriptFetchError(detail)
    return {"cached": False, **resp.json(), "audio_hash": file_hash}
