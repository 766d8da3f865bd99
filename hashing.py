"""Content-addressed keys for the text and audio caches."""
import hashlib
import re as _re

_HEX_DIGEST = _re.compile(r"^[0-9a-f]{64}$")


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def text_hash(text: str) -> str:
    """SHA-256 of the exact UTF-8 bytes of ``text``; no normalisation."""
    return content_hash(text.encode("utf-8"))


def is_hex_digest(value: str) -> bool:
    return bool(value) and bool(_HEX_DIGEST.match(value))
