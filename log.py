"""Structured logging for Yuedu.

JSON lines by default; YUEDU_LOG_FORMAT=text gives one readable line per
record with the structured fields appended as key=value pairs.
YUEDU_LOG_LEVEL controls verbosity (DEBUG/INFO/WARNING/ERROR).
"""
import json
import logging
import os
import sys
from typing import Any, Dict

# Fields accepted through `extra=`; anything else is dropped from output
_EXTRA_FIELDS = (
    "component", "detail", "duration_ms", "count", "endpoint", "status_code", "ip",
    "text_hash", "audio_hash", "provider",
)


def _structured_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = {}
    for key in _EXTRA_FIELDS:
        val = getattr(record, key, None)
        if val is not None:
            fields[key] = val
    return fields


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
            entry["error_type"] = type(record.exc_info[1]).__name__
        entry.update(_structured_fields(record))
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _structured_fields(record)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


def short_hash(value: str) -> str:
    """First 8 hex chars of a content hash; full hashes stay out of logs."""
    return (value or "")[:8]


def get_logger(name: str = "yuedu") -> logging.Logger:
    """Return a logger with exactly one stderr handler attached.

        logger = get_logger("yuedu.analysis")
        logger.info("Analysis cache hit", extra={"component": "analysis", "text_hash": short_hash(h)})
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = os.environ.get("YUEDU_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    handler = logging.StreamHandler(sys.stderr)
    if os.environ.get("YUEDU_LOG_FORMAT", "json") == "text":
        handler.setFormatter(TextFormatter())
    else:
        handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
