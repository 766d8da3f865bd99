"""Shared-password gate and per-client rate limiting."""
import time
from collections import defaultdict
from typing import Optional

from fastapi import Header, HTTPException, Request

import config
from log import get_logger

logger = get_logger("yuedu.auth")

# --- Rate Limiting ---
_rate_buckets: dict = defaultdict(list)
_rate_check_counter = 0


def get_rate_limit_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_check(ip: str) -> bool:
    """Return True if request is allowed, False if rate-limited."""
    now = time.time()
    cutoff = now - config.RATE_LIMIT_WINDOW
    _rate_buckets[ip] = [t for t in _rate_buckets[ip] if t > cutoff]
    if len(_rate_buckets[ip]) >= config.RATE_LIMIT_REQUESTS:
        return False
    _rate_buckets[ip].append(now)
    return True


def rate_limit_cleanup():
    global _rate_check_counter
    _rate_check_counter += 1
    if _rate_check_counter % 100 == 0:
        cutoff = time.time() - config.RATE_LIMIT_WINDOW
        stale = [ip for ip, ts in _rate_buckets.items() if not ts or ts[-1] < cutoff]
        for ip in stale:
            del _rate_buckets[ip]


def reset_rate_limits():
    _rate_buckets.clear()


async def enforce_rate_limit(request: Request):
    """FastAPI dependency for endpoints that can trigger paid upstream calls."""
    rate_limit_cleanup()
    client_key = get_rate_limit_key(request)
    if not rate_limit_check(client_key):
        logger.warning("Rate limited", extra={"component": "auth", "ip": client_key,
                                              "endpoint": request.url.path})
        raise HTTPException(429, "Too many requests. Please wait a minute.")


async def require_password(request: Request, x_app_password: Optional[str] = Header(default=None)):
    """Checks X-App-Password when YUEDU_PASSWORD is set; open otherwise."""
    if config.APP_PASSWORD and x_app_password != config.APP_PASSWORD:
        logger.info("Rejected request with bad password", extra={"component": "auth",
                                                                 "endpoint": request.url.path})
        raise HTTPException(401, "Unauthorized")
