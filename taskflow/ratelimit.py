from __future__ import annotations

import hashlib
import logging

import redis
from fastapi import HTTPException, Request

from taskflow.config import settings
from taskflow.redis_client import redis_client

logger = logging.getLogger(__name__)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

def _caller_key(request: Request, per_caller: bool) -> str:
    if per_caller:
        auth = request.headers.get("authorization", "").strip()
        if auth:
            return f"tok:{_hash(auth)}"
    ip = (request.client.host if request.client else "unknown").strip()
    return f"ip:{_hash(ip)}"

# fixed-window limiter using redis INCR + EXPIRE
def rate_limit(name: str, limit_per_window: int, window_seconds: int, per_caller: bool = False):
    async def _dep(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return

        key = f"rl:{name}:{_caller_key(request, per_caller)}"

        try:
            pipe = redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
            if int(count) > int(limit_per_window):
                logger.warning("rate limit hit for %s", name)
                raise HTTPException(status_code=429, detail="rate_limited")
        except redis.RedisError:
            # fail-open if redis is down
            logger.debug("rate limiter unavailable for %s", name, exc_info=True)
            return

    return _dep
