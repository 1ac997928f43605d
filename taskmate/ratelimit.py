from __future__ import annotations

import hashlib
import logging
import uuid

import redis
from fastapi import Depends, HTTPException

from taskmate.auth.deps import get_identity
from taskmate.config import settings
from taskmate.redis_client import redis_client

logger = logging.getLogger(__name__)

def _hash(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()[:24]

# fixed-window limiter per authenticated user using redis INCR + EXPIRE
def rate_limit(name: str, limit_per_window: int, window_seconds: int):
    def _dep(user_id: uuid.UUID = Depends(get_identity)) -> None:
        if not settings.rate_limit_enabled:
            return

        key = f"rl:{name}:{_hash(str(user_id))}"

        try:
            pipe = redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis.RedisError:
            # fail-open if redis is down
            logger.warning("rate limiter unavailable, allowing %s", name)
            return

        if int(count) > int(limit_per_window):
            raise HTTPException(status_code=429, detail="rate_limited")

    return _dep
