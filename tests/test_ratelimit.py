import uuid

import pytest
import redis
from fastapi import HTTPException

from taskmate import ratelimit
from taskmate.config import settings

class FakePipeline:
    def __init__(self, store: dict, down: bool):
        self.store = store
        self.down = down
        self.key = None

    def incr(self, key):
        self.key = key

    def expire(self, key, seconds, nx=False):
        pass

    def execute(self):
        if self.down:
            raise redis.ConnectionError("connection refused")
        self.store[self.key] = self.store.get(self.key, 0) + 1
        return [self.store[self.key], True]

class FakeRedis:
    def __init__(self, down: bool = False):
        self.store: dict = {}
        self.down = down

    def pipeline(self):
        return FakePipeline(self.store, self.down)

def test_limit_applies_per_user(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(ratelimit, "redis_client", FakeRedis())
    check = ratelimit.rate_limit("messages:post", limit_per_window=2, window_seconds=60)
    alice, bob = uuid.uuid4(), uuid.uuid4()

    check(alice)
    check(alice)
    with pytest.raises(HTTPException) as exc:
        check(alice)
    assert exc.value.status_code == 429

    # separate bucket
    check(bob)

def test_fails_open_without_redis(monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(ratelimit, "redis_client", FakeRedis(down=True))
    check = ratelimit.rate_limit("requests:submit", limit_per_window=1, window_seconds=60)

    for _ in range(3):
        check(uuid.uuid4())
