import asyncio
import json
import logging
from typing import Any

import redis
import redis.asyncio as aioredis

from taskmate.realtime.hub import ChannelHub

logger = logging.getLogger(__name__)

class RedisBridge:
    """Carries hub events between API workers over redis pub/sub."""

    def __init__(self, client: redis.Redis, prefix: str):
        self._client = client
        self._prefix = prefix

    def channel_for(self, topic: str) -> str:
        return f"{self._prefix}{topic}"

    def topic_for(self, channel: str) -> str | None:
        if not channel.startswith(self._prefix):
            return None
        return channel[len(self._prefix):]

    def publish(self, topic: str, event: dict[str, Any]) -> None:
        self._client.publish(self.channel_for(topic), json.dumps(event))

async def listen(hub: ChannelHub, bridge: RedisBridge, redis_url: str) -> None:
    """Pattern-subscribe to every hub channel and deliver into the local hub."""
    sub_client = aioredis.from_url(redis_url, decode_responses=True)
    pubsub = sub_client.pubsub()
    pattern = bridge.channel_for("*")
    await pubsub.psubscribe(pattern)
    logger.info("Subscribed to %s", pattern)

    try:
        async for raw in pubsub.listen():
            if raw["type"] != "pmessage":
                continue
            topic = bridge.topic_for(raw["channel"])
            if topic is None:
                continue
            try:
                event = json.loads(raw["data"])
            except ValueError:
                logger.warning("ignoring malformed event on %s", raw["channel"])
                continue
            hub.deliver(topic, event)
    except asyncio.CancelledError:
        pass
    finally:
        await pubsub.punsubscribe(pattern)
        await sub_client.aclose()
