"""In-process publish/subscribe keyed by topic.

Publishers are sync request handlers running on the threadpool, subscribers
are websocket sessions running on an event loop. ``publish`` hands each
event to the subscriber's own loop with ``call_soon_threadsafe`` so it is
safe from either side. Delivery is at-most-once: a subscriber whose queue is
full loses the event and is expected to recover by re-fetching the durable
log.
"""
import asyncio
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol

from taskmate.config import settings

logger = logging.getLogger(__name__)

APPENDS_TOPIC = "appends"

def project_topic(project_id: uuid.UUID | str) -> str:
    return f"project:{project_id}"

class Bridge(Protocol):
    def publish(self, topic: str, event: dict[str, Any]) -> None: ...

class Subscription:
    def __init__(self, topic: str, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.topic = topic
        self._loop = loop
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        # optional predicate, runs on the subscriber's loop before queueing
        self.accept: Callable[[dict[str, Any]], bool] | None = None

    def _offer(self, event: dict[str, Any]) -> None:
        if self.accept is not None and not self.accept(event):
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("subscriber on %s is full, dropped %s event", self.topic, event.get("type"))

    def offer_threadsafe(self, event: dict[str, Any]) -> None:
        try:
            self._loop.call_soon_threadsafe(self._offer, event)
        except RuntimeError:
            # loop already closed, the session is going away
            logger.debug("dropping event for closed subscriber on %s", self.topic)

    async def get(self) -> dict[str, Any]:
        return await self._queue.get()

    def get_nowait(self) -> dict[str, Any]:
        return self._queue.get_nowait()

class ChannelHub:
    def __init__(self, maxsize: int | None = None):
        self._subs: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()
        self._maxsize = maxsize or settings.subscriber_queue_size
        self._bridge: Bridge | None = None

    def attach_bridge(self, bridge: Bridge | None) -> None:
        self._bridge = bridge

    def subscribe(self, topic: str) -> Subscription:
        sub = Subscription(topic, asyncio.get_running_loop(), self._maxsize)
        with self._lock:
            self._subs.setdefault(topic, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.topic)
            if subs and sub in subs:
                subs.remove(sub)
                if not subs:
                    del self._subs[sub.topic]

    @contextmanager
    def subscription(self, topic: str) -> Iterator[Subscription]:
        sub = self.subscribe(topic)
        try:
            yield sub
        finally:
            self.unsubscribe(sub)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subs.get(topic, []))

    def publish(self, topic: str, event: dict[str, Any]) -> None:
        """Fan an event out, through the bridge when one is attached.

        Never raises: realtime delivery is best effort and must not fail the
        request that produced the event.
        """
        if self._bridge is None:
            self.deliver(topic, event)
            return

        try:
            self._bridge.publish(topic, event)
        except Exception:
            logger.warning("bridge publish to %s failed, delivering locally only", topic, exc_info=True)
            self.deliver(topic, event)

    def deliver(self, topic: str, event: dict[str, Any]) -> None:
        with self._lock:
            subs = list(self._subs.get(topic, []))
        for sub in subs:
            sub.offer_threadsafe(event)

hub = ChannelHub()
