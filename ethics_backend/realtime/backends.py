"""
Broadcaster backends.

A broadcaster publishes ``BroadcastEvent``s and lets listeners subscribe
to channels. Listeners are called as ``listener(event_name, payload)``.

- LocMemBroadcaster: in-process fan-out, for tests and single-process dev
- RedisBroadcaster: Redis pub/sub, one Redis channel per event channel
"""

import json
import logging
import threading
from abc import ABC
from abc import abstractmethod
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from ethics_backend.realtime.events import BroadcastEvent

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict[str, Any]], None]


class BaseBroadcaster(ABC):
    @abstractmethod
    def publish(self, event: BroadcastEvent) -> int:
        """Deliver ``event``; returns the number of listeners reached when known."""

    @abstractmethod
    def subscribe(self, channel: str, listener: Listener, socket_id: str | None = None) -> "LocalSubscription":
        """Call ``listener`` for every event on ``channel`` not sent by ``socket_id``."""


class LocalSubscription:
    def __init__(self, broadcaster: "LocMemBroadcaster", channel: str, entry: tuple):
        self.broadcaster = broadcaster
        self.channel = channel
        self.entry = entry

    def unsubscribe(self) -> None:
        self.broadcaster._remove(self.channel, self.entry)


class LocMemBroadcaster(BaseBroadcaster):
    """
    Fan events out to listeners registered in this process.

    Keeps the published events in ``history`` for inspection.
    """

    def __init__(self, **options):
        self.history: list[BroadcastEvent] = []
        self._listeners: dict[str, list[tuple]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: BroadcastEvent) -> int:
        with self._lock:
            self.history.append(event)
            listeners = list(self._listeners.get(event.channel, ()))

        delivered = 0
        for socket_id, listener in listeners:
            if event.socket_id and socket_id == event.socket_id:
                continue
            try:
                listener(event.name, event.payload)
            except Exception:
                logger.exception("Listener failed on %s %s", event.channel, event.name)
            else:
                delivered += 1
        return delivered

    def subscribe(self, channel: str, listener: Listener, socket_id: str | None = None) -> LocalSubscription:
        entry = (socket_id, listener)
        with self._lock:
            self._listeners[channel].append(entry)
        return LocalSubscription(self, channel, entry)

    def _remove(self, channel: str, entry: tuple) -> None:
        with self._lock:
            if entry in self._listeners.get(channel, ()):
                self._listeners[channel].remove(entry)

    def events_on(self, channel: str) -> list[BroadcastEvent]:
        return [event for event in self.history if event.channel == channel]

    def clear(self) -> None:
        with self._lock:
            self.history.clear()
            self._listeners.clear()


class RedisSubscription:
    def __init__(self, pubsub, thread):
        self.pubsub = pubsub
        self.thread = thread

    def unsubscribe(self) -> None:
        self.thread.stop()
        self.pubsub.close()


class RedisBroadcaster(BaseBroadcaster):
    """
    Publish events through Redis pub/sub.

    Uses the django-redis connection of the ``default`` cache unless a
    ``url`` option is given.
    """

    def __init__(self, url: str | None = None, prefix: str = "ethics:", alias: str = "default", **options):
        self.url = url
        self.prefix = prefix
        self.alias = alias
        self._connection = None

    @property
    def connection(self):
        if self._connection is None:
            if self.url:
                import redis

                self._connection = redis.Redis.from_url(self.url)
            else:
                from django_redis import get_redis_connection

                self._connection = get_redis_connection(self.alias)
        return self._connection

    def key(self, channel: str) -> str:
        return f"{self.prefix}{channel}"

    def publish(self, event: BroadcastEvent) -> int:
        return self.connection.publish(self.key(event.channel), json.dumps(event.to_message()))

    def subscribe(self, channel: str, listener: Listener, socket_id: str | None = None) -> RedisSubscription:
        def handle(message):
            try:
                event = BroadcastEvent.from_message(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError):
                logger.warning("Discarding malformed broadcast on %s", channel)
                return
            if event.socket_id and event.socket_id == socket_id:
                return
            try:
                listener(event.name, event.payload)
            except Exception:
                logger.exception("Listener failed on %s %s", event.channel, event.name)

        pubsub = self.connection.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self.key(channel): handle})
        thread = pubsub.run_in_thread(sleep_time=0.05, daemon=True)
        return RedisSubscription(pubsub, thread)
