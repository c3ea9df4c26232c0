# app/services/realtime.py
# Change-feed transport: per-table publish/subscribe of committed row changes
#
#   publish(ChangeEvent)                     ← app/db/events.py after every commit
#   subscribe(table, callback, event_types)  → Subscription (call .unsubscribe())
#
# Two backends, chosen by REALTIME_BACKEND:
#   memory → InMemoryChangeFeed  (single API instance, tests)
#   redis  → RedisChangeFeed     (pub/sub channel per table, every instance sees every commit)
#
# Ordering: events for one table reach a subscriber in publish order.
# Nothing is guaranteed across tables or across separate subscriptions.

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import redis as redis_lib
from pydantic import BaseModel, Field, ValidationError

from app.core.config import settings

log = logging.getLogger(__name__)

EventType = Literal["insert", "update", "delete"]
WILDCARD = "*"


class ChangeEvent(BaseModel):
    """One committed row change, shaped like the hosted store's realtime payload."""
    event_type: EventType
    table: str
    new: Optional[Dict[str, Any]] = None     # Row after the change (insert/update)
    old: Optional[Dict[str, Any]] = None     # Primary key + previous values (update/delete)
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by subscribe(). Unsubscribing twice is a no-op."""

    def __init__(self, table: str, close: Callable[[], None]):
        self.table = table
        self._close = close
        self._lock = threading.Lock()
        self.active = True

    def unsubscribe(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._close()


def _accepts(event_types: Iterable[str], event: ChangeEvent) -> bool:
    types = set(event_types)
    return WILDCARD in types or event.event_type in types


# ── In-process broker ─────────────────────────────────────────────────────────

class InMemoryChangeFeed:
    """
    Thread-safe in-process broker.
    Dispatch happens under one lock so concurrent committers cannot interleave
    deliveries to the same subscriber.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[tuple]] = defaultdict(list)

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event_types: Iterable[str] = (WILDCARD,),
    ) -> Subscription:
        entry = (callback, tuple(event_types))
        with self._lock:
            self._subscribers[table].append(entry)

        def close() -> None:
            with self._lock:
                if entry in self._subscribers[table]:
                    self._subscribers[table].remove(entry)

        log.debug("Subscribed to %s changes (%s)", table, ",".join(entry[1]))
        return Subscription(table, close)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            for callback, event_types in list(self._subscribers.get(event.table, [])):
                if not _accepts(event_types, event):
                    continue
                try:
                    callback(event)
                except Exception:
                    # One broken subscriber must not stop delivery to the others
                    log.exception("Change-feed subscriber failed on %s %s", event.table, event.event_type)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, []))


# ── Redis pub/sub ─────────────────────────────────────────────────────────────

class RedisChangeFeed:
    """
    Redis-backed feed: one channel per table, JSON-encoded ChangeEvent payloads.
    Each subscription owns a PubSub connection drained by its own worker thread,
    so its callbacks run serially in channel order.
    """

    def __init__(self, url: str, channel_prefix: str):
        self._client = redis_lib.Redis.from_url(url)
        self._prefix = channel_prefix

    def channel(self, table: str) -> str:
        return f"{self._prefix}:{table}"

    def publish(self, event: ChangeEvent) -> None:
        self._client.publish(self.channel(event.table), event.model_dump_json())

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        event_types: Iterable[str] = (WILDCARD,),
    ) -> Subscription:
        types = tuple(event_types)
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)

        def handler(message: dict) -> None:
            try:
                event = ChangeEvent.model_validate_json(message["data"])
            except ValidationError as exc:
                log.warning("Dropping undecodable change event on %s: %s", table, exc)
                return
            if _accepts(types, event):
                callback(event)

        pubsub.subscribe(**{self.channel(table): handler})
        worker = pubsub.run_in_thread(sleep_time=0.01, daemon=True)

        def close() -> None:
            worker.stop()
            pubsub.close()

        return Subscription(table, close)


@lru_cache
def get_change_feed():
    """Process-wide change feed for the configured backend."""
    if settings.realtime_backend == "redis":
        log.info("Change feed: redis pub/sub at %s", settings.redis_url)
        return RedisChangeFeed(settings.redis_url, settings.realtime_channel_prefix)
    return InMemoryChangeFeed()
