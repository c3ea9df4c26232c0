# app/services/request_feed.py
# Live request board: the open requests a viewer sees, kept current by change events
#
#   subscribe(on_list_changed)   → attach to the "requests" change feed (buffers until loaded)
#   initialize(db, viewer_role)  → newest N requests, fulfilled ones dropped, buffer replayed
#   on_change_event(event)       → reduce_feed() over the current list
#   unsubscribe()                → release the handle (idempotent)
#
# reduce_feed() is a pure function so the reconciliation rules can be tested
# without any transport:
#   insert → prepend unless fulfilled
#   update → fulfilled: remove by id; otherwise merge into the row with that id
#   delete → remove by id
# No-ops return the very same list object, so callers can skip re-rendering.

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import store_call
from app.models.request import REQUEST_FULFILLED, Request
from app.schemas.request import RequestFeedItem
from app.services.realtime import ChangeEvent, Subscription

log = logging.getLogger(__name__)

FEED_TABLE = "requests"

ListListener = Callable[[List[RequestFeedItem]], None]


class MalformedEventError(ValueError):
    """A change event the board cannot apply (no id, bad payload, wrong table)."""


# ── Pure reconciliation ───────────────────────────────────────────────────────

def _row_id(row: Optional[Dict[str, Any]]) -> int:
    if not row or row.get("id") is None:
        raise MalformedEventError("change event row has no id")
    try:
        return int(row["id"])
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(f"change event id {row['id']!r} is not an integer") from exc


def _remove(items: List[RequestFeedItem], request_id: int) -> List[RequestFeedItem]:
    if not any(item.id == request_id for item in items):
        return items
    return [item for item in items if item.id != request_id]


def reduce_feed(items: List[RequestFeedItem], event: ChangeEvent) -> List[RequestFeedItem]:
    """Apply one change event to the board. Raises MalformedEventError on bad input."""
    if event.table != FEED_TABLE:
        raise MalformedEventError(f"event for table {event.table!r} sent to the request board")

    if event.event_type == "insert":
        request_id = _row_id(event.new)
        try:
            row = RequestFeedItem.model_validate(event.new)
        except ValidationError as exc:
            raise MalformedEventError(str(exc)) from exc
        if row.status == REQUEST_FULFILLED:
            return items
        # A replayed insert replaces the earlier copy instead of duplicating it
        return [row] + [item for item in items if item.id != request_id]

    if event.event_type == "update":
        request_id = _row_id(event.new)
        if event.new.get("status") == REQUEST_FULFILLED:
            return _remove(items, request_id)

        for index, item in enumerate(items):
            if item.id != request_id:
                continue
            merged = {**item.model_dump(), **{
                key: value for key, value in event.new.items()
                if key in RequestFeedItem.model_fields
            }}
            try:
                replacement = RequestFeedItem.model_validate(merged)
            except ValidationError as exc:
                raise MalformedEventError(str(exc)) from exc
            if replacement == item:
                return items
            return items[:index] + [replacement] + items[index + 1:]
        return items

    # delete: the hosted store only guarantees the primary key in `old`
    request_id = _row_id(event.old or event.new)
    return _remove(items, request_id)


# ── Initial load ──────────────────────────────────────────────────────────────

def fetch_open_requests(
    db: Session,
    viewer_role: str,
    limit: Optional[int] = None,
) -> List[RequestFeedItem]:
    """
    Newest `limit` requests minus fulfilled ones.
    The fulfilled filter runs after the limit, so the board can start with
    fewer than `limit` rows.
    """
    limit = limit or settings.request_feed_limit
    with store_call(db, "load the request board"):
        rows = (
            db.query(Request)
            .order_by(Request.created_at.desc(), Request.id.desc())
            .limit(limit)
            .all()
        )

    items = [RequestFeedItem.model_validate(row) for row in rows if row.status != REQUEST_FULFILLED]
    if viewer_role == "teacher":
        # Teachers see every open request; only rows without an id are left out
        items = [item for item in items if item.id is not None]
    return items


# ── Stateful feed ─────────────────────────────────────────────────────────────

class RequestBoardFeed:
    """
    One viewer's board. Events are applied one at a time, in delivery order;
    the listener is called with a copy of the list after every change.

    Subscribe before initialize(): events that arrive while the board is still
    loading are held back and replayed onto the loaded rows, so a commit that
    lands between the read and the first render is never lost.
    """

    def __init__(self, change_feed, limit: Optional[int] = None):
        self._change_feed = change_feed
        self._limit = limit
        self._lock = threading.Lock()
        self._items: List[RequestFeedItem] = []
        self._loaded = False
        self._pending: List[ChangeEvent] = []
        self._listener: Optional[ListListener] = None
        self._subscription: Optional[Subscription] = None

    @property
    def items(self) -> List[RequestFeedItem]:
        return list(self._items)

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @staticmethod
    def _apply(items: List[RequestFeedItem], event: ChangeEvent) -> List[RequestFeedItem]:
        try:
            return reduce_feed(items, event)
        except MalformedEventError as exc:
            log.warning("Dropping %s event on request board: %s", event.event_type, exc)
            return items

    def initialize(self, db: Session, viewer_role: str) -> List[RequestFeedItem]:
        items = fetch_open_requests(db, viewer_role, self._limit)
        with self._lock:
            pending, self._pending = self._pending, []
            # Replays are safe on rows the read already saw: every rule is idempotent
            for event in pending:
                items = self._apply(items, event)
            self._items = items
            self._loaded = True
        log.debug(
            "Request board loaded with %d open requests for %s (%d buffered events)",
            len(items), viewer_role, len(pending),
        )
        return list(items)

    def on_change_event(self, event: Union[ChangeEvent, Dict[str, Any]]) -> bool:
        """Apply one event. Returns True when the list changed; bad events are dropped."""
        try:
            if not isinstance(event, ChangeEvent):
                event = ChangeEvent.model_validate(event)
        except ValidationError as exc:
            log.warning("Dropping malformed request event: %s", exc)
            return False

        with self._lock:
            if not self._loaded:
                self._pending.append(event)
                return False
            updated = self._apply(self._items, event)
            if updated is self._items:
                return False
            self._items = updated
            snapshot = list(updated)
            listener = self._listener

        if listener is not None:
            listener(snapshot)
        return True

    def subscribe(self, on_list_changed: Optional[ListListener] = None) -> None:
        """Start receiving live changes. Calling again only swaps the listener."""
        self._listener = on_list_changed
        if self.is_subscribed:
            return
        self._subscription = self._change_feed.subscribe(FEED_TABLE, self.on_change_event)

    def unsubscribe(self) -> None:
        subscription, self._subscription = self._subscription, None
        self._listener = None
        with self._lock:
            self._pending = []
        if subscription is not None:
            subscription.unsubscribe()
