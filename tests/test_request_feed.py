"""
Request board: reconciliation of change events and the live subscription.
"""

from datetime import datetime, timedelta

import pytest

from app.db.session import SessionLocal
from app.models.request import REQUEST_FULFILLED, Request
from app.schemas.request import RequestFeedItem
from app.services.realtime import ChangeEvent, InMemoryChangeFeed, get_change_feed
from app.services import request_feed
from app.services.request_feed import (
    MalformedEventError,
    RequestBoardFeed,
    fetch_open_requests,
    reduce_feed,
)


def event(event_type, new=None, old=None, table="requests") -> ChangeEvent:
    return ChangeEvent(event_type=event_type, table=table, new=new, old=old)


def item(request_id, **kwargs) -> RequestFeedItem:
    return RequestFeedItem(id=request_id, text=kwargs.pop("text", f"request {request_id}"), **kwargs)


# ============================================================
# reduce_feed
# ============================================================

def test_request_lifecycle():
    """Insert an open request, then fulfil it: the board goes [1] → []."""
    items = reduce_feed([], event("insert", new={"id": 1, "status": "open", "text": "Need JHS Math tutor"}))
    assert [i.id for i in items] == [1]
    assert items[0].text == "Need JHS Math tutor"

    items = reduce_feed(items, event("update", new={"id": 1, "status": "fulfilled"}))
    assert items == []


def test_insert_prepends():
    items = reduce_feed([item(1)], event("insert", new={"id": 2, "status": "open", "text": "Physics"}))
    assert [i.id for i in items] == [2, 1]


def test_insert_fulfilled_row_is_ignored():
    items = [item(1)]
    result = reduce_feed(items, event("insert", new={"id": 2, "status": "fulfilled"}))
    assert result is items


def test_replayed_insert_does_not_duplicate():
    items = reduce_feed([item(1)], event("insert", new={"id": 1, "text": "edited"}))
    assert [i.id for i in items] == [1]
    assert items[0].text == "edited"


def test_update_merges_into_existing_row():
    items = [item(2), item(1, city="Accra")]
    result = reduce_feed(items, event("update", new={"id": 1, "text": "Chemistry", "status": "open"}))
    assert [i.id for i in result] == [2, 1]
    assert result[1].text == "Chemistry"
    assert result[1].city == "Accra"


def test_update_for_unknown_id_is_a_no_op():
    items = [item(1)]
    assert reduce_feed(items, event("update", new={"id": 9, "text": "x"})) is items


def test_update_is_idempotent():
    items = [item(1), item(2)]
    change = event("update", new={"id": 2, "text": "Biology", "status": "open"})
    once = reduce_feed(items, change)
    twice = reduce_feed(once, change)
    assert twice is once
    assert twice == once


def test_fulfilled_update_twice_is_idempotent():
    change = event("update", new={"id": 1, "status": "fulfilled"})
    once = reduce_feed([item(1), item(2)], change)
    assert reduce_feed(once, change) is once
    assert [i.id for i in once] == [2]


def test_delete_uses_old_primary_key():
    items = reduce_feed([item(1), item(2)], event("delete", old={"id": 1}))
    assert [i.id for i in items] == [2]


def test_delete_unknown_id_is_a_no_op():
    items = [item(1)]
    assert reduce_feed(items, event("delete", old={"id": 5})) is items


@pytest.mark.parametrize("change", [
    event("insert", new={"text": "no id"}),
    event("update", new={"status": "open"}),
    event("delete", old={}),
    event("delete"),
    event("insert", new={"id": "abc"}),
    event("insert", new={"id": 1}, table="teacher_students"),
])
def test_malformed_events_raise(change):
    with pytest.raises(MalformedEventError):
        reduce_feed([item(1)], change)


def test_never_contains_fulfilled_rows():
    changes = [
        event("insert", new={"id": 1, "status": "open"}),
        event("insert", new={"id": 2, "status": "fulfilled"}),
        event("insert", new={"id": 3, "status": "open"}),
        event("update", new={"id": 3, "status": "fulfilled"}),
        event("update", new={"id": 1, "text": "edited"}),
        event("insert", new={"id": 4, "status": "open"}),
        event("delete", old={"id": 4}),
        event("update", new={"id": 2, "status": "fulfilled"}),
    ]
    items = []
    for change in changes:
        items = reduce_feed(items, change)
        assert all(i.status != REQUEST_FULFILLED for i in items)
    assert [i.id for i in items] == [1]


# ============================================================
# Initial load
# ============================================================

def test_fetch_open_requests_newest_first_and_drops_fulfilled(people):
    base = datetime(2026, 10, 1, 9, 0)
    for n in range(5):
        people.request(
            "student-1",
            text=f"request {n}",
            created_at=base + timedelta(hours=n),
            status=REQUEST_FULFILLED if n == 3 else "open",
        )

    items = fetch_open_requests(people.db, "teacher")

    assert [i.text for i in items] == ["request 4", "request 2", "request 1", "request 0"]


def test_fetch_limit_applies_before_fulfilled_filter(people):
    base = datetime(2026, 10, 1, 9, 0)
    for n in range(4):
        people.request(
            "student-1",
            text=f"request {n}",
            created_at=base + timedelta(hours=n),
            status=REQUEST_FULFILLED if n == 3 else "open",
        )

    items = fetch_open_requests(people.db, "student", limit=2)

    # newest two are 3 (fulfilled) and 2; only 2 survives
    assert [i.text for i in items] == ["request 2"]


# ============================================================
# RequestBoardFeed
# ============================================================

def test_board_drops_malformed_event_without_raising(people):
    feed = RequestBoardFeed(InMemoryChangeFeed())
    feed.initialize(people.db, "teacher")

    assert feed.on_change_event({"event_type": "insert", "table": "requests", "new": {"text": "no id"}}) is False
    assert feed.on_change_event({"event_type": "explode", "table": "requests"}) is False
    assert feed.items == []


def test_board_notifies_listener_only_on_change(people):
    broker = InMemoryChangeFeed()
    feed = RequestBoardFeed(broker)
    feed.initialize(people.db, "teacher")
    seen = []
    feed.subscribe(seen.append)

    broker.publish(event("insert", new={"id": 7, "status": "open", "text": "French"}))
    broker.publish(event("update", new={"id": 99, "text": "unknown"}))
    broker.publish(event("insert", new={"id": 7, "status": "open"}, table="teacher_students"))

    assert len(seen) == 1
    assert [i.id for i in seen[0]] == [7]


def test_unsubscribe_is_idempotent_and_stops_delivery(people):
    broker = InMemoryChangeFeed()
    feed = RequestBoardFeed(broker)
    feed.subscribe()
    assert feed.is_subscribed
    assert broker.subscriber_count("requests") == 1

    feed.unsubscribe()
    feed.unsubscribe()

    assert not feed.is_subscribed
    assert broker.subscriber_count("requests") == 0
    broker.publish(event("insert", new={"id": 1, "status": "open"}))
    assert feed.items == []


def test_committed_writes_reach_the_board(people):
    """Insert, fulfil, delete through the ORM; the board follows each commit."""
    db = people.db
    feed = RequestBoardFeed(get_change_feed())
    feed.initialize(db, "teacher")
    feed.subscribe()
    try:
        first = people.request("student-1", text="Need JHS Math tutor")
        second = people.request("parent-1", text="English for my son")
        assert [i.id for i in feed.items] == [second.id, first.id]

        first.status = REQUEST_FULFILLED
        db.commit()
        assert [i.id for i in feed.items] == [second.id]

        db.delete(db.get(Request, second.id))
        db.commit()
        assert feed.items == []
    finally:
        feed.unsubscribe()


def test_rolled_back_writes_never_reach_the_board(people):
    db = people.db
    feed = RequestBoardFeed(get_change_feed())
    feed.subscribe()
    try:
        db.add(Request(requester_id="student-1", text="draft"))
        db.flush()
        db.rollback()
        assert feed.items == []
    finally:
        feed.unsubscribe()


def test_events_before_load_are_replayed(people):
    broker = InMemoryChangeFeed()
    feed = RequestBoardFeed(broker)
    seen = []
    feed.subscribe(seen.append)

    early = {"event_type": "insert", "table": "requests", "new": {"id": 7, "status": "open", "text": "French"}}
    assert feed.on_change_event(early) is False
    assert seen == []

    items = feed.initialize(people.db, "teacher")

    assert [i.id for i in items] == [7]
    assert [i.id for i in feed.items] == [7]


def test_fulfilment_committed_during_load_is_not_lost(people, monkeypatch):
    """A request fulfilled right after the read must not stay on the board."""
    first = people.request("student-1", text="Need JHS Math tutor")
    first_id = first.id
    real_fetch = request_feed.fetch_open_requests

    def fetch_then_fulfil(db, viewer_role, limit=None):
        items = real_fetch(db, viewer_role, limit)
        first.status = REQUEST_FULFILLED
        people.db.commit()
        return items

    monkeypatch.setattr(request_feed, "fetch_open_requests", fetch_then_fulfil)

    feed = RequestBoardFeed(get_change_feed())
    seen = []
    feed.subscribe(seen.append)
    loader = SessionLocal()
    try:
        items = feed.initialize(loader, "teacher")
        assert first_id not in [i.id for i in items]

        second = people.request("parent-1", text="English for my son")
        assert [i.id for i in feed.items] == [second.id]
        assert [i.id for i in seen[-1]] == [second.id]
    finally:
        loader.close()
        feed.unsubscribe()
