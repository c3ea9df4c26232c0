"""
In-process change feed and image URL resolution.
"""

from app.services.realtime import ChangeEvent, InMemoryChangeFeed
from app.services.storage import resolve_image_url


def make_event(event_type="insert", table="requests", request_id=1) -> ChangeEvent:
    return ChangeEvent(event_type=event_type, table=table, new={"id": request_id})


def test_events_delivered_in_publish_order():
    feed = InMemoryChangeFeed()
    seen = []
    feed.subscribe("requests", lambda e: seen.append(e.new["id"]))

    for n in range(5):
        feed.publish(make_event(request_id=n))

    assert seen == [0, 1, 2, 3, 4]


def test_event_type_filter():
    feed = InMemoryChangeFeed()
    seen = []
    feed.subscribe("requests", lambda e: seen.append(e.event_type), event_types=("update",))

    feed.publish(make_event("insert"))
    feed.publish(make_event("update"))

    assert seen == ["update"]


def test_tables_are_isolated():
    feed = InMemoryChangeFeed()
    seen = []
    feed.subscribe("requests", seen.append)

    feed.publish(make_event(table="request_applications"))

    assert seen == []


def test_failing_subscriber_does_not_block_others():
    feed = InMemoryChangeFeed()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    feed.subscribe("requests", broken)
    feed.subscribe("requests", seen.append)

    feed.publish(make_event())

    assert len(seen) == 1


def test_unsubscribe_twice():
    feed = InMemoryChangeFeed()
    subscription = feed.subscribe("requests", lambda e: None)

    subscription.unsubscribe()
    subscription.unsubscribe()

    assert subscription.active is False
    assert feed.subscriber_count("requests") == 0


def test_resolve_image_url():
    assert resolve_image_url(None) == "/placeholder.png"
    assert resolve_image_url("  ") == "/placeholder.png"
    assert resolve_image_url("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
    assert resolve_image_url("abc 1.png") == "https://storage.googleapis.com/student_images/abc%201.png"
    assert (
        resolve_image_url("/t.png", "profile-pictures")
        == "https://storage.googleapis.com/profile-pictures/t.png"
    )
