# app/db/events.py
# Change capture: turns committed ORM writes into change-feed events
#
#   after_flush   → snapshot inserted / updated / deleted rows into session.info
#   after_commit  → publish the snapshots in flush order
#   after_rollback→ discard them (nothing was committed)
#
# Only unit-of-work writes are seen. Bulk query.update()/delete() bypass the
# session and therefore never reach the feed; services load rows and mutate
# them one by one when subscribers must hear about it.
#
# Imported once from app/main.py (and the test conftest) to register listeners.

import logging
from typing import Any, Dict, List

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.services.realtime import ChangeEvent, get_change_feed

log = logging.getLogger(__name__)

_PENDING_KEY = "pending_change_events"


def row_snapshot(obj) -> Dict[str, Any]:
    """Column values of a mapped instance, keyed by attribute name."""
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def _primary_key(obj) -> Dict[str, Any]:
    mapper = inspect(obj).mapper
    return {col.key: getattr(obj, col.key) for col in mapper.primary_key}


def _previous_values(obj) -> Dict[str, Any]:
    """Primary key plus the pre-flush value of every changed column."""
    state = inspect(obj)
    old = _primary_key(obj)
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            old[attr.key] = history.deleted[0]
    return old


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, flush_context) -> None:
    pending: List[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])

    for obj in session.new:
        pending.append(ChangeEvent(
            event_type="insert",
            table=obj.__tablename__,
            new=row_snapshot(obj),
        ))

    for obj in session.dirty:
        if not session.is_modified(obj, include_collections=False):
            continue
        pending.append(ChangeEvent(
            event_type="update",
            table=obj.__tablename__,
            new=row_snapshot(obj),
            old=_previous_values(obj),
        ))

    for obj in session.deleted:
        pending.append(ChangeEvent(
            event_type="delete",
            table=obj.__tablename__,
            old=row_snapshot(obj),
        ))


@event.listens_for(Session, "after_commit")
def _publish_changes(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    if not pending:
        return
    feed = get_change_feed()
    for change in pending:
        try:
            feed.publish(change)
        except Exception:
            # The commit already happened; a transport outage only costs liveness
            log.exception("Could not publish %s on %s", change.event_type, change.table)


@event.listens_for(Session, "after_soft_rollback")
def _discard_changes(session: Session, previous_transaction) -> None:
    session.info.pop(_PENDING_KEY, None)
