# app/api/v1/endpoints/requests.py
# Request board, request desk and application endpoints
#
# Board (everyone):
#   GET    /requests/feed                     → current open requests (snapshot)
#   WS     /requests/feed/ws?token=...        → snapshot, then the full list after every change
#
# Student / parent (requester):
#   POST   /requests/                         → post a request
#   GET    /requests/me                       → own requests
#   PATCH  /requests/{id}                     → edit text while open
#   DELETE /requests/{id}                     → delete
#   GET    /requests/{id}/applications        → who applied
#   PATCH  /requests/applications/{id}/accept → pick a teacher, request fulfilled
#   PATCH  /requests/applications/{id}/reject
#
# Teacher:
#   GET    /requests/{id}/applied             → has this teacher applied already?
#   POST   /requests/{id}/applications        → apply with a monthly rate
#   GET    /requests/applications/mine        → own applications

import asyncio
import logging
from contextlib import suppress
from typing import List

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import app.db.base  # noqa: F401
from app.core.dependencies import Viewer, require_login, require_teacher, viewer_from_token
from app.db.session import SessionLocal, get_db
from app.schemas.request import (
    ApplicationCreate,
    ApplicationListItem,
    ApplicationResponse,
    HasAppliedResponse,
    MessageResponse,
    RequestCreate,
    RequestEdit,
    RequestFeedResponse,
    RequestResponse,
)
from app.services import application_service, request_service
from app.services.realtime import get_change_feed
from app.services.request_feed import RequestBoardFeed, fetch_open_requests

log = logging.getLogger(__name__)

router = APIRouter()


def _feed_payload(items) -> dict:
    return RequestFeedResponse(items=items, count=len(items)).model_dump(mode="json")


# ── Board ─────────────────────────────────────────────────────────────────────

@router.get(
    "/feed",
    response_model=RequestFeedResponse,
    summary="Open requests on the board",
)
def get_feed(
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    items = fetch_open_requests(db, viewer.role)
    return RequestFeedResponse(items=items, count=len(items))


@router.websocket("/feed/ws")
async def request_feed_socket(websocket: WebSocket, token: str = Query("")):
    """
    Live board. Sends the initial list, then the whole list again after each
    applied change event. Client messages are ignored (keep-alive only).
    """
    viewer = viewer_from_token(token)
    if viewer is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()
    feed = RequestBoardFeed(get_change_feed())

    def load_board():
        db = SessionLocal()
        try:
            return feed.initialize(db, viewer.role)
        finally:
            db.close()

    async def pump():
        while True:
            snapshot = await updates.get()
            await websocket.send_json(_feed_payload(snapshot))

    # Change events arrive on the committing thread; hop onto the loop in order.
    # Subscribed before the read: commits during the load are buffered and replayed.
    feed.subscribe(lambda snapshot: loop.call_soon_threadsafe(updates.put_nowait, snapshot))

    sender = None
    try:
        items = await run_in_threadpool(load_board)
        await websocket.send_json(_feed_payload(items))
        sender = asyncio.create_task(pump())
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        log.debug("Board socket closed for %s", viewer.id)
    finally:
        feed.unsubscribe()
        if sender is not None:
            sender.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect):
                await sender


# ── Requester ─────────────────────────────────────────────────────────────────

@router.post(
    "/",
    response_model=RequestResponse,
    status_code=201,
    summary="Student or parent posts a request",
)
def create_request(
    payload: RequestCreate,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.create_request(
        db,
        requester_id=viewer.id,
        requester_role=viewer.role,
        text=payload.text,
        city=payload.city,
        child_id=payload.child_id,
    )


@router.get(
    "/me",
    response_model=List[RequestResponse],
    summary="Requests I posted",
)
def list_my_requests(
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.list_my_requests(db, viewer.id)


@router.get(
    "/applications/mine",
    response_model=List[ApplicationResponse],
    summary="Teacher's own applications",
)
def list_my_applications(
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return application_service.list_for_teacher(db, viewer.id)


@router.patch(
    "/applications/{application_id}/accept",
    response_model=ApplicationResponse,
    summary="Requester accepts an application",
)
def accept_application(
    application_id: int,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.accept_application(db, application_id, viewer.id)


@router.patch(
    "/applications/{application_id}/reject",
    response_model=ApplicationResponse,
    summary="Requester rejects an application",
)
def reject_application(
    application_id: int,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.reject_application(db, application_id, viewer.id)


@router.patch(
    "/{request_id}",
    response_model=RequestResponse,
    summary="Edit an open request",
)
def edit_request(
    request_id: int,
    payload: RequestEdit,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.edit_request(db, request_id, viewer.id, payload.text)


@router.delete(
    "/{request_id}",
    response_model=MessageResponse,
    summary="Delete a request",
)
def delete_request(
    request_id: int,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    request_service.delete_request(db, request_id, viewer.id)
    return MessageResponse(message="Request deleted successfully.")


@router.get(
    "/{request_id}/applications",
    response_model=List[ApplicationListItem],
    summary="Applications to my request",
)
def list_applications(
    request_id: int,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return request_service.list_applications(db, request_id, viewer.id)


# ── Teacher ───────────────────────────────────────────────────────────────────

@router.get(
    "/{request_id}/applied",
    response_model=HasAppliedResponse,
    summary="Has the current teacher applied to this request",
)
def has_applied(
    request_id: int,
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return HasAppliedResponse(
        request_id=request_id,
        teacher_id=viewer.id,
        has_applied=application_service.has_applied(db, request_id, viewer.id),
    )


@router.post(
    "/{request_id}/applications",
    response_model=ApplicationResponse,
    status_code=201,
    summary="Teacher applies to a request",
)
def apply_to_request(
    request_id: int,
    payload: ApplicationCreate,
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return application_service.apply(
        db,
        request_id=request_id,
        teacher_id=viewer.id,
        monthly_rate=payload.monthly_rate,
        viewer_role=viewer.role,
    )
