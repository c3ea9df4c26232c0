# app/services/request_service.py
# Requester side of the board: post, edit, delete requests and pick a teacher
#
# Student / parent flow:
#   create_request       → status "open", appears on every teacher's board
#   edit_request         → open requests only, board rows update in place
#   delete_request       → board rows disappear
#   list_applications    → teachers who applied, with their cards
#   accept_application   → one transaction:
#                            application accepted, siblings rejected,
#                            request fulfilled (boards drop it),
#                            engagement written (student: teacher_students,
#                            parent: parent_request_teacher_child)
#   reject_application   → pending → rejected

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
)
from app.db.session import store_call
from app.models.engagement import (
    REQUEST_LEVEL,
    ParentRequestTeacherChild,
    TeacherStudent,
)
from app.models.request import (
    APPLICATION_ACCEPTED,
    APPLICATION_PENDING,
    APPLICATION_REJECTED,
    REQUEST_FULFILLED,
    REQUEST_OPEN,
    Request,
    RequestApplication,
)
from app.models.user import Child, User
from app.schemas.request import ApplicationListItem, ApplicationTeacher
from app.services.registration_gate import expiry_for
from app.services.storage import resolve_image_url

log = logging.getLogger(__name__)

REQUESTER_ROLES = ("student", "parent")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _own_request(db: Session, request_id: int, requester_id: str) -> Request:
    request = db.query(Request).filter(Request.id == request_id).first()
    if request is None:
        raise NotFoundError("Request not found.")
    if request.requester_id != requester_id:
        raise ForbiddenError("You can only manage your own requests.")
    return request


def _own_application(db: Session, application_id: int, requester_id: str):
    application = db.query(RequestApplication).filter(
        RequestApplication.id == application_id
    ).first()
    if application is None:
        raise NotFoundError("Application not found.")
    request = _own_request(db, application.request_id, requester_id)
    return application, request


# ── Requests ──────────────────────────────────────────────────────────────────

def create_request(
    db: Session,
    requester_id: str,
    requester_role: str,
    text: str,
    city: Optional[str] = None,
    child_id: Optional[str] = None,
) -> Request:
    """Post a new open request. City defaults to the requester's own."""
    if requester_role not in REQUESTER_ROLES:
        raise ForbiddenError("Only students and parents can post requests.")
    if not text or not text.strip():
        raise InputValidationError("Please enter request text.")
    if child_id is not None and requester_role != "parent":
        raise InputValidationError("Only parents can post a request for a child.")

    with store_call(db, "create your request"):
        if child_id is not None:
            child = db.query(Child.id).filter(
                Child.id == child_id, Child.parent_id == requester_id
            ).first()
            if child is None:
                raise NotFoundError("Child not found.")
        if city is None:
            requester = db.query(User).filter(User.id == requester_id).first()
            city = requester.city if requester else None

        request = Request(
            requester_id=requester_id,
            child_id=child_id,
            text=text.strip(),
            city=city,
            status=REQUEST_OPEN,
        )
        db.add(request)
        db.commit()
        db.refresh(request)

    log.info("Request %s created by %s", request.id, requester_id)
    return request


def edit_request(db: Session, request_id: int, requester_id: str, text: str) -> Request:
    if not text or not text.strip():
        raise InputValidationError("Please enter request text.")
    with store_call(db, "update your request"):
        request = _own_request(db, request_id, requester_id)
        if request.status != REQUEST_OPEN:
            raise ConflictError("Fulfilled requests can no longer be edited.")
        request.text = text.strip()
        db.commit()
        db.refresh(request)
    return request


def delete_request(db: Session, request_id: int, requester_id: str) -> None:
    with store_call(db, "delete your request"):
        request = _own_request(db, request_id, requester_id)
        db.delete(request)
        db.commit()
    log.info("Request %s deleted by %s", request_id, requester_id)


def list_my_requests(db: Session, requester_id: str) -> List[Request]:
    with store_call(db, "load your requests"):
        return (
            db.query(Request)
            .filter(Request.requester_id == requester_id)
            .order_by(Request.created_at.desc(), Request.id.desc())
            .all()
        )


# ── Applications (requester view) ─────────────────────────────────────────────

def list_applications(db: Session, request_id: int, requester_id: str) -> List[ApplicationListItem]:
    with store_call(db, "load applications"):
        _own_request(db, request_id, requester_id)
        rows = (
            db.query(RequestApplication, User)
            .outerjoin(User, User.id == RequestApplication.teacher_id)
            .filter(RequestApplication.request_id == request_id)
            .order_by(RequestApplication.date_applied.asc(), RequestApplication.id.asc())
            .all()
        )

    return [
        ApplicationListItem(
            id=application.id,
            request_id=application.request_id,
            teacher_id=application.teacher_id,
            monthly_rate=application.monthly_rate,
            status=application.status,
            date_applied=application.date_applied,
            teacher=ApplicationTeacher(
                id=application.teacher_id,
                full_name=teacher.full_name if teacher else "Unknown teacher",
                city=teacher.city if teacher else None,
                image_url=resolve_image_url(
                    teacher.profile_image if teacher else None,
                    settings.profile_images_bucket,
                ),
            ),
        )
        for application, teacher in rows
    ]


def accept_application(
    db: Session,
    application_id: int,
    requester_id: str,
    today: Optional[date] = None,
) -> RequestApplication:
    """Pick a teacher for the request. Everything below commits together."""
    today = today or date.today()
    with store_call(db, "accept this application"):
        application, request = _own_application(db, application_id, requester_id)
        if request.status != REQUEST_OPEN:
            raise ConflictError("This request has already been fulfilled.")
        if application.status != APPLICATION_PENDING:
            raise ConflictError(f"Cannot accept an application with status '{application.status}'.")

        application.status = APPLICATION_ACCEPTED

        # Row by row (not a bulk UPDATE) so each change reaches the change feed
        siblings = db.query(RequestApplication).filter(
            RequestApplication.request_id == request.id,
            RequestApplication.id != application.id,
            RequestApplication.status == APPLICATION_PENDING,
        ).all()
        for sibling in siblings:
            sibling.status = APPLICATION_REJECTED

        request.status = REQUEST_FULFILLED

        requester = db.query(User).filter(User.id == request.requester_id).first()
        if requester is not None and requester.user_type == "parent":
            db.add(ParentRequestTeacherChild(
                request_id=request.id,
                teacher_id=application.teacher_id,
                parent_id=request.requester_id,
                child_id=request.child_id,
                status="accepted",
                date_added=today,
                expiry_date=expiry_for(today),
            ))
        else:
            db.add(TeacherStudent(
                teacher_id=application.teacher_id,
                student_id=request.requester_id,
                subject=request.text,
                level=REQUEST_LEVEL,
                date_added=today,
                expiry_date=expiry_for(today),
            ))

        db.commit()
        db.refresh(application)

    log.info(
        "Request %s fulfilled: application %s (teacher %s) accepted, %d rejected",
        request.id, application.id, application.teacher_id, len(siblings),
    )
    return application


def reject_application(db: Session, application_id: int, requester_id: str) -> RequestApplication:
    with store_call(db, "reject this application"):
        application, _ = _own_application(db, application_id, requester_id)
        if application.status != APPLICATION_PENDING:
            raise ConflictError(f"Cannot reject an application with status '{application.status}'.")
        application.status = APPLICATION_REJECTED
        db.commit()
        db.refresh(application)
    return application
