# app/services/application_service.py
# Teacher side of the request board: apply once to an open request
#
#   has_applied(db, request_id, teacher_id)  → bool, point-in-time
#   apply(db, request_id, teacher_id, rate, viewer_role) → pending RequestApplication
#
# Uniqueness per (request, teacher) is not enforced by the store and apply()
# does not re-check it inside a transaction. Callers check has_applied() first
# and disable the action once an application exists.

import logging
import math
from datetime import datetime, timezone
from numbers import Real
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
)
from app.db.session import store_call
from app.models.request import (
    APPLICATION_PENDING,
    REQUEST_OPEN,
    Request,
    RequestApplication,
)

log = logging.getLogger(__name__)


def validate_rate(value) -> float:
    """A monthly rate must be a finite, non-negative number."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InputValidationError("Monthly rate must be a number.")
    rate = float(value)
    if not math.isfinite(rate) or rate < 0:
        raise InputValidationError("Monthly rate must be a finite, non-negative number.")
    return rate


def has_applied(db: Session, request_id: int, teacher_id: str) -> bool:
    """
    True if this teacher already has an application on this request.
    No row is a plain False; a failing store call raises TransportError.
    """
    with store_call(db, "check your application"):
        existing = db.query(RequestApplication.id).filter(
            RequestApplication.request_id == request_id,
            RequestApplication.teacher_id == teacher_id,
        ).first()
    return existing is not None


def apply(
    db: Session,
    request_id: Optional[int],
    teacher_id: str,
    monthly_rate,
    viewer_role: str,
) -> RequestApplication:
    """
    Submit a pending application with the proposed monthly rate.

    Validations (in order, inputs before any store call):
    1. Viewer is a teacher
    2. request_id present, rate finite and non-negative
    3. The request exists and is still open
    """
    if viewer_role != "teacher":
        raise ForbiddenError("Only teachers can apply to requests.")
    if request_id is None:
        raise InputValidationError("A request id is required.")
    rate = validate_rate(monthly_rate)

    with store_call(db, "submit your application"):
        request = db.query(Request).filter(Request.id == request_id).first()
        if request is None:
            raise NotFoundError("Request not found.")
        if request.status != REQUEST_OPEN:
            raise ConflictError("This request has already been fulfilled.")

        application = RequestApplication(
            request_id=request_id,
            teacher_id=teacher_id,
            monthly_rate=rate,
            status=APPLICATION_PENDING,
            date_applied=datetime.now(timezone.utc),
        )
        db.add(application)
        db.commit()
        db.refresh(application)

    log.info("Teacher %s applied to request %s at %.2f/month", teacher_id, request_id, rate)
    return application


def list_for_teacher(db: Session, teacher_id: str) -> List[RequestApplication]:
    """The teacher's own applications, newest first."""
    with store_call(db, "load your applications"):
        return (
            db.query(RequestApplication)
            .filter(RequestApplication.teacher_id == teacher_id)
            .order_by(RequestApplication.date_applied.desc(), RequestApplication.id.desc())
            .all()
        )
