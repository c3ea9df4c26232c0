# app/api/v1/endpoints/engagements.py
# Registration gate and merged engagement views
#
#   GET  /engagements/can-register       → student: allowed / blocked + reason
#   GET  /engagements/can-register-child → parent: same check for one of their children
#   POST /engagements/register           → student registers with a teacher
#   POST /engagements/register-child     → parent registers one of their children
#   GET  /engagements/teacher            → teacher: students, parents, request students
#   GET  /engagements/mine               → student / parent: my teachers

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import (
    Viewer,
    require_login,
    require_parent,
    require_student,
    require_teacher,
)
from app.db.session import get_db
from app.schemas.engagement import (
    ChildRegistrationCreate,
    EngagementRecord,
    MyTeacherItem,
    RegistrationCreate,
    RegistrationDecisionResponse,
    TeacherEngagementView,
)
from app.services import engagement_aggregator, registration_gate

router = APIRouter()


def _blocked(outcome: registration_gate.RegistrationOutcome) -> HTTPException:
    """A blocked registration is shown with its specific reason, never a generic error."""
    decision = outcome.decision
    return HTTPException(
        status_code=409,
        detail={
            "message": f"Registration {decision.reason}.",
            "reason": decision.reason,
            "active_until": decision.active_until.isoformat() if decision.active_until else None,
        },
    )


@router.get(
    "/can-register",
    response_model=RegistrationDecisionResponse,
    summary="Can the current student register for this subject/level",
)
def can_register(
    teacher_id: str = Query(...),
    subject: str = Query(...),
    level: str = Query(...),
    viewer: Viewer = Depends(require_student),
    db: Session = Depends(get_db),
):
    decision = registration_gate.can_register(db, viewer.id, teacher_id, subject, level)
    return RegistrationDecisionResponse(**decision.__dict__)


@router.get(
    "/can-register-child",
    response_model=RegistrationDecisionResponse,
    summary="Can the current parent register this child for this subject/level",
)
def can_register_child(
    child_id: str = Query(...),
    teacher_id: str = Query(...),
    subject: str = Query(...),
    level: str = Query(...),
    viewer: Viewer = Depends(require_parent),
    db: Session = Depends(get_db),
):
    decision = registration_gate.can_register_child(
        db, child_id, teacher_id, subject, level, parent_id=viewer.id
    )
    return RegistrationDecisionResponse(**decision.__dict__)


@router.post(
    "/register",
    response_model=EngagementRecord,
    status_code=201,
    summary="Student registers with a teacher",
)
def register(
    payload: RegistrationCreate,
    viewer: Viewer = Depends(require_student),
    db: Session = Depends(get_db),
):
    outcome = registration_gate.register(
        db, viewer.id, payload.teacher_id, payload.subject, payload.level
    )
    if not outcome.allowed:
        raise _blocked(outcome)
    return outcome.engagement


@router.post(
    "/register-child",
    response_model=EngagementRecord,
    status_code=201,
    summary="Parent registers a child with a teacher",
)
def register_child(
    payload: ChildRegistrationCreate,
    viewer: Viewer = Depends(require_parent),
    db: Session = Depends(get_db),
):
    outcome = registration_gate.register_child(
        db, viewer.id, payload.child_id, payload.teacher_id, payload.subject, payload.level
    )
    if not outcome.allowed:
        raise _blocked(outcome)
    return outcome.engagement


@router.get(
    "/teacher",
    response_model=TeacherEngagementView,
    summary="Teacher's students, parents and request students",
)
def teacher_engagements(
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return engagement_aggregator.load(db, viewer.id)


@router.get(
    "/mine",
    response_model=List[MyTeacherItem],
    summary="My teachers (student) or my children's teachers (parent)",
)
def my_teachers(
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    if viewer.role == "student":
        return engagement_aggregator.load_for_student(db, viewer.id)
    if viewer.role == "parent":
        return engagement_aggregator.load_for_parent(db, viewer.id)
    raise HTTPException(status_code=403, detail="Student or parent access only.")
