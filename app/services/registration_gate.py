# app/services/registration_gate.py
# Registration gate: at most one ACTIVE engagement per (learner, teacher, subject, level)
#
# Per tuple:
#   Unregistered ──register──▶ Active (expiry = today + 1 calendar month)
#   Active       ──register──▶ blocked, "already active until <date>", nothing written
#   Active       ──time──────▶ Expired  (today > expiry_date, computed, never stored)
#   Expired      ──register──▶ Active   (new row, the old one stays as history)
#
# Learners are either student users (teacher_students) or a parent's child
# (parent_child_teachers). Both go through the same check.
#
# Known gap: check-then-insert is not atomic. Two concurrent register() calls
# for one tuple can both pass the check and both insert. Closing it needs a
# partial unique index / transactional upsert in the store.

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InputValidationError, NotFoundError
from app.db.session import store_call
from app.models.engagement import ParentChildTeacher, TeacherStudent
from app.models.user import Child, User

log = logging.getLogger(__name__)


# ── Expiry window ─────────────────────────────────────────────────────────────

def add_months(start: date, months: int) -> date:
    """
    Calendar-month addition with year rollover.
    Days past the end of the target month clamp to its last day (31 Jan → 28/29 Feb).
    """
    return start + relativedelta(months=months)


def expiry_for(date_added: date) -> date:
    return add_months(date_added, settings.engagement_months)


def is_active(expiry_date: date, today: Optional[date] = None) -> bool:
    """An engagement is active through its expiry date, inclusive."""
    return (today or date.today()) <= expiry_date


# ── Results ───────────────────────────────────────────────────────────────────

@dataclass
class RegistrationDecision:
    allowed: bool
    reason: Optional[str] = None
    active_until: Optional[date] = None

    @classmethod
    def allow(cls) -> "RegistrationDecision":
        return cls(allowed=True)

    @classmethod
    def blocked(cls, active_until: date) -> "RegistrationDecision":
        return cls(
            allowed=False,
            reason=f"already active until {active_until.isoformat()}",
            active_until=active_until,
        )


@dataclass
class RegistrationOutcome:
    """Either the written engagement row or the rejection that stopped it."""
    decision: RegistrationDecision
    engagement: Optional[Union[TeacherStudent, ParentChildTeacher]] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


# ── Helpers ───────────────────────────────────────────────────────────────────

def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise InputValidationError(f"{name} is required.")
    return str(value).strip()


def _latest_expiry(db: Session, model, learner_column, learner_id: str,
                   teacher_id: str, subject: str, level: str) -> Optional[date]:
    """Latest expiry over every row for the tuple (history and race duplicates included)."""
    return db.query(func.max(model.expiry_date)).filter(
        learner_column == learner_id,
        model.teacher_id == teacher_id,
        model.subject == subject,
        model.level == level,
    ).scalar()


def _decide(latest_expiry: Optional[date], today: date) -> RegistrationDecision:
    if latest_expiry is not None and is_active(latest_expiry, today):
        return RegistrationDecision.blocked(latest_expiry)
    return RegistrationDecision.allow()


def _require_teacher(db: Session, teacher_id: str) -> None:
    teacher = db.query(User.id).filter(
        User.id == teacher_id,
        User.user_type == "teacher",
    ).first()
    if teacher is None:
        raise NotFoundError("Teacher not found.")


# ── Student registration ──────────────────────────────────────────────────────

def can_register(
    db: Session,
    student_id: str,
    teacher_id: str,
    subject: str,
    level: str,
    today: Optional[date] = None,
) -> RegistrationDecision:
    """Allowed when no row exists for the tuple or every existing row has expired."""
    student_id = _require(student_id, "Student id")
    teacher_id = _require(teacher_id, "Teacher id")
    subject = _require(subject, "Subject")
    level = _require(level, "Level")

    with store_call(db, "check your registration"):
        latest = _latest_expiry(
            db, TeacherStudent, TeacherStudent.student_id,
            student_id, teacher_id, subject, level,
        )
    return _decide(latest, today or date.today())


def register(
    db: Session,
    student_id: str,
    teacher_id: str,
    subject: str,
    level: str,
    today: Optional[date] = None,
) -> RegistrationOutcome:
    """Re-check the gate, then write a new Direct engagement valid for one month."""
    today = today or date.today()
    decision = can_register(db, student_id, teacher_id, subject, level, today)
    if not decision.allowed:
        log.info(
            "Registration blocked: student %s / teacher %s / %s %s (%s)",
            student_id, teacher_id, subject, level, decision.reason,
        )
        return RegistrationOutcome(decision=decision)

    with store_call(db, "register with this teacher"):
        _require_teacher(db, teacher_id)
        engagement = TeacherStudent(
            teacher_id=teacher_id.strip(),
            student_id=student_id.strip(),
            subject=subject.strip(),
            level=level.strip(),
            date_added=today,
            expiry_date=expiry_for(today),
        )
        db.add(engagement)
        db.commit()
        db.refresh(engagement)

    log.info(
        "Student %s registered with teacher %s for %s %s until %s",
        student_id, teacher_id, subject, level, engagement.expiry_date,
    )
    return RegistrationOutcome(decision=decision, engagement=engagement)


# ── Parent registers a child ──────────────────────────────────────────────────

def _require_own_child(db: Session, parent_id: str, child_id: str) -> None:
    child = db.query(Child.id).filter(
        Child.id == child_id,
        Child.parent_id == parent_id,
    ).first()
    if child is None:
        raise NotFoundError("Child not found.")


def can_register_child(
    db: Session,
    child_id: str,
    teacher_id: str,
    subject: str,
    level: str,
    today: Optional[date] = None,
    parent_id: Optional[str] = None,
) -> RegistrationDecision:
    """Gate for a child. With parent_id, the child must also belong to that parent."""
    child_id = _require(child_id, "Child id")
    teacher_id = _require(teacher_id, "Teacher id")
    subject = _require(subject, "Subject")
    level = _require(level, "Level")

    with store_call(db, "check your child's registration"):
        if parent_id is not None:
            _require_own_child(db, parent_id, child_id)
        latest = _latest_expiry(
            db, ParentChildTeacher, ParentChildTeacher.child_id,
            child_id, teacher_id, subject, level,
        )
    return _decide(latest, today or date.today())


def register_child(
    db: Session,
    parent_id: str,
    child_id: str,
    teacher_id: str,
    subject: str,
    level: str,
    today: Optional[date] = None,
) -> RegistrationOutcome:
    """Same gate for a parent's child; the child must belong to the parent."""
    today = today or date.today()
    parent_id = _require(parent_id, "Parent id")
    child_id = _require(child_id, "Child id")

    decision = can_register_child(db, child_id, teacher_id, subject, level, today, parent_id=parent_id)
    if not decision.allowed:
        log.info("Child registration blocked: child %s / teacher %s (%s)", child_id, teacher_id, decision.reason)
        return RegistrationOutcome(decision=decision)

    with store_call(db, "register your child with this teacher"):
        _require_teacher(db, teacher_id)
        engagement = ParentChildTeacher(
            teacher_id=teacher_id.strip(),
            parent_id=parent_id,
            child_id=child_id,
            subject=subject.strip(),
            level=level.strip(),
            date_added=today,
            expiry_date=expiry_for(today),
        )
        db.add(engagement)
        db.commit()
        db.refresh(engagement)

    log.info("Parent %s registered child %s with teacher %s until %s",
             parent_id, child_id, teacher_id, engagement.expiry_date)
    return RegistrationOutcome(decision=decision, engagement=engagement)
