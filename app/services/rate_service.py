# app/services/rate_service.py
# Teacher price list: CRUD for the owner, search for students and parents

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError, NotFoundError
from app.db.session import store_call
from app.models.teacher import TeacherRate
from app.models.user import User
from app.schemas.teacher import RateSearchItem
from app.services.application_service import validate_rate
from app.services.storage import resolve_image_url


def _own_rate(db: Session, rate_id: int, teacher_id: str) -> TeacherRate:
    rate = db.query(TeacherRate).filter(TeacherRate.id == rate_id).first()
    if rate is None:
        raise NotFoundError("Rate not found.")
    if rate.teacher_id != teacher_id:
        raise ForbiddenError("You can only change your own rates.")
    return rate


def list_rates(db: Session, teacher_id: str) -> List[TeacherRate]:
    with store_call(db, "load your rates"):
        return (
            db.query(TeacherRate)
            .filter(TeacherRate.teacher_id == teacher_id)
            .order_by(TeacherRate.id.desc())
            .all()
        )


def add_rate(db: Session, teacher_id: str, subject: str, level: str, rate) -> TeacherRate:
    amount = validate_rate(rate)
    with store_call(db, "save your rate"):
        row = TeacherRate(teacher_id=teacher_id, subject=subject, level=level, rate=amount)
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def update_rate(
    db: Session,
    rate_id: int,
    teacher_id: str,
    subject: Optional[str] = None,
    level: Optional[str] = None,
    rate=None,
) -> TeacherRate:
    amount = validate_rate(rate) if rate is not None else None
    with store_call(db, "update your rate"):
        row = _own_rate(db, rate_id, teacher_id)
        if subject is not None:
            row.subject = subject
        if level is not None:
            row.level = level
        if amount is not None:
            row.rate = amount
        db.commit()
        db.refresh(row)
    return row


def delete_rate(db: Session, rate_id: int, teacher_id: str) -> None:
    with store_call(db, "delete your rate"):
        row = _own_rate(db, rate_id, teacher_id)
        db.delete(row)
        db.commit()


def search_rates(db: Session, subject: str, level: Optional[str] = None) -> List[RateSearchItem]:
    """Case-insensitive exact match on subject (and level when given)."""
    with store_call(db, "search teachers"):
        query = db.query(TeacherRate, User).join(
            User, User.id == TeacherRate.teacher_id
        ).filter(
            func.lower(TeacherRate.subject) == subject.strip().lower()
        )
        if level:
            query = query.filter(func.lower(TeacherRate.level) == level.strip().lower())
        rows = query.order_by(TeacherRate.rate.asc(), TeacherRate.id.asc()).all()

    return [
        RateSearchItem(
            id=rate.id,
            teacher_id=rate.teacher_id,
            subject=rate.subject,
            level=rate.level,
            rate=rate.rate,
            teacher_name=teacher.full_name,
            teacher_city=teacher.city,
            teacher_image_url=resolve_image_url(teacher.profile_image, settings.profile_images_bucket),
        )
        for rate, teacher in rows
    ]
