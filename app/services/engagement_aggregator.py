# app/services/engagement_aggregator.py
# Merged engagement views built from three differently shaped tables
#
# Teacher dashboard, load(db, teacher_id):
#   1. Direct rows        teacher_students ⨝ users (student)       1 query
#   2. Parent-linked rows parent_child_teachers                     1 query
#        + distinct parents (users) and children (parents_children) ≤ 2 IN queries
#   3. Accepted-request rows parent_request_teacher_child (accepted)1 query
#        + parents/children not resolved in step 2                  ≤ 2 IN queries
#        + originating request texts                                ≤ 1 IN query
#   4. Normalize every row through the mapper for its source tag
#   5. Partition: level == "request" → request_students (one per row)
#                 everything else    → students (one per student, newest first)
#
# At most 8 queries whatever the row count. Read-only. Any failed fetch aborts
# the whole load with a single TransportError; no partial views.
#
# Learner side (supplements the dashboard): load_for_student / load_for_parent.

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import store_call
from app.models.engagement import (
    REQUEST_LEVEL,
    ParentChildTeacher,
    ParentRequestTeacherChild,
    TeacherStudent,
)
from app.models.request import Request
from app.models.user import Child, User
from app.schemas.engagement import (
    Engagement,
    EngagementPerson,
    MyTeacherItem,
    ParentCard,
    TeacherEngagementView,
)
from app.services.registration_gate import is_active
from app.services.storage import resolve_image_url

log = logging.getLogger(__name__)

ACCEPTED = "accepted"


# ── Source variants ───────────────────────────────────────────────────────────

@dataclass
class DirectSource:
    row: TeacherStudent
    student: Optional[User]


@dataclass
class ParentLinkedSource:
    row: ParentChildTeacher
    parent: Optional[User]
    child: Optional[Child]


@dataclass
class AcceptedRequestSource:
    row: ParentRequestTeacherChild
    parent: Optional[User]
    child: Optional[Child]
    request_text: Optional[str]


EngagementSource = Union[DirectSource, ParentLinkedSource, AcceptedRequestSource]


# ── Normalization ─────────────────────────────────────────────────────────────

def _person(identity: Optional[Union[User, Child]], fallback_id: Optional[str]) -> EngagementPerson:
    if identity is None:
        return EngagementPerson(id=fallback_id, image_url=resolve_image_url(None))
    return EngagementPerson(
        id=identity.id,
        full_name=identity.full_name,
        email=identity.email,
        phone=identity.phone,
        image_url=resolve_image_url(identity.profile_image, settings.student_images_bucket),
    )


def _from_direct(source: DirectSource, today: date) -> Engagement:
    row = source.row
    return Engagement(
        source_tag="direct",
        id=row.id,
        subject=row.subject,
        level=row.level,
        student=_person(source.student, row.student_id),
        date_added=row.date_added,
        expiry_date=row.expiry_date,
        is_active=is_active(row.expiry_date, today),
    )


def _from_parent_linked(source: ParentLinkedSource, today: date) -> Engagement:
    row = source.row
    return Engagement(
        source_tag="parent_linked",
        id=row.id,
        subject=row.subject,
        level=row.level,
        student=_person(source.child, row.child_id),
        parent_id=row.parent_id,
        date_added=row.date_added,
        expiry_date=row.expiry_date,
        is_active=is_active(row.expiry_date, today),
    )


def _from_accepted_request(source: AcceptedRequestSource, today: date) -> Engagement:
    row = source.row
    return Engagement(
        source_tag="accepted_request",
        id=row.id,
        subject=source.request_text,
        level=REQUEST_LEVEL,
        student=_person(source.child, row.child_id),
        parent_id=row.parent_id,
        date_added=row.date_added,
        expiry_date=row.expiry_date,
        is_active=is_active(row.expiry_date, today),
    )


_NORMALIZERS: Dict[type, Callable[[EngagementSource, date], Engagement]] = {
    DirectSource: _from_direct,
    ParentLinkedSource: _from_parent_linked,
    AcceptedRequestSource: _from_accepted_request,
}


def normalize(source: EngagementSource, today: Optional[date] = None) -> Engagement:
    return _NORMALIZERS[type(source)](source, today or date.today())


# ── Partition & dedup ─────────────────────────────────────────────────────────

def dedupe_by_student(engagements: Iterable[Engagement]) -> List[Engagement]:
    """
    One entry per student, the most recently added one.
    Sorts first so the result does not depend on the order rows arrived in;
    the sort is stable, so same-day rows keep their fetch order.
    """
    ordered = sorted(engagements, key=lambda e: e.date_added, reverse=True)
    seen: Set[str] = set()
    distinct = []
    for engagement in ordered:
        key = engagement.student.id or f"{engagement.source_tag}:{engagement.id}"
        if key in seen:
            continue
        seen.add(key)
        distinct.append(engagement)
    return distinct


def partition(engagements: Sequence[Engagement]):
    """Split into (regular, request) groups by the synthetic "request" level."""
    regular = [e for e in engagements if e.level != REQUEST_LEVEL]
    requests = [e for e in engagements if e.level == REQUEST_LEVEL]
    return regular, requests


# ── Batched lookups ───────────────────────────────────────────────────────────

def _users_by_id(db: Session, ids: Set[str]) -> Dict[str, User]:
    if not ids:
        return {}
    return {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}


def _children_by_id(db: Session, ids: Set[str]) -> Dict[str, Child]:
    if not ids:
        return {}
    return {c.id: c for c in db.query(Child).filter(Child.id.in_(ids)).all()}


def _request_texts(db: Session, ids: Set[int]) -> Dict[int, str]:
    if not ids:
        return {}
    return dict(db.query(Request.id, Request.text).filter(Request.id.in_(ids)).all())


# ── Source fetches ────────────────────────────────────────────────────────────

def _fetch_direct(db: Session, teacher_id: str) -> List[DirectSource]:
    rows = (
        db.query(TeacherStudent, User)
        .outerjoin(User, User.id == TeacherStudent.student_id)
        .filter(TeacherStudent.teacher_id == teacher_id)
        .order_by(TeacherStudent.date_added.desc(), TeacherStudent.id.desc())
        .all()
    )
    return [DirectSource(row=row, student=student) for row, student in rows]


def _fetch_parent_sources(db: Session, teacher_id: str):
    """Parent-linked and accepted-request sources, sharing one identity cache."""
    linked_rows = (
        db.query(ParentChildTeacher)
        .filter(ParentChildTeacher.teacher_id == teacher_id)
        .order_by(ParentChildTeacher.date_added.desc(), ParentChildTeacher.id.desc())
        .all()
    )
    parents = _users_by_id(db, {r.parent_id for r in linked_rows})
    children = _children_by_id(db, {r.child_id for r in linked_rows})

    accepted_rows = (
        db.query(ParentRequestTeacherChild)
        .filter(
            ParentRequestTeacherChild.teacher_id == teacher_id,
            ParentRequestTeacherChild.status == ACCEPTED,
        )
        .order_by(ParentRequestTeacherChild.date_added.desc(), ParentRequestTeacherChild.id.desc())
        .all()
    )
    # Only look up identities step 2 has not already resolved
    parents.update(_users_by_id(
        db, {r.parent_id for r in accepted_rows} - parents.keys()
    ))
    children.update(_children_by_id(
        db, {r.child_id for r in accepted_rows if r.child_id} - children.keys()
    ))
    texts = _request_texts(db, {r.request_id for r in accepted_rows if r.request_id is not None})

    linked = [
        ParentLinkedSource(row=r, parent=parents.get(r.parent_id), child=children.get(r.child_id))
        for r in linked_rows
    ]
    accepted = [
        AcceptedRequestSource(
            row=r,
            parent=parents.get(r.parent_id),
            child=children.get(r.child_id),
            request_text=texts.get(r.request_id),
        )
        for r in accepted_rows
    ]
    return linked, accepted


def _parent_cards(sources: Iterable[Union[ParentLinkedSource, AcceptedRequestSource]]) -> List[ParentCard]:
    cards: Dict[str, ParentCard] = {}
    for source in sources:
        parent_id = source.row.parent_id
        if parent_id in cards:
            continue
        parent = source.parent
        cards[parent_id] = ParentCard(
            id=parent_id,
            full_name=parent.full_name if parent else None,
            email=parent.email if parent else None,
            phone=parent.phone if parent else None,
            image_url=resolve_image_url(
                parent.profile_image if parent else None, settings.profile_images_bucket
            ),
        )
    return list(cards.values())


# ── Teacher dashboard ─────────────────────────────────────────────────────────

def load(db: Session, teacher_id: str, today: Optional[date] = None) -> TeacherEngagementView:
    """Students, parents and request students for one teacher."""
    today = today or date.today()
    with store_call(db, "load your students"):
        direct = _fetch_direct(db, teacher_id)
        linked, accepted = _fetch_parent_sources(db, teacher_id)

    sources: List[EngagementSource] = [*direct, *linked, *accepted]
    engagements = [normalize(source, today) for source in sources]
    regular, request_students = partition(engagements)

    view = TeacherEngagementView(
        students=dedupe_by_student(regular),
        parents=_parent_cards([*linked, *accepted]),
        request_students=request_students,
        all_engagements=engagements,
    )
    log.debug(
        "Engagements for teacher %s: %d rows, %d students, %d parents, %d request students",
        teacher_id, len(engagements), len(view.students), len(view.parents), len(request_students),
    )
    return view


# ── Learner views ─────────────────────────────────────────────────────────────

def _teacher_card(teacher: Optional[User], teacher_id: str) -> EngagementPerson:
    if teacher is None:
        return EngagementPerson(id=teacher_id, image_url=resolve_image_url(None))
    return EngagementPerson(
        id=teacher.id,
        full_name=teacher.full_name,
        email=teacher.email,
        phone=teacher.phone,
        image_url=resolve_image_url(teacher.profile_image, settings.profile_images_bucket),
    )


def load_for_student(db: Session, student_id: str, today: Optional[date] = None) -> List[MyTeacherItem]:
    """A student's teachers, newest engagement first."""
    today = today or date.today()
    with store_call(db, "load your teachers"):
        rows = (
            db.query(TeacherStudent, User)
            .outerjoin(User, User.id == TeacherStudent.teacher_id)
            .filter(TeacherStudent.student_id == student_id)
            .order_by(TeacherStudent.date_added.desc(), TeacherStudent.id.desc())
            .all()
        )
    return [
        MyTeacherItem(
            source_tag="direct",
            id=row.id,
            subject=row.subject,
            level=row.level,
            teacher=_teacher_card(teacher, row.teacher_id),
            date_added=row.date_added,
            expiry_date=row.expiry_date,
            is_active=is_active(row.expiry_date, today),
        )
        for row, teacher in rows
    ]


def load_for_parent(db: Session, parent_id: str, today: Optional[date] = None) -> List[MyTeacherItem]:
    """Teachers of a parent's children: registrations and accepted requests."""
    today = today or date.today()
    with store_call(db, "load your children's teachers"):
        linked = (
            db.query(ParentChildTeacher)
            .filter(ParentChildTeacher.parent_id == parent_id)
            .order_by(ParentChildTeacher.date_added.desc(), ParentChildTeacher.id.desc())
            .all()
        )
        accepted = (
            db.query(ParentRequestTeacherChild)
            .filter(
                ParentRequestTeacherChild.parent_id == parent_id,
                ParentRequestTeacherChild.status == ACCEPTED,
            )
            .order_by(ParentRequestTeacherChild.date_added.desc(), ParentRequestTeacherChild.id.desc())
            .all()
        )
        teachers = _users_by_id(db, {r.teacher_id for r in linked} | {r.teacher_id for r in accepted})
        texts = _request_texts(db, {r.request_id for r in accepted if r.request_id is not None})

    items = [
        MyTeacherItem(
            source_tag="parent_linked",
            id=r.id,
            subject=r.subject,
            level=r.level,
            teacher=_teacher_card(teachers.get(r.teacher_id), r.teacher_id),
            child_id=r.child_id,
            date_added=r.date_added,
            expiry_date=r.expiry_date,
            is_active=is_active(r.expiry_date, today),
        )
        for r in linked
    ]
    items.extend(
        MyTeacherItem(
            source_tag="accepted_request",
            id=r.id,
            subject=texts.get(r.request_id),
            level=REQUEST_LEVEL,
            teacher=_teacher_card(teachers.get(r.teacher_id), r.teacher_id),
            child_id=r.child_id,
            date_added=r.date_added,
            expiry_date=r.expiry_date,
            is_active=is_active(r.expiry_date, today),
        )
        for r in accepted
    )
    items.sort(key=lambda item: item.date_added, reverse=True)
    return items
