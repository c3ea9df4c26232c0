"""
Registration gate: one active engagement per (learner, teacher, subject, level).
"""

from datetime import date, timedelta

import pytest
from freezegun import freeze_time

from app.core.exceptions import InputValidationError, NotFoundError
from app.models.engagement import ParentChildTeacher, TeacherStudent
from app.services import registration_gate as gate


# --- Helpers ---

def direct_row(expiry: date, subject="Math", level="JHS", student="student-1") -> TeacherStudent:
    return TeacherStudent(
        teacher_id="teacher-1",
        student_id=student,
        subject=subject,
        level=level,
        date_added=expiry - timedelta(days=30),
        expiry_date=expiry,
    )


# ============================================================
# Calendar arithmetic
# ============================================================

@pytest.mark.parametrize("start, expected", [
    (date(2026, 10, 17), date(2026, 11, 17)),
    (date(2026, 12, 15), date(2027, 1, 15)),
    (date(2027, 1, 31), date(2027, 2, 28)),
    (date(2028, 1, 31), date(2028, 2, 29)),
    (date(2026, 3, 31), date(2026, 4, 30)),
])
def test_expiry_is_one_calendar_month_later(start, expected):
    assert gate.expiry_for(start) == expected


def test_active_through_expiry_day():
    today = date(2026, 10, 17)
    assert gate.is_active(today, today) is True
    assert gate.is_active(today - timedelta(days=1), today) is False


# ============================================================
# Student registration
# ============================================================

def test_register_then_blocked(people, today):
    db = people.db
    assert gate.can_register(db, "student-1", "teacher-1", "Math", "JHS", today).allowed

    outcome = gate.register(db, "student-1", "teacher-1", "Math", "JHS", today)

    assert outcome.allowed
    assert outcome.engagement.date_added == today
    assert outcome.engagement.expiry_date == date(2026, 11, 17)

    decision = gate.can_register(db, "student-1", "teacher-1", "Math", "JHS", today)
    assert decision.allowed is False
    assert decision.reason == "already active until 2026-11-17"
    assert decision.active_until == date(2026, 11, 17)


def test_blocked_register_writes_nothing(people, today):
    db = people.db
    gate.register(db, "student-1", "teacher-1", "Math", "JHS", today)

    outcome = gate.register(db, "student-1", "teacher-1", "Math", "JHS", today + timedelta(days=3))

    assert not outcome.allowed
    assert outcome.engagement is None
    assert db.query(TeacherStudent).count() == 1


def test_expiry_boundary(people, today):
    db = people.db
    people.add(direct_row(expiry=today))
    assert not gate.can_register(db, "student-1", "teacher-1", "Math", "JHS", today).allowed

    assert gate.can_register(
        db, "student-1", "teacher-1", "Math", "JHS", today + timedelta(days=1)
    ).allowed


def test_expired_row_allows_new_registration_and_keeps_history(people, today):
    db = people.db
    people.add(direct_row(expiry=today - timedelta(days=1)))

    outcome = gate.register(db, "student-1", "teacher-1", "Math", "JHS", today)

    assert outcome.allowed
    assert db.query(TeacherStudent).count() == 2


def test_latest_row_decides_when_duplicates_exist(people, today):
    people.add(direct_row(expiry=today - timedelta(days=40)))
    people.add(direct_row(expiry=today + timedelta(days=5)))

    decision = gate.can_register(people.db, "student-1", "teacher-1", "Math", "JHS", today)

    assert decision.active_until == today + timedelta(days=5)


def test_other_subject_or_level_is_independent(people, today):
    db = people.db
    gate.register(db, "student-1", "teacher-1", "Math", "JHS", today)

    assert gate.can_register(db, "student-1", "teacher-1", "Math", "SHS", today).allowed
    assert gate.can_register(db, "student-1", "teacher-1", "English", "JHS", today).allowed
    assert gate.can_register(db, "student-1", "teacher-2", "Math", "JHS", today).allowed


def test_defaults_to_the_real_date(people):
    db = people.db
    with freeze_time("2027-01-31"):
        outcome = gate.register(db, "student-1", "teacher-1", "Math", "JHS")
        assert outcome.engagement.expiry_date == date(2027, 2, 28)

    with freeze_time("2027-02-28"):
        assert not gate.can_register(db, "student-1", "teacher-1", "Math", "JHS").allowed

    with freeze_time("2027-03-01"):
        assert gate.can_register(db, "student-1", "teacher-1", "Math", "JHS").allowed


@pytest.mark.parametrize("args", [
    ("", "teacher-1", "Math", "JHS"),
    ("student-1", "  ", "Math", "JHS"),
    ("student-1", "teacher-1", None, "JHS"),
    ("student-1", "teacher-1", "Math", ""),
])
def test_blank_inputs_rejected(people, args):
    with pytest.raises(InputValidationError):
        gate.can_register(people.db, *args)


def test_register_with_unknown_teacher(people, today):
    with pytest.raises(NotFoundError):
        gate.register(people.db, "student-1", "student-1", "Math", "JHS", today)


# ============================================================
# Parent registers a child
# ============================================================

def test_register_child(people, today):
    db = people.db
    outcome = gate.register_child(db, "parent-1", "child-1", "teacher-1", "Science", "JHS", today)

    assert outcome.allowed
    assert isinstance(outcome.engagement, ParentChildTeacher)
    assert outcome.engagement.parent_id == "parent-1"

    again = gate.register_child(db, "parent-1", "child-1", "teacher-1", "Science", "JHS", today)
    assert not again.allowed
    assert again.decision.reason == "already active until 2026-11-17"


def test_register_someone_elses_child(people, today):
    people.user("parent-2", "parent")
    with pytest.raises(NotFoundError):
        gate.register_child(people.db, "parent-2", "child-1", "teacher-1", "Science", "JHS", today)


def test_can_register_child_checks_the_parent(people, today):
    db = people.db
    people.user("parent-2", "parent")

    assert gate.can_register_child(db, "child-1", "teacher-1", "Science", "JHS", today, parent_id="parent-1").allowed
    with pytest.raises(NotFoundError):
        gate.can_register_child(db, "child-1", "teacher-1", "Science", "JHS", today, parent_id="parent-2")
