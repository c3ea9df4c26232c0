"""
Request desk: posting, editing and picking a teacher.
"""

from datetime import timedelta

import pytest

from app.core.exceptions import ConflictError, ForbiddenError, InputValidationError, NotFoundError
from app.models.engagement import REQUEST_LEVEL, ParentRequestTeacherChild, TeacherStudent
from app.models.request import (
    APPLICATION_ACCEPTED,
    APPLICATION_PENDING,
    APPLICATION_REJECTED,
    REQUEST_FULFILLED,
    RequestApplication,
)
from app.services import application_service, engagement_aggregator, request_service
from app.services.realtime import get_change_feed
from app.services.request_feed import RequestBoardFeed


# ============================================================
# create / edit / delete
# ============================================================

def test_create_request_defaults_city_to_requester(people):
    request = request_service.create_request(people.db, "student-1", "student", "  Need a maths tutor ")
    assert request.status == "open"
    assert request.text == "Need a maths tutor"
    assert request.city == "Accra"


def test_teachers_cannot_post_requests(people):
    with pytest.raises(ForbiddenError):
        request_service.create_request(people.db, "teacher-1", "teacher", "anything")


def test_empty_text_rejected(people):
    with pytest.raises(InputValidationError):
        request_service.create_request(people.db, "student-1", "student", "   ")


def test_parent_posts_for_own_child_only(people):
    db = people.db
    request = request_service.create_request(db, "parent-1", "parent", "Reading", child_id="child-1")
    assert request.child_id == "child-1"

    people.user("parent-2", "parent")
    with pytest.raises(NotFoundError):
        request_service.create_request(db, "parent-2", "parent", "Reading", child_id="child-1")


def test_edit_only_own_open_request(people):
    db = people.db
    request = people.request("student-1")

    edited = request_service.edit_request(db, request.id, "student-1", "Need a physics tutor")
    assert edited.text == "Need a physics tutor"

    with pytest.raises(ForbiddenError):
        request_service.edit_request(db, request.id, "parent-1", "hijack")

    request.status = REQUEST_FULFILLED
    db.commit()
    with pytest.raises(ConflictError):
        request_service.edit_request(db, request.id, "student-1", "too late")


def test_delete_request_removes_applications(people):
    db = people.db
    request = people.request("student-1")
    application_service.apply(db, request.id, "teacher-1", 100, "teacher")

    request_service.delete_request(db, request.id, "student-1")

    assert request_service.list_my_requests(db, "student-1") == []
    assert db.query(RequestApplication).count() == 0


# ============================================================
# accept / reject
# ============================================================

def test_accept_fulfils_request_and_rejects_siblings(people, today):
    db = people.db
    request = people.request("student-1", text="Need JHS Math tutor")
    chosen = application_service.apply(db, request.id, "teacher-1", 150, "teacher")
    other = application_service.apply(db, request.id, "teacher-2", 120, "teacher")

    feed = RequestBoardFeed(get_change_feed())
    feed.initialize(db, "teacher")
    feed.subscribe()
    try:
        assert [i.id for i in feed.items] == [request.id]
        accepted = request_service.accept_application(db, chosen.id, "student-1", today)
        assert feed.items == []
    finally:
        feed.unsubscribe()

    assert accepted.status == APPLICATION_ACCEPTED
    db.refresh(other)
    assert other.status == APPLICATION_REJECTED
    db.refresh(request)
    assert request.status == REQUEST_FULFILLED

    engagement = db.query(TeacherStudent).one()
    assert engagement.teacher_id == "teacher-1"
    assert engagement.level == REQUEST_LEVEL
    assert engagement.subject == "Need JHS Math tutor"
    assert engagement.expiry_date == today + timedelta(days=31)

    view = engagement_aggregator.load(db, "teacher-1", today)
    assert [e.student.id for e in view.request_students] == ["student-1"]
    assert view.students == []


def test_parent_acceptance_shows_as_request_student(people, today):
    db = people.db
    request = people.request("parent-1", text="Reading help", child_id="child-1")
    application = application_service.apply(db, request.id, "teacher-1", 90, "teacher")

    request_service.accept_application(db, application.id, "parent-1", today)

    row = db.query(ParentRequestTeacherChild).one()
    assert row.child_id == "child-1"
    assert row.status == "accepted"

    view = engagement_aggregator.load(db, "teacher-1", today)
    assert [e.source_tag for e in view.request_students] == ["accepted_request"]
    assert view.request_students[0].student.full_name == "Kwame Owusu"
    assert view.request_students[0].subject == "Reading help"
    assert [p.id for p in view.parents] == ["parent-1"]


def test_accept_twice_conflicts(people, today):
    db = people.db
    request = people.request("student-1")
    first = application_service.apply(db, request.id, "teacher-1", 150, "teacher")
    second = application_service.apply(db, request.id, "teacher-2", 150, "teacher")
    request_service.accept_application(db, first.id, "student-1", today)

    with pytest.raises(ConflictError):
        request_service.accept_application(db, second.id, "student-1", today)


def test_only_requester_may_accept(people, today):
    db = people.db
    request = people.request("student-1")
    application = application_service.apply(db, request.id, "teacher-1", 150, "teacher")

    with pytest.raises(ForbiddenError):
        request_service.accept_application(db, application.id, "parent-1", today)


def test_reject_application(people):
    db = people.db
    request = people.request("student-1")
    application = application_service.apply(db, request.id, "teacher-1", 150, "teacher")

    rejected = request_service.reject_application(db, application.id, "student-1")

    assert rejected.status == APPLICATION_REJECTED
    with pytest.raises(ConflictError):
        request_service.reject_application(db, application.id, "student-1")


def test_list_applications_carries_teacher_card(people):
    db = people.db
    request = people.request("student-1")
    application_service.apply(db, request.id, "teacher-1", 150, "teacher")

    items = request_service.list_applications(db, request.id, "student-1")

    assert len(items) == 1
    assert items[0].status == APPLICATION_PENDING
    assert items[0].teacher.full_name == "Ama Mensah"
    assert items[0].teacher.image_url == "/placeholder.png"
