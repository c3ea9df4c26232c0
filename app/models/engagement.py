# app/models/engagement.py
# The three tables an "engagement" (teacher teaches student X at level Y) lives in
#
#   teacher_students             → student registered directly with a teacher
#   parent_child_teachers        → parent registered one of their children
#   parent_request_teacher_child → parent's request was accepted by a teacher
#
# Rows are append-only. Expiry is computed (today <= expiry_date), never stored.
# Re-registering after expiry writes a new row; the old one stays as history.

from datetime import date

from sqlalchemy import Column, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.base_class import Base

# Synthetic level used for engagements that started from an accepted request
REQUEST_LEVEL = "request"


class TeacherStudent(Base):
    """Direct engagement: teacher ↔ student user."""
    __tablename__ = "teacher_students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subject = Column(Text, nullable=True)       # Request text when level == "request"
    level = Column(String(100), nullable=True)

    date_added = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=False)

    # ── Relationships ─────────────────────────────────────────────────────────
    teacher = relationship("User", foreign_keys=[teacher_id])
    student = relationship("User", foreign_keys=[student_id])

    def __repr__(self) -> str:
        return (
            f"<TeacherStudent teacher={self.teacher_id} student={self.student_id} "
            f"{self.subject}/{self.level} until={self.expiry_date}>"
        )


class ParentChildTeacher(Base):
    """Parent-linked engagement: teacher ↔ parent ↔ child (child from the child roster)."""
    __tablename__ = "parent_child_teachers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_id = Column(
        String(36),
        ForeignKey("parents_children.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    subject = Column(Text, nullable=True)
    level = Column(String(100), nullable=True)

    date_added = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ParentChildTeacher teacher={self.teacher_id} parent={self.parent_id} "
            f"child={self.child_id} until={self.expiry_date}>"
        )


class ParentRequestTeacherChild(Base):
    """Accepted-request engagement: created when a parent accepts a teacher's application."""
    __tablename__ = "parent_request_teacher_child"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Integer,
        ForeignKey("requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_id = Column(
        String(36),
        ForeignKey("parents_children.id", ondelete="SET NULL"),
        nullable=True,
    )

    status = Column(
        Enum("pending", "accepted", "rejected", name="parent_request_status_enum"),
        nullable=False,
        default="accepted",
        index=True,
    )

    date_added = Column(Date, nullable=False, default=date.today)
    expiry_date = Column(Date, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ParentRequestTeacherChild request={self.request_id} "
            f"teacher={self.teacher_id} status={self.status}>"
        )
