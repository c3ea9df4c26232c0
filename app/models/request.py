# app/models/request.py
# Open tutoring requests and teachers' applications to them
#
# Flow:
#   1. Student / parent posts a request           → status "open"
#   2. Teachers see it on the live request board  → apply once with a monthly rate
#   3. Requester accepts one application          → others rejected, request "fulfilled"
#   4. Fulfilled requests vanish from every board (change-feed update event)

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base

REQUEST_OPEN = "open"
REQUEST_FULFILLED = "fulfilled"

APPLICATION_PENDING = "pending"
APPLICATION_ACCEPTED = "accepted"
APPLICATION_REJECTED = "rejected"


class Request(Base):
    """
    A requester's open call for a tutor.
    Status lifecycle: open → fulfilled (exactly once) | deleted
    Text may be edited while open.
    """
    __tablename__ = "requests"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Parties ───────────────────────────────────────────────────────────────
    requester_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Only set when a parent posts on behalf of one of their children
    child_id = Column(
        String(36),
        ForeignKey("parents_children.id", ondelete="SET NULL"),
        nullable=True,
    )

    # ── Request Details ───────────────────────────────────────────────────────
    text = Column(Text, nullable=False)
    city = Column(String(100), nullable=True)

    status = Column(
        Enum(REQUEST_OPEN, REQUEST_FULFILLED, name="request_status_enum"),
        nullable=False,
        default=REQUEST_OPEN,
        index=True,
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    requester = relationship("User")
    applications = relationship(
        "RequestApplication", back_populates="request", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Request id={self.id} requester={self.requester_id} status={self.status}>"


class RequestApplication(Base):
    """
    A teacher's proposal to take on a request.
    The store does not enforce one row per (request, teacher); the service checks first.
    """
    __tablename__ = "request_applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Integer,
        ForeignKey("requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    teacher_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    monthly_rate = Column(Float, nullable=False)

    status = Column(
        Enum(
            APPLICATION_PENDING,
            APPLICATION_ACCEPTED,
            APPLICATION_REJECTED,
            name="application_status_enum",
        ),
        nullable=False,
        default=APPLICATION_PENDING,
    )

    date_applied = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    request = relationship("Request", back_populates="applications")
    teacher = relationship("User")

    def __repr__(self) -> str:
        return (
            f"<RequestApplication request={self.request_id} "
            f"teacher={self.teacher_id} status={self.status}>"
        )
