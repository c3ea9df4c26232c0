# app/models/user.py
# Roster tables owned by the profile/auth collaborator.
# The engine only reads them: identities for engagement views and role checks.
#
#   users            → every account: student | parent | teacher | admin
#   parents_children → child roster; children are NOT users and never log in

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from app.db.base_class import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    # Auth-provider id (uuid string); kept as text so seeded ids stay readable
    id = Column(String(36), primary_key=True, default=_new_id)

    # ── Identity ──────────────────────────────────────────────────────────────
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    profile_image = Column(Text, nullable=True)   # Public URL or storage path

    # ── Role ──────────────────────────────────────────────────────────────────
    user_type = Column(
        Enum("student", "parent", "teacher", "admin", name="user_type_enum"),
        nullable=False,
        default="student",
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    children = relationship("Child", back_populates="parent", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User id={self.id} type={self.user_type}>"


class Child(Base):
    """A parent's child. Referenced by parent-linked and accepted-request engagements."""
    __tablename__ = "parents_children"

    id = Column(String(36), primary_key=True, default=_new_id)
    parent_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    profile_image = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    parent = relationship("User", back_populates="children")

    def __repr__(self) -> str:
        return f"<Child id={self.id} parent={self.parent_id}>"
