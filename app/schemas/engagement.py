# app/schemas/engagement.py
# Pydantic models for registration and the merged engagement views

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

SourceTag = Literal["direct", "parent_linked", "accepted_request"]


# ── Normalized Engagement ─────────────────────────────────────────────────────

class EngagementPerson(BaseModel):
    """Identity card of the other party (student, child or teacher)."""
    id: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    image_url: str


class Engagement(BaseModel):
    """
    Common projection of all three engagement tables.
    `id` is the source row id; it is only unique together with `source_tag`.
    """
    source_tag: SourceTag
    id: int
    subject: Optional[str] = None
    level: Optional[str] = None
    student: EngagementPerson
    parent_id: Optional[str] = None
    date_added: date
    expiry_date: date
    is_active: bool


class ParentCard(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    image_url: str


class TeacherEngagementView(BaseModel):
    """What a teacher's dashboard shows: distinct students, parents, request students."""
    students: List[Engagement]            # Regular engagements, one per student
    parents: List[ParentCard]
    request_students: List[Engagement]    # level == "request", one per row
    all_engagements: List[Engagement]     # Un-deduplicated history


class MyTeacherItem(BaseModel):
    """Student / parent side: an engagement seen from the learner's end."""
    source_tag: SourceTag
    id: int
    subject: Optional[str] = None
    level: Optional[str] = None
    teacher: EngagementPerson
    child_id: Optional[str] = None
    date_added: date
    expiry_date: date
    is_active: bool


# ── Registration ──────────────────────────────────────────────────────────────

class RegistrationCreate(BaseModel):
    teacher_id: str
    subject: str
    level: str

    @field_validator("teacher_id", "subject", "level")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Field cannot be empty.")
        return v.strip()


class ChildRegistrationCreate(RegistrationCreate):
    child_id: str


class RegistrationDecisionResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    active_until: Optional[date] = None


class EngagementRecord(BaseModel):
    """A freshly written engagement row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    teacher_id: str
    subject: Optional[str] = None
    level: Optional[str] = None
    date_added: date
    expiry_date: date
