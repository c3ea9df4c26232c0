# app/schemas/request.py
# Pydantic models for the request board, the request desk and applications

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


# ── Request Board Feed ────────────────────────────────────────────────────────

class RequestFeedItem(BaseModel):
    """
    One open request as shown on the live board.
    Only `id` is required so partial change-feed payloads can be merged in.
    """
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    requester_id: Optional[str] = None
    child_id: Optional[str] = None
    text: Optional[str] = None
    city: Optional[str] = None
    status: str = "open"
    created_at: Optional[datetime] = None


class RequestFeedResponse(BaseModel):
    items: List[RequestFeedItem]
    count: int


# ── Request Desk (input) ──────────────────────────────────────────────────────

class RequestCreate(BaseModel):
    """Student or parent posts a new request."""
    text: str
    city: Optional[str] = None
    child_id: Optional[str] = None   # Parents only: which child it is for

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Request text cannot be empty.")
        return v.strip()


class RequestEdit(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Request text cannot be empty.")
        return v.strip()


# ── Request Desk (output) ─────────────────────────────────────────────────────

class RequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: str
    child_id: Optional[str] = None
    text: str
    city: Optional[str] = None
    status: str                       # open | fulfilled
    created_at: datetime


# ── Applications ──────────────────────────────────────────────────────────────

class ApplicationCreate(BaseModel):
    """
    Teacher applies to a request.
    Rate checks (finite, non-negative) live in the service so that
    direct callers get the same guarantees as the HTTP layer.
    """
    monthly_rate: float


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    teacher_id: str
    monthly_rate: float
    status: str                       # pending | accepted | rejected
    date_applied: datetime


class ApplicationTeacher(BaseModel):
    id: str
    full_name: str
    city: Optional[str] = None
    image_url: str


class ApplicationListItem(ApplicationResponse):
    """Application as the requester sees it: with the applying teacher's card."""
    teacher: ApplicationTeacher


class HasAppliedResponse(BaseModel):
    request_id: int
    teacher_id: str
    has_applied: bool


class MessageResponse(BaseModel):
    message: str
