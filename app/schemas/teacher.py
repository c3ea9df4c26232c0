# app/schemas/teacher.py
# Pydantic request/response models for teacher rate endpoints

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


# ── Rates (input) ─────────────────────────────────────────────────────────────

class RateCreate(BaseModel):
    subject: str
    level: str
    rate: float = 200.0

    @field_validator("subject", "level")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Provide subject and level.")
        return v.strip()


class RateUpdate(BaseModel):
    subject: Optional[str] = None
    level: Optional[str] = None
    rate: Optional[float] = None

    @field_validator("subject", "level")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Fields cannot be blank.")
        return v.strip() if v else v


# ── Rates (output) ────────────────────────────────────────────────────────────

class RateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    teacher_id: str
    subject: str
    level: str
    rate: float


class RateSearchItem(RateResponse):
    """Search hit with the teacher's public card."""
    teacher_name: str
    teacher_city: Optional[str] = None
    teacher_image_url: str
