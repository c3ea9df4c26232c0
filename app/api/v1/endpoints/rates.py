# app/api/v1/endpoints/rates.py
# Teacher rates
#
#   GET    /rates/          → teacher: own rates
#   POST   /rates/          → teacher: add a subject/level/rate
#   PATCH  /rates/{id}      → teacher: edit own rate
#   DELETE /rates/{id}      → teacher: delete own rate
#   GET    /rates/search    → anyone logged in: teachers for a subject (and level)

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import app.db.base  # noqa: F401
from app.core.dependencies import Viewer, require_login, require_teacher
from app.db.session import get_db
from app.schemas.request import MessageResponse
from app.schemas.teacher import RateCreate, RateResponse, RateSearchItem, RateUpdate
from app.services import rate_service

router = APIRouter()


@router.get("/search", response_model=List[RateSearchItem], summary="Find teachers by subject")
def search_rates(
    subject: str = Query(..., min_length=1),
    level: Optional[str] = Query(None),
    viewer: Viewer = Depends(require_login),
    db: Session = Depends(get_db),
):
    return rate_service.search_rates(db, subject, level)


@router.get("/", response_model=List[RateResponse], summary="Teacher's own rates")
def list_rates(
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return rate_service.list_rates(db, viewer.id)


@router.post("/", response_model=RateResponse, status_code=201, summary="Add a rate")
def add_rate(
    payload: RateCreate,
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return rate_service.add_rate(db, viewer.id, payload.subject, payload.level, payload.rate)


@router.patch("/{rate_id}", response_model=RateResponse, summary="Edit a rate")
def update_rate(
    rate_id: int,
    payload: RateUpdate,
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    return rate_service.update_rate(
        db, rate_id, viewer.id,
        subject=payload.subject, level=payload.level, rate=payload.rate,
    )


@router.delete("/{rate_id}", response_model=MessageResponse, summary="Delete a rate")
def delete_rate(
    rate_id: int,
    viewer: Viewer = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    rate_service.delete_rate(db, rate_id, viewer.id)
    return MessageResponse(message="Rate deleted.")
