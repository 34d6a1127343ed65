"""Performance Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrsuite.common.constants import RATING_SCALE_MAX, GoalStatus, ReviewStatus


# ── Reviews ─────────────────────────────────────────────────────────

class ReviewCreate(BaseModel):
    employee_id: uuid.UUID
    review_period: str = Field(..., min_length=1, max_length=20, examples=["2025-H1"])
    review_date: date
    overall_rating: Optional[Decimal] = Field(None, ge=1, le=RATING_SCALE_MAX)
    comments: Optional[str] = None


class ReviewComplete(BaseModel):
    overall_rating: Optional[Decimal] = Field(None, ge=1, le=RATING_SCALE_MAX)
    comments: Optional[str] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    reviewer_id: Optional[uuid.UUID] = None
    review_period: str
    review_date: date
    overall_rating: Optional[Decimal] = None
    status: ReviewStatus
    comments: Optional[str] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ── Goals ───────────────────────────────────────────────────────────

class GoalCreate(BaseModel):
    employee_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    target_date: Optional[date] = None
    progress: int = Field(0, ge=0, le=100)


class GoalProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)


class GoalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    title: str
    description: Optional[str] = None
    target_date: Optional[date] = None
    progress: int
    status: GoalStatus
