"""Recruitment Pydantic v2 schemas."""


import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from hrsuite.common.constants import RATING_SCALE_MAX, InterviewStatus, JobStatus, QuestionType


# ── Flow template stages ────────────────────────────────────────────

class Question(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    text: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.text
    weight: Optional[Decimal] = Field(None, ge=0, le=100)
    options: Optional[list[str]] = None


class Scoring(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    passing_score: Decimal = Field(Decimal("0"), ge=0, le=100, alias="passingScore")


class StageRequirements(BaseModel):
    questions: list[Question] = Field(default_factory=list)
    scoring: Scoring = Field(default_factory=Scoring)


class Stage(BaseModel):
    id: Optional[str] = Field(None, max_length=100)
    name: str = Field(..., min_length=1, max_length=150)
    order: Optional[int] = None
    type: str = Field("interview", max_length=50)
    requirements: StageRequirements = Field(default_factory=StageRequirements)


class FlowTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    stages: list[Stage] = Field(..., min_length=1)


class FlowTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    stages: Optional[list[Stage]] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class FlowTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    stages: list[dict[str, Any]]
    is_active: bool
    created_at: datetime


# ── Jobs / candidates ───────────────────────────────────────────────

class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    flow_template_id: Optional[uuid.UUID] = None
    status: JobStatus = JobStatus.draft


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    flow_template_id: Optional[uuid.UUID] = None
    status: JobStatus


class CandidateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    job_id: uuid.UUID
    stage: Optional[str] = Field(None, description="Defaults to the first stage of the job's flow")


class CandidateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None
    job_id: uuid.UUID
    stage: Optional[str] = None


# ── Interviews ──────────────────────────────────────────────────────

class InterviewSchedule(BaseModel):
    candidate_id: uuid.UUID
    scheduled_at: datetime
    interviewer_name: str = Field(..., min_length=1, max_length=200)
    duration_minutes: int = Field(60, ge=5, le=480)


class InterviewDocument(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    overall_rating: Optional[int] = Field(None, ge=1, le=RATING_SCALE_MAX)
    recommendation: Literal["move-forward", "second-round", "hold", "reject"]
    next_steps: Optional[str] = None
    additional_notes: Optional[str] = None
    documented_by: Optional[str] = Field(
        None, description="Defaults to the interviewer's name",
    )


class InterviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    candidate_id: uuid.UUID
    scheduled_at: datetime
    duration_minutes: int
    interviewer_name: str
    status: InterviewStatus
    documentation: Optional[dict[str, Any]] = None
