"""RecruitIQ router — flow templates, jobs, candidates, interviews.

Writes require **recruiter** role or above.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import require_role
from hrsuite.common.constants import InterviewStatus, JobStatus, UserRole
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db
from hrsuite.recruitment.schemas import (
    CandidateCreate,
    CandidateResponse,
    FlowTemplateCreate,
    FlowTemplateResponse,
    FlowTemplateUpdate,
    InterviewDocument,
    InterviewResponse,
    InterviewSchedule,
    JobCreate,
    JobResponse,
)
from hrsuite.recruitment.service import (
    CandidateService,
    FlowTemplateService,
    InterviewService,
    JobService,
)

router = APIRouter()

_recruiter = require_role(UserRole.recruiter)


def _flow(template) -> dict:
    return FlowTemplateResponse.model_validate(template).model_dump(mode="json")


def _candidate(candidate) -> dict:
    return CandidateResponse.model_validate(candidate).model_dump(mode="json")


def _interview(interview) -> dict:
    return InterviewResponse.model_validate(interview).model_dump(mode="json")


# ── Flow templates ──────────────────────────────────────────────────

@router.get("/flow-templates")
async def list_flow_templates(
    is_active: Optional[bool] = Query(True),
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    templates = await FlowTemplateService.list_flow_templates(db, is_active=is_active)
    return {"data": [_flow(t) for t in templates], "message": "Flow templates retrieved successfully."}


@router.post("/flow-templates", status_code=201)
async def create_flow_template(
    body: FlowTemplateCreate,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    template = await FlowTemplateService.create_flow_template(db, body, actor_id=current_user.id)
    return {"data": _flow(template), "message": "Flow template created successfully."}


@router.get("/flow-templates/{template_id}")
async def get_flow_template(
    template_id: uuid.UUID,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    template = await FlowTemplateService.get_flow_template(db, template_id)
    return {"data": _flow(template), "message": "Flow template retrieved successfully."}


@router.put("/flow-templates/{template_id}")
async def update_flow_template(
    template_id: uuid.UUID,
    body: FlowTemplateUpdate,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    template = await FlowTemplateService.update_flow_template(
        db, template_id, body, actor_id=current_user.id,
    )
    return {"data": _flow(template), "message": "Flow template updated successfully."}


# ── Jobs ────────────────────────────────────────────────────────────

@router.get("/jobs")
async def list_jobs(
    status: Optional[JobStatus] = Query(None),
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    jobs = await JobService.list_jobs(db, status=status)
    return {
        "data": [JobResponse.model_validate(j).model_dump(mode="json") for j in jobs],
        "message": "Jobs retrieved successfully.",
    }


@router.post("/jobs", status_code=201)
async def create_job(
    body: JobCreate,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    job = await JobService.create_job(db, body, actor_id=current_user.id)
    return {
        "data": JobResponse.model_validate(job).model_dump(mode="json"),
        "message": "Job created successfully.",
    }


# ── Candidates ──────────────────────────────────────────────────────

@router.get("/candidates")
async def list_candidates(
    job_id: Optional[uuid.UUID] = Query(None),
    stage: Optional[str] = Query(None),
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    candidates = await CandidateService.list_candidates(db, job_id=job_id, stage=stage)
    return {"data": [_candidate(c) for c in candidates], "message": "Candidates retrieved successfully."}


@router.post("/candidates", status_code=201)
async def create_candidate(
    body: CandidateCreate,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    candidate = await CandidateService.create_candidate(db, body, actor_id=current_user.id)
    return {"data": _candidate(candidate), "message": "Candidate created successfully."}


@router.post("/candidates/{candidate_id}/advance")
async def advance_candidate(
    candidate_id: uuid.UUID,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    candidate = await CandidateService.advance_candidate(db, candidate_id, actor_id=current_user.id)
    return {"data": _candidate(candidate), "message": f"Candidate moved to {candidate.stage}."}


# ── Interviews ──────────────────────────────────────────────────────

@router.get("/interviews")
async def list_interviews(
    candidate_id: Optional[uuid.UUID] = Query(None),
    status: Optional[InterviewStatus] = Query(None),
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    interviews = await InterviewService.list_interviews(db, candidate_id=candidate_id, status=status)
    return {"data": [_interview(i) for i in interviews], "message": "Interviews retrieved successfully."}


@router.post("/interviews", status_code=201)
async def schedule_interview(
    body: InterviewSchedule,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    interview = await InterviewService.schedule_interview(db, body, actor_id=current_user.id)
    return {"data": _interview(interview), "message": "Interview scheduled."}


@router.post("/interviews/{interview_id}/cancel")
async def cancel_interview(
    interview_id: uuid.UUID,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    interview = await InterviewService.cancel_interview(db, interview_id, actor_id=current_user.id)
    return {"data": _interview(interview), "message": "Interview cancelled."}


@router.post("/interviews/{interview_id}/documentation")
async def document_interview(
    interview_id: uuid.UUID,
    body: InterviewDocument,
    current_user: Employee = Depends(_recruiter),
    db: AsyncSession = Depends(get_db),
):
    """Store interview answers; the score is computed from the candidate's stage."""
    interview = await InterviewService.document_interview(
        db, interview_id, body, actor_id=current_user.id,
    )
    return {"data": _interview(interview), "message": "Interview documented."}
