"""Recruitment service — flow templates, jobs, candidate pipeline and
interview documentation.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.audit import create_audit_entry
from hrsuite.common.constants import InterviewStatus, JobStatus
from hrsuite.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrsuite.core_hr.models import Department
from hrsuite.recruitment.models import Candidate, FlowTemplate, Interview, Job
from hrsuite.recruitment.schemas import (
    CandidateCreate,
    FlowTemplateCreate,
    FlowTemplateUpdate,
    InterviewDocument,
    InterviewSchedule,
    JobCreate,
    Stage,
)
from hrsuite.recruitment.scoring import calculate_interview_score, is_passing

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_stages(stages: Sequence[Stage]) -> list[dict[str, Any]]:
    """Renumber ``order`` 1..n in list order and fill missing stage ids.

    Raises ValidationException on duplicate stage names.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for stage in stages:
        key = stage.name.strip().lower()
        if key in seen:
            duplicates.append(stage.name)
        seen.add(key)
    if duplicates:
        raise ValidationException(
            {"stages": [f"Duplicate stage name '{name}'." for name in duplicates]},
        )

    normalized = []
    for index, stage in enumerate(stages, start=1):
        data = stage.model_dump(mode="json")
        data["name"] = stage.name.strip()
        data["order"] = index
        data["id"] = stage.id or f"stage-{uuid.uuid4().hex[:8]}"
        normalized.append(data)
    return normalized


def _ordered(stages: Optional[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    return sorted(stages or [], key=lambda s: s.get("order", 0))


# ═════════════════════════════════════════════════════════════════════
# Flow templates
# ═════════════════════════════════════════════════════════════════════


class FlowTemplateService:

    @staticmethod
    async def list_flow_templates(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> Sequence[FlowTemplate]:
        query = select(FlowTemplate).order_by(FlowTemplate.name)
        if is_active is not None:
            query = query.where(FlowTemplate.is_active.is_(is_active))
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_flow_template(db: AsyncSession, template_id: uuid.UUID) -> FlowTemplate:
        template = await db.get(FlowTemplate, template_id)
        if template is None:
            raise NotFoundException("FlowTemplate", str(template_id))
        return template

    @staticmethod
    async def _check_name(
        db: AsyncSession,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(FlowTemplate.id).where(FlowTemplate.name == name)
        if exclude_id is not None:
            query = query.where(FlowTemplate.id != exclude_id)
        if (await db.execute(query)).first() is not None:
            raise ConflictError("name", name)

    @staticmethod
    async def create_flow_template(
        db: AsyncSession,
        data: FlowTemplateCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> FlowTemplate:
        await FlowTemplateService._check_name(db, data.name)
        template = FlowTemplate(
            name=data.name,
            description=data.description,
            stages=normalize_stages(data.stages),
        )
        db.add(template)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="flow_template",
            entity_id=template.id,
            actor_id=actor_id,
            new_values={"name": template.name, "stages": template.stage_names()},
        )
        return template

    @staticmethod
    async def update_flow_template(
        db: AsyncSession,
        template_id: uuid.UUID,
        data: FlowTemplateUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> FlowTemplate:
        template = await FlowTemplateService.get_flow_template(db, template_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = {"name": template.name, "stages": template.stage_names()}

        if data.name is not None and data.name != template.name:
            await FlowTemplateService._check_name(db, data.name, exclude_id=template.id)
            template.name = data.name
        if "description" in changes:
            template.description = data.description
        if data.is_active is not None:
            template.is_active = data.is_active
        if data.stages is not None:
            template.stages = normalize_stages(data.stages)
        template.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="flow_template",
            entity_id=template.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={"name": template.name, "stages": template.stage_names()},
        )
        return template


# ═════════════════════════════════════════════════════════════════════
# Jobs
# ═════════════════════════════════════════════════════════════════════


class JobService:

    @staticmethod
    async def create_job(
        db: AsyncSession,
        data: JobCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Job:
        errors: dict[str, list[str]] = {}
        if data.department_id is not None and await db.get(Department, data.department_id) is None:
            errors["department_id"] = ["Department does not exist."]
        if data.flow_template_id is not None:
            flow = await db.get(FlowTemplate, data.flow_template_id)
            if flow is None:
                errors["flow_template_id"] = ["Flow template does not exist."]
            elif not flow.is_active:
                errors["flow_template_id"] = ["Flow template is inactive."]
        if errors:
            raise ValidationException(errors)

        job = Job(**data.model_dump())
        db.add(job)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="job",
            entity_id=job.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return job

    @staticmethod
    async def get_job(db: AsyncSession, job_id: uuid.UUID) -> Job:
        job = await db.get(Job, job_id)
        if job is None:
            raise NotFoundException("Job", str(job_id))
        return job

    @staticmethod
    async def list_jobs(
        db: AsyncSession,
        *,
        status: Optional[JobStatus] = None,
    ) -> Sequence[Job]:
        query = select(Job).order_by(Job.created_at.desc())
        if status is not None:
            query = query.where(Job.status == status)
        return (await db.execute(query)).scalars().all()


# ═════════════════════════════════════════════════════════════════════
# Candidates
# ═════════════════════════════════════════════════════════════════════


class CandidateService:

    @staticmethod
    async def _stages_for_job(db: AsyncSession, job: Job) -> list[dict[str, Any]]:
        if job.flow_template_id is None:
            return []
        flow = await db.get(FlowTemplate, job.flow_template_id)
        return _ordered(flow.stages if flow is not None else [])

    @staticmethod
    async def create_candidate(
        db: AsyncSession,
        data: CandidateCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Candidate:
        job = await JobService.get_job(db, data.job_id)
        if job.status == JobStatus.closed:
            raise BusinessRuleException("Candidates cannot be added to a closed job.")

        stages = await CandidateService._stages_for_job(db, job)
        stage = data.stage
        if stage is None and stages:
            stage = stages[0]["name"]
        elif stage is not None and stages and stage not in {s["name"] for s in stages}:
            raise ValidationException(
                {"stage": [f"Stage '{stage}' is not part of the job's flow."]},
            )

        candidate = Candidate(
            name=data.name,
            email=str(data.email).lower(),
            phone=data.phone,
            job_id=job.id,
            stage=stage,
        )
        db.add(candidate)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="candidate",
            entity_id=candidate.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json") | {"stage": stage},
        )
        return candidate

    @staticmethod
    async def get_candidate(db: AsyncSession, candidate_id: uuid.UUID) -> Candidate:
        candidate = await db.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFoundException("Candidate", str(candidate_id))
        return candidate

    @staticmethod
    async def list_candidates(
        db: AsyncSession,
        *,
        job_id: Optional[uuid.UUID] = None,
        stage: Optional[str] = None,
    ) -> Sequence[Candidate]:
        query = select(Candidate).order_by(Candidate.created_at.desc())
        if job_id is not None:
            query = query.where(Candidate.job_id == job_id)
        if stage is not None:
            query = query.where(Candidate.stage == stage)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def advance_candidate(
        db: AsyncSession,
        candidate_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Candidate:
        """Move the candidate to the next stage of the job's flow."""
        candidate = await CandidateService.get_candidate(db, candidate_id)
        job = await JobService.get_job(db, candidate.job_id)
        names = [s["name"] for s in await CandidateService._stages_for_job(db, job)]
        if not names:
            raise BusinessRuleException("The candidate's job has no hiring flow.")

        if candidate.stage not in names:
            next_stage = names[0]
        else:
            index = names.index(candidate.stage)
            if index == len(names) - 1:
                raise BusinessRuleException(
                    f"Candidate is already at the final stage '{candidate.stage}'.",
                )
            next_stage = names[index + 1]

        previous = candidate.stage
        candidate.stage = next_stage
        candidate.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="advance",
            entity_type="candidate",
            entity_id=candidate.id,
            actor_id=actor_id,
            old_values={"stage": previous},
            new_values={"stage": next_stage},
        )
        logger.info("Candidate %s advanced from %r to %r", candidate.id, previous, next_stage)
        return candidate


# ═════════════════════════════════════════════════════════════════════
# Interviews
# ═════════════════════════════════════════════════════════════════════


class InterviewService:

    @staticmethod
    async def schedule_interview(
        db: AsyncSession,
        data: InterviewSchedule,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Interview:
        await CandidateService.get_candidate(db, data.candidate_id)
        interview = Interview(**data.model_dump(), status=InterviewStatus.scheduled)
        db.add(interview)
        await db.flush()

        await create_audit_entry(
            db,
            action="schedule",
            entity_type="interview",
            entity_id=interview.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return interview

    @staticmethod
    async def get_interview(db: AsyncSession, interview_id: uuid.UUID) -> Interview:
        interview = await db.get(Interview, interview_id)
        if interview is None:
            raise NotFoundException("Interview", str(interview_id))
        return interview

    @staticmethod
    async def list_interviews(
        db: AsyncSession,
        *,
        candidate_id: Optional[uuid.UUID] = None,
        status: Optional[InterviewStatus] = None,
    ) -> Sequence[Interview]:
        query = select(Interview).order_by(Interview.scheduled_at)
        if candidate_id is not None:
            query = query.where(Interview.candidate_id == candidate_id)
        if status is not None:
            query = query.where(Interview.status == status)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def cancel_interview(
        db: AsyncSession,
        interview_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Interview:
        interview = await InterviewService.get_interview(db, interview_id)
        if interview.status != InterviewStatus.scheduled:
            raise BusinessRuleException(
                f"Only scheduled interviews can be cancelled; this one is {interview.status.value}.",
            )
        interview.status = InterviewStatus.cancelled
        interview.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="interview",
            entity_id=interview.id,
            actor_id=actor_id,
        )
        return interview

    @staticmethod
    async def document_interview(
        db: AsyncSession,
        interview_id: uuid.UUID,
        data: InterviewDocument,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Interview:
        """Record answers and score them against the candidate's current stage."""
        interview = await InterviewService.get_interview(db, interview_id)
        if interview.status == InterviewStatus.cancelled:
            raise BusinessRuleException("A cancelled interview cannot be documented.")

        candidate = await CandidateService.get_candidate(db, interview.candidate_id)
        job = await JobService.get_job(db, candidate.job_id)
        stages = await CandidateService._stages_for_job(db, job)
        stage = next((s for s in stages if s["name"] == candidate.stage), None)

        score: Optional[int] = None
        passed: Optional[bool] = None
        if stage is not None:
            parsed = Stage.model_validate(stage)
            score = calculate_interview_score(parsed, data.answers)
            if score is not None:
                passed = is_passing(score, parsed.requirements.scoring.passing_score)

        interview.documentation = {
            "answers": data.answers,
            "score": score,
            "passed": passed,
            "overall_rating": data.overall_rating,
            "recommendation": data.recommendation,
            "next_steps": data.next_steps,
            "additional_notes": data.additional_notes,
            "documented_at": _now().isoformat(),
            "documented_by": data.documented_by or interview.interviewer_name,
            "stage_id": stage["id"] if stage is not None else None,
            "stage_name": stage["name"] if stage is not None else candidate.stage,
            "flow_template_id": str(job.flow_template_id) if job.flow_template_id else None,
        }
        interview.status = InterviewStatus.completed
        interview.updated_at = _now()
        await db.flush()

        await create_audit_entry(
            db,
            action="document",
            entity_type="interview",
            entity_id=interview.id,
            actor_id=actor_id,
            new_values={"score": score, "passed": passed, "recommendation": data.recommendation},
        )
        logger.info("Interview %s documented (score=%s, passed=%s)", interview.id, score, passed)
        return interview
