"""Recruitment service + API tests — flow templates, jobs, the candidate
pipeline and interview documentation.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.constants import InterviewStatus, JobStatus, UserRole
from hrsuite.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrsuite.recruitment.schemas import (
    CandidateCreate,
    FlowTemplateCreate,
    FlowTemplateUpdate,
    InterviewDocument,
    InterviewSchedule,
    JobCreate,
    Stage,
)
from hrsuite.recruitment.service import (
    CandidateService,
    FlowTemplateService,
    InterviewService,
    JobService,
    normalize_stages,
)

TECHNICAL = {
    "id": "tech",
    "name": "Technical",
    "requirements": {
        "questions": [
            {"id": "q1", "text": "System design", "type": "rating", "weight": 60},
            {"id": "q2", "text": "Team fit?", "type": "yes-no", "weight": 40},
        ],
        "scoring": {"enabled": True, "passingScore": 70},
    },
}


def _stages(*names):
    return [Stage(name=name) for name in names]


async def _flow(db, name="Engineering hiring", stages=None):
    return await FlowTemplateService.create_flow_template(
        db,
        FlowTemplateCreate(
            name=name,
            stages=stages or [Stage(name="Screening"), Stage.model_validate(TECHNICAL), Stage(name="Offer")],
        ),
    )


async def _job(db, flow=None, **kwargs):
    return await JobService.create_job(
        db,
        JobCreate(
            title=kwargs.pop("title", "Backend Engineer"),
            flow_template_id=flow.id if flow is not None else None,
            status=kwargs.pop("status", JobStatus.open),
            **kwargs,
        ),
    )


async def _candidate(db, job, **kwargs):
    return await CandidateService.create_candidate(
        db,
        CandidateCreate(
            name=kwargs.pop("name", "Ravi Ramdin"),
            email=kwargs.pop("email", "Ravi.Ramdin@example.sr"),
            job_id=job.id,
            **kwargs,
        ),
    )


def _schedule(candidate) -> InterviewSchedule:
    return InterviewSchedule(
        candidate_id=candidate.id,
        scheduled_at=datetime(2025, 6, 10, 14, 0, tzinfo=timezone.utc),
        interviewer_name="Maya Jap",
    )


# ═════════════════════════════════════════════════════════════════════
# Stage normalisation
# ═════════════════════════════════════════════════════════════════════


class TestNormalizeStages:

    def test_renumbers_in_list_order(self):
        stages = [Stage(name="Offer", order=9), Stage(name=" Screening ", order=1)]
        normalized = normalize_stages(stages)
        assert [(s["name"], s["order"]) for s in normalized] == [("Offer", 1), ("Screening", 2)]

    def test_ids_kept_or_generated(self):
        normalized = normalize_stages([Stage.model_validate(TECHNICAL), Stage(name="Offer")])
        assert normalized[0]["id"] == "tech"
        assert normalized[1]["id"].startswith("stage-")

    def test_scoring_survives(self):
        normalized = normalize_stages([Stage.model_validate(TECHNICAL)])
        scoring = normalized[0]["requirements"]["scoring"]
        assert scoring["enabled"] is True
        assert Stage.model_validate(normalized[0]).requirements.scoring.passing_score == 70

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            normalize_stages(_stages("Screening", "screening"))
        assert "stages" in exc_info.value.errors


# ═════════════════════════════════════════════════════════════════════
# Flow templates & jobs
# ═════════════════════════════════════════════════════════════════════


class TestFlowTemplates:

    async def test_create_and_duplicate_name(self, db: AsyncSession):
        flow = await _flow(db)
        assert flow.stage_names() == ["Screening", "Technical", "Offer"]
        with pytest.raises(ConflictError):
            await _flow(db)

    async def test_update_stages(self, db: AsyncSession):
        flow = await _flow(db)
        updated = await FlowTemplateService.update_flow_template(
            db, flow.id, FlowTemplateUpdate(stages=_stages("Call", "Onsite")),
        )
        assert updated.stage_names() == ["Call", "Onsite"]
        assert updated.name == "Engineering hiring"

    async def test_rename_conflict(self, db: AsyncSession):
        await _flow(db, name="Sales hiring", stages=_stages("Call"))
        flow = await _flow(db)
        with pytest.raises(ConflictError):
            await FlowTemplateService.update_flow_template(
                db, flow.id, FlowTemplateUpdate(name="Sales hiring"),
            )

    async def test_list_active_only(self, db: AsyncSession):
        flow = await _flow(db)
        await _flow(db, name="Interns", stages=_stages("Call"))
        await FlowTemplateService.update_flow_template(db, flow.id, FlowTemplateUpdate(is_active=False))

        active = await FlowTemplateService.list_flow_templates(db)
        assert [f.name for f in active] == ["Interns"]


class TestJobs:

    async def test_unknown_references(self, db: AsyncSession):
        with pytest.raises(ValidationException) as exc_info:
            await JobService.create_job(db, JobCreate(
                title="Analyst", department_id=uuid.uuid4(), flow_template_id=uuid.uuid4(),
            ))
        assert set(exc_info.value.errors) == {"department_id", "flow_template_id"}

    async def test_inactive_flow_rejected(self, db: AsyncSession):
        flow = await _flow(db)
        await FlowTemplateService.update_flow_template(db, flow.id, FlowTemplateUpdate(is_active=False))
        with pytest.raises(ValidationException):
            await _job(db, flow)

    async def test_list_by_status(self, db: AsyncSession, test_department):
        await _job(db, department_id=test_department["id"])
        await _job(db, title="Designer", status=JobStatus.draft)
        open_jobs = await JobService.list_jobs(db, status=JobStatus.open)
        assert [j.title for j in open_jobs] == ["Backend Engineer"]


# ═════════════════════════════════════════════════════════════════════
# Candidates
# ═════════════════════════════════════════════════════════════════════


class TestCandidates:

    async def test_starts_at_first_stage(self, db: AsyncSession):
        job = await _job(db, await _flow(db))
        candidate = await _candidate(db, job)
        assert candidate.stage == "Screening"
        assert candidate.email == "ravi.ramdin@example.sr"

    async def test_explicit_stage_must_be_in_flow(self, db: AsyncSession):
        job = await _job(db, await _flow(db))
        assert (await _candidate(db, job, stage="Technical")).stage == "Technical"
        with pytest.raises(ValidationException):
            await _candidate(db, job, stage="Reference check")

    async def test_job_without_flow(self, db: AsyncSession):
        candidate = await _candidate(db, await _job(db))
        assert candidate.stage is None

    async def test_closed_job(self, db: AsyncSession):
        job = await _job(db, status=JobStatus.closed)
        with pytest.raises(BusinessRuleException):
            await _candidate(db, job)

    async def test_unknown_job(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await CandidateService.create_candidate(db, CandidateCreate(
                name="X", email="x@example.sr", job_id=uuid.uuid4(),
            ))

    async def test_advance_through_flow(self, db: AsyncSession):
        job = await _job(db, await _flow(db))
        candidate = await _candidate(db, job)

        candidate = await CandidateService.advance_candidate(db, candidate.id)
        assert candidate.stage == "Technical"
        candidate = await CandidateService.advance_candidate(db, candidate.id)
        assert candidate.stage == "Offer"
        with pytest.raises(BusinessRuleException):
            await CandidateService.advance_candidate(db, candidate.id)

    async def test_advance_outside_flow_goes_to_first_stage(self, db: AsyncSession):
        flow = await _flow(db)
        job = await _job(db, flow)
        candidate = await _candidate(db, job, stage="Offer")
        await FlowTemplateService.update_flow_template(
            db, flow.id, FlowTemplateUpdate(stages=_stages("Call", "Onsite")),
        )
        candidate = await CandidateService.advance_candidate(db, candidate.id)
        assert candidate.stage == "Call"

    async def test_advance_without_flow(self, db: AsyncSession):
        candidate = await _candidate(db, await _job(db))
        with pytest.raises(BusinessRuleException):
            await CandidateService.advance_candidate(db, candidate.id)

    async def test_list_by_stage(self, db: AsyncSession):
        job = await _job(db, await _flow(db))
        await _candidate(db, job)
        await _candidate(db, job, name="Ann", email="ann@example.sr", stage="Offer")
        offers = await CandidateService.list_candidates(db, job_id=job.id, stage="Offer")
        assert [c.name for c in offers] == ["Ann"]


# ═════════════════════════════════════════════════════════════════════
# Interviews
# ═════════════════════════════════════════════════════════════════════


class TestInterviews:

    async def _technical_interview(self, db):
        job = await _job(db, await _flow(db))
        candidate = await _candidate(db, job, stage="Technical")
        return await InterviewService.schedule_interview(db, _schedule(candidate))

    async def test_schedule_unknown_candidate(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await InterviewService.schedule_interview(
                db, _schedule(SimpleNamespace(id=uuid.uuid4())),
            )

    async def test_document_scores_against_stage(self, db: AsyncSession):
        interview = await self._technical_interview(db)
        assert interview.status == InterviewStatus.scheduled

        documented = await InterviewService.document_interview(
            db, interview.id,
            InterviewDocument(answers={"q1": "5", "q2": "yes"}, overall_rating=5, recommendation="move-forward"),
        )
        doc = documented.documentation
        assert documented.status == InterviewStatus.completed
        assert doc["score"] == 100
        assert doc["passed"] is True
        assert doc["stage_id"] == "tech"
        assert doc["stage_name"] == "Technical"
        assert doc["documented_by"] == "Maya Jap"

    async def test_failing_score(self, db: AsyncSession):
        interview = await self._technical_interview(db)
        documented = await InterviewService.document_interview(
            db, interview.id,
            InterviewDocument(answers={"q1": "3", "q2": "yes"}, recommendation="hold", documented_by="Panel"),
        )
        # 3/5 * 60 + 40
        assert documented.documentation["score"] == 76
        documented = await InterviewService.document_interview(
            db, interview.id,
            InterviewDocument(answers={"q1": "3", "q2": "no"}, recommendation="reject"),
        )
        assert documented.documentation["score"] == 36
        assert documented.documentation["passed"] is False

    async def test_unscored_stage(self, db: AsyncSession):
        job = await _job(db, await _flow(db))
        candidate = await _candidate(db, job)
        interview = await InterviewService.schedule_interview(db, _schedule(candidate))
        documented = await InterviewService.document_interview(
            db, interview.id, InterviewDocument(recommendation="second-round"),
        )
        assert documented.documentation["score"] is None
        assert documented.documentation["passed"] is None
        assert documented.documentation["stage_name"] == "Screening"

    async def test_cancel(self, db: AsyncSession):
        interview = await self._technical_interview(db)
        cancelled = await InterviewService.cancel_interview(db, interview.id)
        assert cancelled.status == InterviewStatus.cancelled

        with pytest.raises(BusinessRuleException):
            await InterviewService.cancel_interview(db, interview.id)
        with pytest.raises(BusinessRuleException):
            await InterviewService.document_interview(
                db, interview.id, InterviewDocument(recommendation="reject"),
            )


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


class TestRecruitmentAPI:

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.get("/api/v1/recruitment/jobs", headers=auth_headers)
        assert resp.status_code == 403

    async def test_manager_forbidden(self, client, user_headers):
        headers, _ = await user_headers(UserRole.manager)
        resp = await client.get("/api/v1/recruitment/flow-templates", headers=headers)
        assert resp.status_code == 403

    async def test_pipeline(self, client, user_headers):
        headers, _ = await user_headers(UserRole.recruiter)
        base = "/api/v1/recruitment"

        resp = await client.post(f"{base}/flow-templates", json={
            "name": "Engineering hiring",
            "stages": [{"name": "Screening"}, TECHNICAL],
        }, headers=headers)
        assert resp.status_code == 201
        flow = resp.json()["data"]
        assert [s["order"] for s in flow["stages"]] == [1, 2]

        resp = await client.post(f"{base}/jobs", json={
            "title": "Backend Engineer", "flow_template_id": flow["id"], "status": "open",
        }, headers=headers)
        assert resp.status_code == 201
        job_id = resp.json()["data"]["id"]

        resp = await client.post(f"{base}/candidates", json={
            "name": "Ravi Ramdin", "email": "ravi@example.sr", "job_id": job_id,
        }, headers=headers)
        assert resp.status_code == 201
        candidate_id = resp.json()["data"]["id"]
        assert resp.json()["data"]["stage"] == "Screening"

        resp = await client.post(f"{base}/candidates/{candidate_id}/advance", headers=headers)
        assert resp.json()["message"] == "Candidate moved to Technical."

        resp = await client.post(f"{base}/interviews", json={
            "candidate_id": candidate_id,
            "scheduled_at": "2025-06-10T14:00:00Z",
            "interviewer_name": "Maya Jap",
        }, headers=headers)
        assert resp.status_code == 201
        interview_id = resp.json()["data"]["id"]

        resp = await client.post(f"{base}/interviews/{interview_id}/documentation", json={
            "answers": {"q1": "4", "q2": "yes"},
            "recommendation": "move-forward",
        }, headers=headers)
        assert resp.status_code == 200
        doc = resp.json()["data"]["documentation"]
        assert doc["score"] == 88
        assert doc["passed"] is True

    async def test_invalid_recommendation(self, client, user_headers):
        headers, _ = await user_headers(UserRole.hr_admin)
        resp = await client.post(
            f"/api/v1/recruitment/interviews/{uuid.uuid4()}/documentation",
            json={"recommendation": "maybe"},
            headers=headers,
        )
        assert resp.status_code == 422

    async def test_unknown_flow_template(self, client, user_headers):
        headers, _ = await user_headers(UserRole.recruiter)
        resp = await client.get(
            f"/api/v1/recruitment/flow-templates/{uuid.uuid4()}", headers=headers,
        )
        assert resp.status_code == 404
