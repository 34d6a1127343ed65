"""Performance tests — review lifecycle and goal progress → status mapping."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pydantic
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.constants import RATING_SCALE_MAX, GoalStatus, ReviewStatus, UserRole
from hrsuite.common.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from hrsuite.performance.schemas import GoalCreate, ReviewComplete, ReviewCreate
from hrsuite.performance.service import PerformanceService, goal_status_for_progress


class TestGoalStatusForProgress:

    @pytest.mark.parametrize(
        "progress, expected",
        [
            (0, GoalStatus.not_started),
            (1, GoalStatus.in_progress),
            (99, GoalStatus.in_progress),
            (100, GoalStatus.completed),
        ],
    )
    def test_mapping(self, progress, expected):
        assert goal_status_for_progress(progress) == expected


class TestReviewLifecycle:

    async def _draft(self, db: AsyncSession, employee_id, rating=None):
        return await PerformanceService.create_review(
            db,
            ReviewCreate(
                employee_id=employee_id,
                review_period="2025-H1",
                review_date=date(2025, 6, 30),
                overall_rating=rating,
            ),
        )

    async def test_draft_submit_complete(self, db: AsyncSession, test_employee):
        review = await self._draft(db, test_employee["id"])
        assert review.status == ReviewStatus.draft

        await PerformanceService.submit_review(db, review.id)
        completed = await PerformanceService.complete_review(
            db, review.id, ReviewComplete(overall_rating=Decimal("4.5"), comments="Strong half"),
        )
        assert completed.status == ReviewStatus.completed
        assert completed.completed_at is not None
        assert completed.comments == "Strong half"

    def test_rating_above_scale_rejected(self):
        ReviewComplete(overall_rating=Decimal(RATING_SCALE_MAX))
        with pytest.raises(pydantic.ValidationError):
            ReviewComplete(overall_rating=Decimal(RATING_SCALE_MAX + 1))

    async def test_complete_requires_rating(self, db: AsyncSession, test_employee):
        review = await self._draft(db, test_employee["id"])
        await PerformanceService.submit_review(db, review.id)
        with pytest.raises(ValidationException):
            await PerformanceService.complete_review(db, review.id)

    async def test_complete_draft_rejected(self, db: AsyncSession, test_employee):
        review = await self._draft(db, test_employee["id"], rating=Decimal("3"))
        with pytest.raises(BusinessRuleException):
            await PerformanceService.complete_review(db, review.id)

    async def test_submit_twice_rejected(self, db: AsyncSession, test_employee):
        review = await self._draft(db, test_employee["id"])
        await PerformanceService.submit_review(db, review.id)
        with pytest.raises(BusinessRuleException):
            await PerformanceService.submit_review(db, review.id)

    async def test_unknown_employee(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await self._draft(db, uuid.uuid4())


class TestGoals:

    async def test_initial_status_from_progress(self, db: AsyncSession, test_employee):
        goal = await PerformanceService.create_goal(
            db, GoalCreate(employee_id=test_employee["id"], title="Ship payroll", progress=40),
        )
        assert goal.status == GoalStatus.in_progress

    async def test_progress_updates_status(self, db: AsyncSession, test_employee):
        goal = await PerformanceService.create_goal(
            db, GoalCreate(employee_id=test_employee["id"], title="Certify"),
        )
        assert goal.status == GoalStatus.not_started

        goal = await PerformanceService.update_goal_progress(db, goal.id, 100)
        assert goal.status == GoalStatus.completed

        goal = await PerformanceService.update_goal_progress(db, goal.id, 60)
        assert goal.status == GoalStatus.in_progress

    async def test_cancelled_goal_keeps_status(self, db: AsyncSession, test_employee):
        goal = await PerformanceService.create_goal(
            db, GoalCreate(employee_id=test_employee["id"], title="Old goal"),
        )
        goal.status = GoalStatus.cancelled
        await db.flush()

        goal = await PerformanceService.update_goal_progress(db, goal.id, 100)
        assert goal.progress == 100
        assert goal.status == GoalStatus.cancelled

    async def test_out_of_range_progress(self, db: AsyncSession, test_employee):
        goal = await PerformanceService.create_goal(
            db, GoalCreate(employee_id=test_employee["id"], title="Goal"),
        )
        with pytest.raises(ValidationException):
            await PerformanceService.update_goal_progress(db, goal.id, 120)


class TestPerformanceAPI:

    async def test_employee_cannot_create_review(self, client, auth_headers, test_employee):
        resp = await client.post(
            "/api/v1/performance/reviews",
            json={
                "employee_id": str(test_employee["id"]),
                "review_period": "2025-H1",
                "review_date": "2025-06-30",
            },
            headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_progress_endpoint(self, client, user_headers, test_employee):
        headers, _ = await user_headers(UserRole.manager)
        created = await client.post(
            "/api/v1/performance/goals",
            json={"employee_id": str(test_employee["id"]), "title": "Mentor juniors"},
            headers=headers,
        )
        assert created.status_code == 201
        goal_id = created.json()["data"]["id"]

        resp = await client.patch(
            f"/api/v1/performance/goals/{goal_id}/progress",
            json={"progress": 30},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "in_progress"

    async def test_progress_over_100_is_422(self, client, user_headers):
        headers, _ = await user_headers(UserRole.manager)
        resp = await client.patch(
            f"/api/v1/performance/goals/{uuid.uuid4()}/progress",
            json={"progress": 101},
            headers=headers,
        )
        assert resp.status_code == 422
