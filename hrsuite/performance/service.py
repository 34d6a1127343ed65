"""Performance service — review lifecycle and goal progress tracking."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.audit import create_audit_entry
from hrsuite.common.constants import GoalStatus, ReviewStatus
from hrsuite.common.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from hrsuite.core_hr.models import Employee
from hrsuite.performance.models import Goal, PerformanceReview
from hrsuite.performance.schemas import GoalCreate, ReviewComplete, ReviewCreate

logger = logging.getLogger(__name__)


def goal_status_for_progress(progress: int) -> GoalStatus:
    """0 → not_started, 100 → completed, anything between → in_progress."""
    if progress <= 0:
        return GoalStatus.not_started
    if progress >= 100:
        return GoalStatus.completed
    return GoalStatus.in_progress


class PerformanceService:

    # ── Reviews ─────────────────────────────────────────────────────

    @staticmethod
    async def create_review(
        db: AsyncSession,
        data: ReviewCreate,
        *,
        reviewer_id: Optional[uuid.UUID] = None,
    ) -> PerformanceReview:
        if await db.get(Employee, data.employee_id) is None:
            raise NotFoundException("Employee", str(data.employee_id))

        review = PerformanceReview(
            **data.model_dump(),
            reviewer_id=reviewer_id,
            status=ReviewStatus.draft,
        )
        db.add(review)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="performance_review",
            entity_id=review.id,
            actor_id=reviewer_id,
            new_values=data.model_dump(mode="json"),
        )
        return review

    @staticmethod
    async def _get_review(db: AsyncSession, review_id: uuid.UUID) -> PerformanceReview:
        review = await db.get(PerformanceReview, review_id)
        if review is None:
            raise NotFoundException("PerformanceReview", str(review_id))
        return review

    @staticmethod
    async def submit_review(
        db: AsyncSession,
        review_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PerformanceReview:
        review = await PerformanceService._get_review(db, review_id)
        if review.status != ReviewStatus.draft:
            raise BusinessRuleException(
                f"Only draft reviews can be submitted; this review is {review.status.value}.",
            )

        now = datetime.now(timezone.utc)
        review.status = ReviewStatus.submitted
        review.submitted_at = now
        review.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="submit",
            entity_type="performance_review",
            entity_id=review.id,
            actor_id=actor_id,
            old_values={"status": ReviewStatus.draft.value},
            new_values={"status": ReviewStatus.submitted.value},
        )
        return review

    @staticmethod
    async def complete_review(
        db: AsyncSession,
        review_id: uuid.UUID,
        data: Optional[ReviewComplete] = None,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> PerformanceReview:
        review = await PerformanceService._get_review(db, review_id)
        if review.status != ReviewStatus.submitted:
            raise BusinessRuleException(
                f"Only submitted reviews can be completed; this review is {review.status.value}.",
            )

        if data is not None:
            if data.overall_rating is not None:
                review.overall_rating = data.overall_rating
            if data.comments is not None:
                review.comments = data.comments
        if review.overall_rating is None:
            raise ValidationException(
                {"overall_rating": ["A rating is required to complete a review."]},
            )

        now = datetime.now(timezone.utc)
        review.status = ReviewStatus.completed
        review.completed_at = now
        review.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="complete",
            entity_type="performance_review",
            entity_id=review.id,
            actor_id=actor_id,
            old_values={"status": ReviewStatus.submitted.value},
            new_values={
                "status": ReviewStatus.completed.value,
                "overall_rating": str(review.overall_rating),
            },
        )
        logger.info("Performance review %s completed", review.id)
        return review

    # ── Goals ───────────────────────────────────────────────────────

    @staticmethod
    async def create_goal(
        db: AsyncSession,
        data: GoalCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Goal:
        if await db.get(Employee, data.employee_id) is None:
            raise NotFoundException("Employee", str(data.employee_id))

        goal = Goal(**data.model_dump(), status=goal_status_for_progress(data.progress))
        db.add(goal)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="goal",
            entity_id=goal.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return goal

    @staticmethod
    async def update_goal_progress(
        db: AsyncSession,
        goal_id: uuid.UUID,
        progress: int,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Goal:
        goal = await db.get(Goal, goal_id)
        if goal is None:
            raise NotFoundException("Goal", str(goal_id))
        if not 0 <= progress <= 100:
            raise ValidationException({"progress": ["Progress must be between 0 and 100."]})

        old_values = {"progress": goal.progress, "status": goal.status.value}
        goal.progress = progress
        # Cancelled goals keep their status.
        if goal.status != GoalStatus.cancelled:
            goal.status = goal_status_for_progress(progress)
        goal.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="goal",
            entity_id=goal.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values={"progress": goal.progress, "status": goal.status.value},
        )
        return goal
