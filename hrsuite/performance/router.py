"""Performance router — reviews and goals."""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import get_current_user, require_role
from hrsuite.common.constants import UserRole
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db
from hrsuite.performance.schemas import (
    GoalCreate,
    GoalProgressUpdate,
    GoalResponse,
    ReviewComplete,
    ReviewCreate,
    ReviewResponse,
)
from hrsuite.performance.service import PerformanceService

router = APIRouter(prefix="", tags=["performance"])


@router.post("/reviews", status_code=201)
async def create_review(
    body: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    review = await PerformanceService.create_review(db, body, reviewer_id=current_user.id)
    return {
        "data": ReviewResponse.model_validate(review).model_dump(mode="json"),
        "message": "Review created.",
    }


@router.post("/reviews/{review_id}/submit")
async def submit_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    review = await PerformanceService.submit_review(db, review_id, actor_id=current_user.id)
    return {
        "data": ReviewResponse.model_validate(review).model_dump(mode="json"),
        "message": "Review submitted.",
    }


@router.post("/reviews/{review_id}/complete")
async def complete_review(
    review_id: uuid.UUID,
    body: ReviewComplete,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    review = await PerformanceService.complete_review(
        db, review_id, body, actor_id=current_user.id,
    )
    return {
        "data": ReviewResponse.model_validate(review).model_dump(mode="json"),
        "message": "Review completed.",
    }


@router.post("/goals", status_code=201)
async def create_goal(
    body: GoalCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    goal = await PerformanceService.create_goal(db, body, actor_id=current_user.id)
    return {
        "data": GoalResponse.model_validate(goal).model_dump(mode="json"),
        "message": "Goal created.",
    }


@router.patch("/goals/{goal_id}/progress")
async def update_goal_progress(
    goal_id: uuid.UUID,
    body: GoalProgressUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    goal = await PerformanceService.update_goal_progress(
        db, goal_id, body.progress, actor_id=current_user.id,
    )
    return {
        "data": GoalResponse.model_validate(goal).model_dump(mode="json"),
        "message": "Goal progress updated.",
    }
