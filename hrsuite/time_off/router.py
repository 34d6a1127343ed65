"""Time-off router — submit, review and cancel requests."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import get_current_user, has_role, require_role
from hrsuite.common.constants import TimeOffStatus, UserRole
from hrsuite.common.exceptions import ForbiddenException
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db
from hrsuite.time_off.schemas import (
    TimeOffRequestCreate,
    TimeOffRequestResponse,
    TimeOffReview,
)
from hrsuite.time_off.service import TimeOffService

router = APIRouter(prefix="", tags=["time-off"])


def _dump(request) -> dict:
    return TimeOffRequestResponse.model_validate(request).model_dump(mode="json")


@router.post("", status_code=201)
async def create_request(
    body: TimeOffRequestCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Submit a request for yourself; HR may file on behalf of others."""
    employee_id = body.employee_id or current_user.id
    if employee_id != current_user.id and not has_role(request, UserRole.hr_admin):
        raise ForbiddenException(detail="You can only request time off for yourself.")
    created = await TimeOffService.create_request(db, employee_id, body)
    return {"data": _dump(created), "message": "Time-off request submitted."}


@router.get("")
async def list_requests(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[TimeOffStatus] = Query(None),
):
    if not has_role(request, UserRole.manager):
        employee_id = current_user.id
    requests = await TimeOffService.list_requests(db, employee_id=employee_id, status=status)
    return {
        "data": [_dump(r) for r in requests],
        "message": "Time-off requests retrieved successfully.",
    }


@router.post("/{request_id}/approve")
async def approve_request(
    request_id: uuid.UUID,
    body: TimeOffReview,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    updated = await TimeOffService.approve_request(
        db, request_id, actor_id=current_user.id, remarks=body.remarks,
    )
    return {"data": _dump(updated), "message": "Time-off request approved."}


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: uuid.UUID,
    body: TimeOffReview,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    updated = await TimeOffService.reject_request(
        db, request_id, actor_id=current_user.id, remarks=body.remarks,
    )
    return {"data": _dump(updated), "message": "Time-off request rejected."}


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    existing = await TimeOffService.get_request(db, request_id)
    if existing.employee_id != current_user.id and not has_role(request, UserRole.hr_admin):
        raise ForbiddenException(detail="You can only cancel your own requests.")
    updated = await TimeOffService.cancel_request(db, request_id, actor_id=current_user.id)
    return {"data": _dump(updated), "message": "Time-off request cancelled."}
