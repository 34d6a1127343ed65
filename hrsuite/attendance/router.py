"""Attendance router — record and list daily attendance."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.attendance.schemas import AttendanceRecordCreate, AttendanceRecordResponse
from hrsuite.attendance.service import AttendanceService
from hrsuite.auth.dependencies import get_current_user, has_role, require_role
from hrsuite.common.constants import UserRole
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db

router = APIRouter(prefix="", tags=["attendance"])


@router.post("", status_code=201)
async def record_attendance(
    body: AttendanceRecordCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
):
    """Create or overwrite an employee's record for a day."""
    record = await AttendanceService.record_attendance(db, body, actor_id=current_user.id)
    return {
        "data": AttendanceRecordResponse.model_validate(record).model_dump(mode="json"),
        "message": "Attendance recorded.",
    }


@router.get("")
async def list_attendance(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    employee_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
):
    """List attendance. Employees only see their own records."""
    if not has_role(request, UserRole.manager):
        employee_id = current_user.id
    records = await AttendanceService.list_attendance(
        db, employee_id=employee_id, start_date=start_date, end_date=end_date,
    )
    return {
        "data": [
            AttendanceRecordResponse.model_validate(r).model_dump(mode="json")
            for r in records
        ],
        "message": "Attendance retrieved successfully.",
    }
