"""Reports router — read-only HR report endpoints.

All endpoints require the **hr_admin** role or above. Period reports take
``start_date`` / ``end_date`` query parameters.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import require_role
from hrsuite.common.constants import EmploymentType, UserRole
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db
from hrsuite.reports.schemas import ReportResponse
from hrsuite.reports.service import ReportService

router = APIRouter()

_hr_admin = require_role(UserRole.hr_admin)


@router.get("/headcount", response_model=ReportResponse)
async def headcount_report(
    group_by: str = Query("department", description="department | location | employment_type | none"),
    department_id: Optional[uuid.UUID] = Query(None),
    location_id: Optional[uuid.UUID] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.headcount_report(
        db,
        group_by=group_by,
        department_id=department_id,
        location_id=location_id,
        employment_type=employment_type,
    )


@router.get("/turnover", response_model=ReportResponse)
async def turnover_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.turnover_report(db, start_date, end_date)


@router.get("/attendance", response_model=ReportResponse)
async def attendance_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.attendance_report(db, start_date, end_date)


@router.get("/time-off", response_model=ReportResponse)
async def time_off_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.time_off_report(db, start_date, end_date)


@router.get("/performance", response_model=ReportResponse)
async def performance_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.performance_report(db, start_date, end_date)


@router.get("/dashboard", response_model=ReportResponse)
async def dashboard_report(
    employee: Employee = Depends(_hr_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService.dashboard_report(db)
