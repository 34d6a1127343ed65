"""Report Pydantic v2 schemas — one data model per report type."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ReportPeriod(BaseModel):
    start_date: date
    end_date: date


class ReportResponse(BaseModel):
    """Envelope shared by every report."""

    report_type: str
    generated_at: datetime
    period: Optional[ReportPeriod] = None
    filters: dict[str, Any] = Field(default_factory=dict)
    data: Any


# ── Headcount ───────────────────────────────────────────────────────

class HeadcountRow(BaseModel):
    group_id: Optional[str] = None
    group_name: str
    total: int = 0
    active: int = 0
    terminated: int = 0
    male: int = 0
    female: int = 0
    other_gender: int = 0


# ── Turnover ────────────────────────────────────────────────────────

class DepartmentTerminations(BaseModel):
    department_id: Optional[uuid.UUID] = None
    department_name: str
    terminations: int = 0


class TurnoverData(BaseModel):
    employee_count: int = 0
    total_terminations: int = 0
    voluntary_terminations: int = 0
    involuntary_terminations: int = 0
    new_hires: int = 0
    turnover_rate: float = 0.0
    by_department: list[DepartmentTerminations] = Field(default_factory=list)


# ── Attendance ──────────────────────────────────────────────────────

class EmployeeAttendanceRow(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    present_days: int = 0
    absent_days: int = 0
    late_days: int = 0
    total_hours: float = 0.0


class AttendanceData(BaseModel):
    total_employees: int = 0
    total_records: int = 0
    present_count: int = 0
    absent_count: int = 0
    late_count: int = 0
    half_day_count: int = 0
    total_hours: float = 0.0
    avg_hours_per_day: float = 0.0
    attendance_rate: float = 0.0
    by_employee: list[EmployeeAttendanceRow] = Field(default_factory=list)


# ── Time off ────────────────────────────────────────────────────────

class LeaveTypeBreakdown(BaseModel):
    leave_type: str
    count: int = 0
    total_days: float = 0.0


class TimeOffData(BaseModel):
    total_requests: int = 0
    pending_requests: int = 0
    approved_requests: int = 0
    rejected_requests: int = 0
    cancelled_requests: int = 0
    total_days_taken: float = 0.0
    avg_days_per_request: float = 0.0
    by_leave_type: list[LeaveTypeBreakdown] = Field(default_factory=list)


# ── Performance ─────────────────────────────────────────────────────

class RatingGroup(BaseModel):
    key: Optional[str] = None
    name: str
    reviews: int = 0
    avg_rating: float = 0.0


class PerformanceData(BaseModel):
    total_reviews: int = 0
    employees_reviewed: int = 0
    avg_rating: float = 0.0
    excellent_count: int = 0
    good_count: int = 0
    satisfactory_count: int = 0
    needs_improvement_count: int = 0
    by_period: list[RatingGroup] = Field(default_factory=list)
    by_department: list[RatingGroup] = Field(default_factory=list)


# ── Dashboard ───────────────────────────────────────────────────────

class DashboardData(BaseModel):
    total_employees: int = 0
    active_employees: int = 0
    new_hires_30d: int = 0
    pending_time_off_requests: int = 0
    present_today: int = 0
    absent_today: int = 0
