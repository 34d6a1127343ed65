"""Report service — read-only aggregation queries across HR modules.

Counts that map cleanly onto GROUP BY run in the database; breakdowns
that need several passes are folded in Python over the filtered rows.
Every rate and average is rounded half-up to 2 decimals.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.attendance.models import AttendanceRecord
from hrsuite.attendance.service import validate_date_range
from hrsuite.common.constants import (
    AttendanceStatus,
    EmploymentStatus,
    GenderType,
    TerminationType,
    TimeOffStatus,
)
from hrsuite.common.exceptions import ValidationException
from hrsuite.core_hr.models import Department, Employee, Location
from hrsuite.performance.models import PerformanceReview
from hrsuite.reports.schemas import (
    AttendanceData,
    DashboardData,
    DepartmentTerminations,
    EmployeeAttendanceRow,
    HeadcountRow,
    LeaveTypeBreakdown,
    PerformanceData,
    RatingGroup,
    ReportPeriod,
    ReportResponse,
    TimeOffData,
    TurnoverData,
)
from hrsuite.time_off.models import TimeOffRequest

logger = logging.getLogger(__name__)

HEADCOUNT_GROUPS = ("department", "location", "employment_type", "none")
UNASSIGNED = "Unassigned"


def round2(value: Any) -> float:
    """Round half-up to 2 decimals; ``None`` becomes 0."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def percentage(part: Any, whole: Any) -> float:
    if not whole:
        return 0.0
    return round2(Decimal(str(part)) / Decimal(str(whole)) * 100)


def _mean(values: Iterable[Any]) -> float:
    items = [Decimal(str(v)) for v in values]
    if not items:
        return 0.0
    return round2(sum(items) / len(items))


def _envelope(
    report_type: str,
    data: Any,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    filters: Optional[dict[str, Any]] = None,
) -> ReportResponse:
    period = ReportPeriod(start_date=start, end_date=end) if start and end else None
    return ReportResponse(
        report_type=report_type,
        generated_at=datetime.now(timezone.utc),
        period=period,
        filters={k: v for k, v in (filters or {}).items() if v is not None},
        data=data,
    )


def _require_period(start: date, end: date) -> None:
    if start is None or end is None:
        raise ValidationException({"date_range": ["start_date and end_date are required."]})
    validate_date_range(start, end)


async def _department_names(db: AsyncSession) -> dict[uuid.UUID, str]:
    rows = (await db.execute(select(Department.id, Department.name))).all()
    return {row[0]: row[1] for row in rows}


class ReportService:
    """Async HR report generators."""

    # ═════════════════════════════════════════════════════════════════
    # Headcount
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def headcount_report(
        db: AsyncSession,
        *,
        group_by: str = "department",
        department_id: Optional[uuid.UUID] = None,
        location_id: Optional[uuid.UUID] = None,
        employment_type: Optional[str] = None,
    ) -> ReportResponse:
        if group_by not in HEADCOUNT_GROUPS:
            raise ValidationException(
                {"group_by": [f"Must be one of: {', '.join(HEADCOUNT_GROUPS)}."]},
            )
        logger.info("Generating headcount report grouped by %s", group_by)

        group_col = {
            "department": Employee.department_id,
            "location": Employee.location_id,
            "employment_type": Employee.employment_type,
        }.get(group_by)

        counts = [
            func.count(Employee.id).label("total"),
            func.count(
                case((Employee.employment_status == EmploymentStatus.active, 1))
            ).label("active"),
            func.count(
                case((Employee.employment_status == EmploymentStatus.terminated, 1))
            ).label("terminated"),
            func.count(case((Employee.gender == GenderType.male, 1))).label("male"),
            func.count(case((Employee.gender == GenderType.female, 1))).label("female"),
            func.count(
                case((
                    or_(
                        Employee.gender.is_(None),
                        Employee.gender.notin_([GenderType.male, GenderType.female]),
                    ),
                    1,
                ))
            ).label("other_gender"),
        ]

        if group_col is None:
            stmt = select(*counts)
        else:
            stmt = select(group_col.label("group_key"), *counts).group_by(group_col)

        if department_id is not None:
            stmt = stmt.where(Employee.department_id == department_id)
        if location_id is not None:
            stmt = stmt.where(Employee.location_id == location_id)
        if employment_type is not None:
            stmt = stmt.where(Employee.employment_type == employment_type)

        result_rows = (await db.execute(stmt)).all()

        names: dict[Any, str] = {}
        if group_by == "department":
            names = await _department_names(db)
        elif group_by == "location":
            loc_rows = (await db.execute(select(Location.id, Location.name))).all()
            names = {row[0]: row[1] for row in loc_rows}

        rows: list[HeadcountRow] = []
        for row in result_rows:
            if group_col is None:
                key, name = None, "All employees"
            else:
                key = row.group_key
                if key is None:
                    name = UNASSIGNED
                elif group_by == "employment_type":
                    key = getattr(key, "value", key)
                    name = key
                else:
                    name = names.get(key, UNASSIGNED)
            rows.append(HeadcountRow(
                group_id=str(key) if key is not None else None,
                group_name=name,
                total=row.total or 0,
                active=row.active or 0,
                terminated=row.terminated or 0,
                male=row.male or 0,
                female=row.female or 0,
                other_gender=row.other_gender or 0,
            ))
        if group_col is not None:
            rows.sort(key=lambda r: r.group_name.lower())

        return _envelope(
            "headcount",
            [r.model_dump(mode="json") for r in rows],
            filters={
                "group_by": group_by,
                "department_id": department_id,
                "location_id": location_id,
                "employment_type": employment_type,
            },
        )

    # ═════════════════════════════════════════════════════════════════
    # Turnover
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def turnover_report(
        db: AsyncSession,
        start: date,
        end: date,
    ) -> ReportResponse:
        """Terminations in the period against the headcount exposed to it."""
        _require_period(start, end)
        logger.info("Generating turnover report %s..%s", start, end)

        employee_count = (
            await db.execute(
                select(func.count(Employee.id)).where(
                    Employee.hire_date <= end,
                    or_(
                        Employee.termination_date.is_(None),
                        Employee.termination_date >= start,
                    ),
                )
            )
        ).scalar() or 0

        new_hires = (
            await db.execute(
                select(func.count(Employee.id)).where(
                    Employee.hire_date >= start, Employee.hire_date <= end,
                )
            )
        ).scalar() or 0

        terminated = (
            await db.execute(
                select(Employee.department_id, Employee.termination_type).where(
                    and_(
                        Employee.termination_date.is_not(None),
                        Employee.termination_date >= start,
                        Employee.termination_date <= end,
                    )
                )
            )
        ).all()

        voluntary = sum(1 for row in terminated if row[1] == TerminationType.voluntary)
        involuntary = sum(1 for row in terminated if row[1] == TerminationType.involuntary)

        per_dept: dict[Optional[uuid.UUID], int] = defaultdict(int)
        for row in terminated:
            per_dept[row[0]] += 1
        names = await _department_names(db) if per_dept else {}
        by_department = sorted(
            (
                DepartmentTerminations(
                    department_id=dept_id,
                    department_name=names.get(dept_id, UNASSIGNED),
                    terminations=count,
                )
                for dept_id, count in per_dept.items()
            ),
            key=lambda d: (-d.terminations, d.department_name.lower()),
        )

        data = TurnoverData(
            employee_count=employee_count,
            total_terminations=len(terminated),
            voluntary_terminations=voluntary,
            involuntary_terminations=involuntary,
            new_hires=new_hires,
            turnover_rate=percentage(len(terminated), employee_count),
            by_department=by_department,
        )
        return _envelope("turnover", data.model_dump(mode="json"), start=start, end=end)

    # ═════════════════════════════════════════════════════════════════
    # Attendance
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def attendance_report(
        db: AsyncSession,
        start: date,
        end: date,
    ) -> ReportResponse:
        _require_period(start, end)
        logger.info("Generating attendance report %s..%s", start, end)

        rows = (
            await db.execute(
                select(
                    AttendanceRecord.employee_id,
                    AttendanceRecord.status,
                    AttendanceRecord.hours_worked,
                    Employee.first_name,
                    Employee.last_name,
                )
                .join(Employee, AttendanceRecord.employee_id == Employee.id)
                .where(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
            )
        ).all()

        status_counts: dict[AttendanceStatus, int] = defaultdict(int)
        total_hours = Decimal("0")
        worked_hours: list[Decimal] = []
        per_employee: dict[uuid.UUID, EmployeeAttendanceRow] = {}
        per_employee_hours: dict[uuid.UUID, Decimal] = defaultdict(Decimal)

        for employee_id, status, hours, first_name, last_name in rows:
            hours = Decimal(str(hours or 0))
            status_counts[status] += 1
            total_hours += hours
            if hours > 0:
                worked_hours.append(hours)

            entry = per_employee.get(employee_id)
            if entry is None:
                entry = EmployeeAttendanceRow(
                    employee_id=employee_id,
                    employee_name=f"{first_name} {last_name}".strip(),
                )
                per_employee[employee_id] = entry
            if status == AttendanceStatus.present:
                entry.present_days += 1
            elif status == AttendanceStatus.absent:
                entry.absent_days += 1
            elif status == AttendanceStatus.late:
                entry.late_days += 1
            per_employee_hours[employee_id] += hours

        for employee_id, entry in per_employee.items():
            entry.total_hours = round2(per_employee_hours[employee_id])

        present = status_counts[AttendanceStatus.present]
        data = AttendanceData(
            total_employees=len(per_employee),
            total_records=len(rows),
            present_count=present,
            absent_count=status_counts[AttendanceStatus.absent],
            late_count=status_counts[AttendanceStatus.late],
            half_day_count=status_counts[AttendanceStatus.half_day],
            total_hours=round2(total_hours),
            avg_hours_per_day=_mean(worked_hours),
            attendance_rate=percentage(present, len(rows)),
            by_employee=sorted(per_employee.values(), key=lambda e: e.employee_name.lower()),
        )
        return _envelope("attendance", data.model_dump(mode="json"), start=start, end=end)

    # ═════════════════════════════════════════════════════════════════
    # Time off
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def time_off_report(
        db: AsyncSession,
        start: date,
        end: date,
    ) -> ReportResponse:
        """Requests that fall entirely inside the window."""
        _require_period(start, end)
        logger.info("Generating time-off report %s..%s", start, end)

        requests = (
            await db.execute(
                select(TimeOffRequest.leave_type, TimeOffRequest.status, TimeOffRequest.days)
                .where(TimeOffRequest.start_date >= start, TimeOffRequest.end_date <= end)
            )
        ).all()

        by_status: dict[TimeOffStatus, int] = defaultdict(int)
        approved_days: list[Decimal] = []
        type_counts: dict[str, int] = defaultdict(int)
        type_days: dict[str, Decimal] = defaultdict(Decimal)

        for leave_type, status, days in requests:
            days = Decimal(str(days or 0))
            key = getattr(leave_type, "value", leave_type)
            by_status[status] += 1
            type_counts[key] += 1
            if status == TimeOffStatus.approved:
                approved_days.append(days)
                type_days[key] += days

        data = TimeOffData(
            total_requests=len(requests),
            pending_requests=by_status[TimeOffStatus.pending],
            approved_requests=by_status[TimeOffStatus.approved],
            rejected_requests=by_status[TimeOffStatus.rejected],
            cancelled_requests=by_status[TimeOffStatus.cancelled],
            total_days_taken=round2(sum(approved_days, Decimal("0"))),
            avg_days_per_request=_mean(approved_days),
            by_leave_type=[
                LeaveTypeBreakdown(
                    leave_type=key,
                    count=type_counts[key],
                    total_days=round2(type_days[key]),
                )
                for key in sorted(type_counts)
            ],
        )
        return _envelope("time_off", data.model_dump(mode="json"), start=start, end=end)

    # ═════════════════════════════════════════════════════════════════
    # Performance
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def performance_report(
        db: AsyncSession,
        start: date,
        end: date,
    ) -> ReportResponse:
        _require_period(start, end)
        logger.info("Generating performance report %s..%s", start, end)

        reviews = (
            await db.execute(
                select(
                    PerformanceReview.employee_id,
                    PerformanceReview.review_period,
                    PerformanceReview.overall_rating,
                    Employee.department_id,
                )
                .join(Employee, PerformanceReview.employee_id == Employee.id)
                .where(
                    PerformanceReview.review_date >= start,
                    PerformanceReview.review_date <= end,
                )
            )
        ).all()

        ratings = [Decimal(str(r[2])) for r in reviews if r[2] is not None]
        data = PerformanceData(
            total_reviews=len(reviews),
            employees_reviewed=len({r[0] for r in reviews}),
            avg_rating=_mean(ratings),
            excellent_count=sum(1 for r in ratings if r >= 4),
            good_count=sum(1 for r in ratings if 3 <= r < 4),
            satisfactory_count=sum(1 for r in ratings if 2 <= r < 3),
            needs_improvement_count=sum(1 for r in ratings if r < 2),
        )

        def _group(key_index: int, names: dict) -> list[RatingGroup]:
            counts: dict[Any, int] = defaultdict(int)
            rated: dict[Any, list[Decimal]] = defaultdict(list)
            for review in reviews:
                key = review[key_index]
                if key is None:
                    continue
                counts[key] += 1
                if review[2] is not None:
                    rated[key].append(Decimal(str(review[2])))
            groups = [
                RatingGroup(
                    key=str(key),
                    name=names.get(key, str(key)),
                    reviews=count,
                    avg_rating=_mean(rated[key]),
                )
                for key, count in counts.items()
            ]
            return sorted(groups, key=lambda g: g.name.lower())

        data.by_period = _group(1, {})
        data.by_department = _group(3, await _department_names(db) if reviews else {})

        return _envelope("performance", data.model_dump(mode="json"), start=start, end=end)

    # ═════════════════════════════════════════════════════════════════
    # Dashboard snapshot
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def dashboard_report(
        db: AsyncSession,
        *,
        today: Optional[date] = None,
    ) -> ReportResponse:
        today = today or date.today()
        since = today - timedelta(days=30)

        employees = (
            await db.execute(
                select(
                    func.count(Employee.id),
                    func.count(case((Employee.employment_status == EmploymentStatus.active, 1))),
                    func.count(case((Employee.hire_date >= since, 1))),
                )
            )
        ).one()
        pending = (
            await db.execute(
                select(func.count(TimeOffRequest.id)).where(
                    TimeOffRequest.status == TimeOffStatus.pending,
                )
            )
        ).scalar() or 0
        attendance = (
            await db.execute(
                select(
                    func.count(case((AttendanceRecord.status == AttendanceStatus.present, 1))),
                    func.count(case((AttendanceRecord.status == AttendanceStatus.absent, 1))),
                ).where(AttendanceRecord.date == today)
            )
        ).one()

        data = DashboardData(
            total_employees=employees[0] or 0,
            active_employees=employees[1] or 0,
            new_hires_30d=employees[2] or 0,
            pending_time_off_requests=pending,
            present_today=attendance[0] or 0,
            absent_today=attendance[1] or 0,
        )
        return _envelope("dashboard", data.model_dump(mode="json"))
