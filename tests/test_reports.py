"""Report tests — headcount grouping, turnover, attendance, time-off,
performance aggregates, and the dashboard snapshot.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.attendance.models import AttendanceRecord
from hrsuite.common.constants import (
    AttendanceStatus,
    EmploymentStatus,
    GenderType,
    LeaveType,
    TerminationType,
    TimeOffStatus,
    UserRole,
)
from hrsuite.common.exceptions import ValidationException
from hrsuite.core_hr.models import Department, Employee, Location
from hrsuite.performance.models import PerformanceReview
from hrsuite.reports.service import UNASSIGNED, ReportService, percentage, round2
from hrsuite.time_off.models import TimeOffRequest
from tests.conftest import _make_department, _make_employee, _make_location, seed


class TestRounding:

    def test_round_half_up(self):
        assert round2(Decimal("2.345")) == 2.35
        assert round2(None) == 0.0

    def test_percentage_zero_whole(self):
        assert percentage(3, 0) == 0.0

    def test_percentage(self):
        assert percentage(1, 3) == 33.33


# ═════════════════════════════════════════════════════════════════════
# HEADCOUNT
# ═════════════════════════════════════════════════════════════════════


class TestHeadcount:

    async def _seed(self, db: AsyncSession) -> dict:
        loc = _make_location()
        await seed(db, Location, loc)
        eng = _make_department(code="ENG", name="Engineering", location_id=loc["id"])
        await seed(db, Department, eng)
        await seed(db, Employee, _make_employee(
            department_id=eng["id"], location_id=loc["id"], gender=GenderType.female,
        ))
        await seed(db, Employee, _make_employee(
            department_id=eng["id"], gender=GenderType.male,
            employment_status=EmploymentStatus.terminated,
        ))
        await seed(db, Employee, _make_employee(employment_type="contract"))
        return {"location": loc, "department": eng}

    async def test_group_by_department(self, db: AsyncSession):
        await self._seed(db)
        report = await ReportService.headcount_report(db, group_by="department")

        assert report.report_type == "headcount"
        rows = {r["group_name"]: r for r in report.data}
        assert rows["Engineering"]["total"] == 2
        assert rows["Engineering"]["active"] == 1
        assert rows["Engineering"]["terminated"] == 1
        assert rows["Engineering"]["female"] == 1
        assert rows["Engineering"]["male"] == 1
        assert rows[UNASSIGNED]["total"] == 1
        assert rows[UNASSIGNED]["other_gender"] == 1

    async def test_group_by_employment_type(self, db: AsyncSession):
        await self._seed(db)
        report = await ReportService.headcount_report(db, group_by="employment_type")
        rows = {r["group_name"]: r["total"] for r in report.data}
        assert rows == {"contract": 1, "full_time": 2}

    async def test_no_grouping(self, db: AsyncSession):
        await self._seed(db)
        report = await ReportService.headcount_report(db, group_by="none")
        assert len(report.data) == 1
        assert report.data[0]["total"] == 3

    async def test_filters_recorded(self, db: AsyncSession):
        seeded = await self._seed(db)
        report = await ReportService.headcount_report(
            db, group_by="location", location_id=seeded["location"]["id"],
        )
        assert [r["group_name"] for r in report.data] == ["Paramaribo HQ"]
        assert report.filters["group_by"] == "location"
        assert report.filters["location_id"] == seeded["location"]["id"]

    async def test_invalid_group(self, db: AsyncSession):
        with pytest.raises(ValidationException):
            await ReportService.headcount_report(db, group_by="gender")


# ═════════════════════════════════════════════════════════════════════
# TURNOVER
# ═════════════════════════════════════════════════════════════════════


class TestTurnover:

    async def test_rates_and_breakdown(self, db: AsyncSession):
        eng = _make_department(code="ENG", name="Engineering")
        await seed(db, Department, eng)
        for _ in range(2):
            await seed(db, Employee, _make_employee(department_id=eng["id"]))
        await seed(db, Employee, _make_employee(
            department_id=eng["id"],
            employment_status=EmploymentStatus.terminated,
            termination_date=date(2025, 2, 10),
            termination_type=TerminationType.voluntary,
        ))
        await seed(db, Employee, _make_employee(
            employment_status=EmploymentStatus.terminated,
            termination_date=date(2025, 3, 5),
            termination_type=TerminationType.involuntary,
        ))
        await seed(db, Employee, _make_employee(hire_date=date(2025, 2, 1)))

        report = await ReportService.turnover_report(db, date(2025, 1, 1), date(2025, 3, 31))
        data = report.data

        assert data["employee_count"] == 5
        assert data["total_terminations"] == 2
        assert data["voluntary_terminations"] == 1
        assert data["involuntary_terminations"] == 1
        assert data["new_hires"] == 1
        assert data["turnover_rate"] == 40.0
        assert {d["department_name"] for d in data["by_department"]} == {"Engineering", UNASSIGNED}
        assert report.period.start_date == date(2025, 1, 1)

    async def test_terminated_before_period_excluded(self, db: AsyncSession):
        await seed(db, Employee, _make_employee(
            employment_status=EmploymentStatus.terminated,
            termination_date=date(2024, 6, 1),
            termination_type=TerminationType.voluntary,
        ))
        report = await ReportService.turnover_report(db, date(2025, 1, 1), date(2025, 3, 31))
        assert report.data["employee_count"] == 0
        assert report.data["turnover_rate"] == 0.0

    async def test_inverted_period(self, db: AsyncSession):
        with pytest.raises(ValidationException):
            await ReportService.turnover_report(db, date(2025, 3, 1), date(2025, 1, 1))


# ═════════════════════════════════════════════════════════════════════
# ATTENDANCE / TIME OFF / PERFORMANCE
# ═════════════════════════════════════════════════════════════════════


class TestAttendanceReport:

    async def test_counts_and_rates(self, db: AsyncSession):
        anna = _make_employee(first_name="Anna", last_name="Bouterse")
        ben = _make_employee(first_name="Ben", last_name="Codrington")
        await seed(db, Employee, anna)
        await seed(db, Employee, ben)
        rows = [
            (anna, date(2025, 3, 3), AttendanceStatus.present, "8"),
            (anna, date(2025, 3, 4), AttendanceStatus.late, "7"),
            (ben, date(2025, 3, 3), AttendanceStatus.present, "8"),
            (ben, date(2025, 3, 4), AttendanceStatus.absent, "0"),
            (ben, date(2025, 4, 1), AttendanceStatus.present, "8"),
        ]
        for emp, day, status, hours in rows:
            await seed(db, AttendanceRecord, dict(
                employee_id=emp["id"], date=day, status=status, hours_worked=Decimal(hours),
            ))

        report = await ReportService.attendance_report(db, date(2025, 3, 1), date(2025, 3, 31))
        data = report.data

        assert data["total_employees"] == 2
        assert data["total_records"] == 4
        assert data["present_count"] == 2
        assert data["absent_count"] == 1
        assert data["late_count"] == 1
        assert data["total_hours"] == 23.0
        assert data["avg_hours_per_day"] == 7.67
        assert data["attendance_rate"] == 50.0
        assert [e["employee_name"] for e in data["by_employee"]] == [
            "Anna Bouterse", "Ben Codrington",
        ]
        assert data["by_employee"][0]["late_days"] == 1

    async def test_empty_period(self, db: AsyncSession):
        report = await ReportService.attendance_report(db, date(2025, 3, 1), date(2025, 3, 31))
        assert report.data["total_records"] == 0
        assert report.data["attendance_rate"] == 0.0


class TestTimeOffReport:

    async def test_only_requests_inside_window(self, db: AsyncSession, test_employee):
        def _req(start, end, days, status, leave_type=LeaveType.vacation):
            return dict(
                employee_id=test_employee["id"],
                leave_type=leave_type,
                start_date=start,
                end_date=end,
                days=Decimal(days),
                status=status,
            )

        await seed(db, TimeOffRequest, _req(date(2025, 3, 3), date(2025, 3, 5), "3", TimeOffStatus.approved))
        await seed(db, TimeOffRequest, _req(date(2025, 3, 10), date(2025, 3, 10), "1", TimeOffStatus.approved, LeaveType.sick))
        await seed(db, TimeOffRequest, _req(date(2025, 3, 12), date(2025, 3, 12), "1", TimeOffStatus.pending))
        await seed(db, TimeOffRequest, _req(date(2025, 3, 28), date(2025, 4, 2), "4", TimeOffStatus.approved))

        report = await ReportService.time_off_report(db, date(2025, 3, 1), date(2025, 3, 31))
        data = report.data

        assert data["total_requests"] == 3
        assert data["approved_requests"] == 2
        assert data["pending_requests"] == 1
        assert data["total_days_taken"] == 4.0
        assert data["avg_days_per_request"] == 2.0
        by_type = {t["leave_type"]: t for t in data["by_leave_type"]}
        assert by_type["vacation"]["count"] == 2
        assert by_type["vacation"]["total_days"] == 3.0
        assert by_type["sick"]["total_days"] == 1.0


class TestPerformanceReport:

    async def test_rating_buckets(self, db: AsyncSession, test_employee, test_department):
        other = _make_employee()
        await seed(db, Employee, other)
        for emp_id, rating, period in (
            (test_employee["id"], "4.5", "2025-H1"),
            (test_employee["id"], "3.2", "2025-Q1"),
            (other["id"], "1.5", "2025-H1"),
            (other["id"], None, "2025-H1"),
        ):
            await seed(db, PerformanceReview, dict(
                employee_id=emp_id,
                review_period=period,
                review_date=date(2025, 6, 30),
                overall_rating=Decimal(rating) if rating else None,
            ))

        report = await ReportService.performance_report(db, date(2025, 1, 1), date(2025, 12, 31))
        data = report.data

        assert data["total_reviews"] == 4
        assert data["employees_reviewed"] == 2
        assert data["avg_rating"] == 3.07
        assert data["excellent_count"] == 1
        assert data["good_count"] == 1
        assert data["needs_improvement_count"] == 1
        periods = {g["name"]: g["reviews"] for g in data["by_period"]}
        assert periods == {"2025-H1": 3, "2025-Q1": 1}
        assert [g["name"] for g in data["by_department"]] == [test_department["name"]]


# ═════════════════════════════════════════════════════════════════════
# DASHBOARD + API
# ═════════════════════════════════════════════════════════════════════


class TestDashboard:

    async def test_snapshot(self, db: AsyncSession):
        today = date(2025, 6, 15)
        recent = _make_employee(hire_date=today - timedelta(days=10))
        await seed(db, Employee, recent)
        await seed(db, Employee, _make_employee(
            hire_date=date(2020, 1, 1), employment_status=EmploymentStatus.terminated,
        ))
        await seed(db, AttendanceRecord, dict(
            employee_id=recent["id"], date=today, status=AttendanceStatus.present,
        ))
        await seed(db, TimeOffRequest, dict(
            employee_id=recent["id"],
            leave_type=LeaveType.personal,
            start_date=today,
            end_date=today,
            days=Decimal("1"),
        ))

        report = await ReportService.dashboard_report(db, today=today)
        assert report.data == {
            "total_employees": 2,
            "active_employees": 1,
            "new_hires_30d": 1,
            "pending_time_off_requests": 1,
            "present_today": 1,
            "absent_today": 0,
        }
        assert report.period is None


class TestReportsAPI:

    async def test_employee_forbidden(self, client, auth_headers):
        resp = await client.get("/api/v1/reports/dashboard", headers=auth_headers)
        assert resp.status_code == 403

    async def test_manager_forbidden(self, client, user_headers):
        headers, _ = await user_headers(UserRole.manager)
        resp = await client.get(
            "/api/v1/reports/turnover",
            params={"start_date": "2025-01-01", "end_date": "2025-03-31"},
            headers=headers,
        )
        assert resp.status_code == 403

    async def test_hr_admin_headcount(self, client, user_headers):
        headers, _ = await user_headers(UserRole.hr_admin)
        resp = await client.get(
            "/api/v1/reports/headcount", params={"group_by": "none"}, headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["report_type"] == "headcount"
        assert body["data"][0]["total"] == 1

    async def test_period_required(self, client, user_headers):
        headers, _ = await user_headers(UserRole.hr_admin)
        resp = await client.get("/api/v1/reports/turnover", headers=headers)
        assert resp.status_code == 422

    async def test_inverted_period_422(self, client, user_headers):
        headers, _ = await user_headers(UserRole.hr_admin)
        resp = await client.get(
            "/api/v1/reports/attendance",
            params={"start_date": "2025-03-31", "end_date": "2025-03-01"},
            headers=headers,
        )
        assert resp.status_code == 422
