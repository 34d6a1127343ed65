"""Attendance tests — upsert per (employee, date), range validation, access."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.attendance.schemas import AttendanceRecordCreate
from hrsuite.attendance.service import AttendanceService, validate_date_range
from hrsuite.common.constants import AttendanceStatus, UserRole
from hrsuite.common.exceptions import NotFoundException, ValidationException
from hrsuite.core_hr.models import Employee
from tests.conftest import _make_employee, bearer, seed


def _record(employee_id: uuid.UUID, day: date, status="present", hours="8") -> AttendanceRecordCreate:
    return AttendanceRecordCreate(
        employee_id=employee_id,
        date=day,
        status=AttendanceStatus(status),
        hours_worked=Decimal(hours),
    )


class TestDateRange:

    def test_equal_bounds_allowed(self):
        validate_date_range(date(2025, 1, 1), date(2025, 1, 1))

    def test_open_bounds_allowed(self):
        validate_date_range(None, date(2025, 1, 1))
        validate_date_range(date(2025, 1, 1), None)

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_date_range(date(2025, 2, 1), date(2025, 1, 1))
        assert "date_range" in exc_info.value.errors


class TestAttendanceService:

    async def test_second_record_same_day_overwrites(self, db: AsyncSession, test_employee):
        day = date(2025, 3, 3)
        first = await AttendanceService.record_attendance(db, _record(test_employee["id"], day))
        second = await AttendanceService.record_attendance(
            db, _record(test_employee["id"], day, status="late", hours="6.5"),
        )
        assert first.id == second.id
        assert second.status == AttendanceStatus.late

        records = await AttendanceService.list_attendance(db, employee_id=test_employee["id"])
        assert len(records) == 1
        assert Decimal(str(records[0].hours_worked)) == Decimal("6.5")

    async def test_unknown_employee(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await AttendanceService.record_attendance(db, _record(uuid.uuid4(), date(2025, 3, 3)))

    async def test_range_is_inclusive(self, db: AsyncSession, test_employee):
        for day in (1, 2, 3, 4):
            await AttendanceService.record_attendance(
                db, _record(test_employee["id"], date(2025, 3, day)),
            )
        records = await AttendanceService.list_attendance(
            db, start_date=date(2025, 3, 2), end_date=date(2025, 3, 3),
        )
        assert [r.date for r in records] == [date(2025, 3, 2), date(2025, 3, 3)]

    def test_hours_bounds(self):
        with pytest.raises(ValueError):
            _record(uuid.uuid4(), date(2025, 3, 3), hours="25")


class TestAttendanceAPI:

    async def test_manager_records(self, client, user_headers, test_employee):
        headers, _ = await user_headers(UserRole.manager)
        resp = await client.post(
            "/api/v1/attendance",
            json={
                "employee_id": str(test_employee["id"]),
                "date": "2025-03-03",
                "status": "present",
                "hours_worked": "8",
            },
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["status"] == "present"

    async def test_employee_cannot_record(self, client, auth_headers, test_employee):
        resp = await client.post(
            "/api/v1/attendance",
            json={"employee_id": str(test_employee["id"]), "date": "2025-03-03", "status": "present"},
            headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_employee_only_sees_own(self, client, db: AsyncSession, test_employee):
        other = _make_employee()
        await seed(db, Employee, other)
        await AttendanceService.record_attendance(db, _record(test_employee["id"], date(2025, 3, 3)))
        await AttendanceService.record_attendance(db, _record(other["id"], date(2025, 3, 3)))
        await db.commit()

        resp = await client.get(
            "/api/v1/attendance",
            params={"employee_id": str(other["id"])},
            headers=bearer(test_employee["id"]),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [r["employee_id"] for r in data] == [str(test_employee["id"])]

    async def test_inverted_range_422(self, client, auth_headers):
        resp = await client.get(
            "/api/v1/attendance",
            params={"start_date": "2025-03-10", "end_date": "2025-03-01"},
            headers=auth_headers,
        )
        assert resp.status_code == 422
