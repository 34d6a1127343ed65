"""Attendance service — record upsert and range queries."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.attendance.models import AttendanceRecord
from hrsuite.attendance.schemas import AttendanceRecordCreate
from hrsuite.common.audit import create_audit_entry
from hrsuite.common.exceptions import NotFoundException, ValidationException
from hrsuite.core_hr.models import Employee

logger = logging.getLogger(__name__)


def validate_date_range(start: Optional[date], end: Optional[date]) -> None:
    """Raise 422 when both bounds are given and start is after end."""
    if start is not None and end is not None and start > end:
        raise ValidationException(
            {"date_range": ["start_date must be before or equal to end_date."]},
        )


class AttendanceService:

    @staticmethod
    async def record_attendance(
        db: AsyncSession,
        data: AttendanceRecordCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceRecord:
        """Insert or overwrite the record for (employee, date)."""

        employee = await db.get(Employee, data.employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(data.employee_id))

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == data.employee_id,
                AttendanceRecord.date == data.date,
            )
        )
        record = result.scalars().first()

        if record is None:
            record = AttendanceRecord(**data.model_dump())
            db.add(record)
            action = "create"
        else:
            record.status = data.status
            record.hours_worked = data.hours_worked
            record.notes = data.notes
            record.updated_at = datetime.now(timezone.utc)
            action = "update"

        await db.flush()
        await create_audit_entry(
            db,
            action=action,
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return record

    @staticmethod
    async def list_attendance(
        db: AsyncSession,
        *,
        employee_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        validate_date_range(start_date, end_date)

        query = select(AttendanceRecord).order_by(
            AttendanceRecord.date, AttendanceRecord.employee_id,
        )
        if employee_id is not None:
            query = query.where(AttendanceRecord.employee_id == employee_id)
        if start_date is not None:
            query = query.where(AttendanceRecord.date >= start_date)
        if end_date is not None:
            query = query.where(AttendanceRecord.date <= end_date)
        return (await db.execute(query)).scalars().all()
