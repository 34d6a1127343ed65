"""Time-off service — request creation and the pending → decided workflow."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.audit import create_audit_entry
from hrsuite.common.constants import TimeOffStatus
from hrsuite.common.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from hrsuite.core_hr.models import Employee
from hrsuite.time_off.models import TimeOffRequest
from hrsuite.time_off.schemas import TimeOffRequestCreate

logger = logging.getLogger(__name__)


def count_weekdays(start: date, end: date) -> int:
    """Inclusive count of Monday–Friday dates between *start* and *end*."""
    if end < start:
        return 0
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


class TimeOffService:

    @staticmethod
    async def create_request(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: TimeOffRequestCreate,
    ) -> TimeOffRequest:
        if data.end_date < data.start_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]},
            )

        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))

        days = data.days
        if days is None:
            days = Decimal(count_weekdays(data.start_date, data.end_date))
            if days == 0:
                raise ValidationException(
                    {"date_range": ["The requested range contains no working days."]},
                )

        request = TimeOffRequest(
            employee_id=employee_id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            days=days,
            reason=data.reason,
            status=TimeOffStatus.pending,
        )
        db.add(request)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="time_off_request",
            entity_id=request.id,
            actor_id=employee_id,
            new_values=data.model_dump(mode="json") | {"days": str(days)},
        )
        return request

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> TimeOffRequest:
        request = await db.get(TimeOffRequest, request_id)
        if request is None:
            raise NotFoundException("TimeOffRequest", str(request_id))
        return request

    @staticmethod
    async def _transition(
        db: AsyncSession,
        request_id: uuid.UUID,
        new_status: TimeOffStatus,
        *,
        actor_id: Optional[uuid.UUID],
        remarks: Optional[str] = None,
    ) -> TimeOffRequest:
        request = await TimeOffService.get_request(db, request_id)
        if request.status != TimeOffStatus.pending:
            raise BusinessRuleException(
                f"Only pending requests can be {new_status.value}; "
                f"this request is {request.status.value}.",
            )

        old_status = request.status
        request.status = new_status
        if new_status != TimeOffStatus.cancelled:
            request.reviewer_id = actor_id
            request.reviewed_at = datetime.now(timezone.utc)
            request.reviewer_remarks = remarks
        request.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action=new_status.value,
            entity_type="time_off_request",
            entity_id=request.id,
            actor_id=actor_id,
            old_values={"status": old_status.value},
            new_values={"status": new_status.value},
        )
        logger.info("Time-off request %s %s", request.id, new_status.value)
        return request

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        remarks: Optional[str] = None,
    ) -> TimeOffRequest:
        return await TimeOffService._transition(
            db, request_id, TimeOffStatus.approved, actor_id=actor_id, remarks=remarks,
        )

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
        remarks: Optional[str] = None,
    ) -> TimeOffRequest:
        return await TimeOffService._transition(
            db, request_id, TimeOffStatus.rejected, actor_id=actor_id, remarks=remarks,
        )

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TimeOffRequest:
        return await TimeOffService._transition(
            db, request_id, TimeOffStatus.cancelled, actor_id=actor_id,
        )

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[TimeOffStatus] = None,
    ) -> Sequence[TimeOffRequest]:
        query = select(TimeOffRequest).order_by(TimeOffRequest.start_date.desc())
        if employee_id is not None:
            query = query.where(TimeOffRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(TimeOffRequest.status == status)
        return (await db.execute(query)).scalars().all()
