"""Attendance Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrsuite.common.constants import AttendanceStatus


class AttendanceRecordCreate(BaseModel):
    """Upsert payload — one record per employee per day."""

    employee_id: uuid.UUID
    date: date
    status: AttendanceStatus
    hours_worked: Decimal = Field(Decimal("0"), ge=0, le=24, decimal_places=2)
    notes: Optional[str] = None


class AttendanceRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    date: date
    status: AttendanceStatus
    hours_worked: Decimal
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
