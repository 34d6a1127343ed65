"""Time-off Pydantic v2 schemas."""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hrsuite.common.constants import LeaveType, TimeOffStatus


class TimeOffRequestCreate(BaseModel):
    """Payload for a new request; ``days`` defaults to weekdays in range."""

    employee_id: Optional[uuid.UUID] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Optional[Decimal] = Field(None, gt=0, le=366)
    reason: Optional[str] = Field(None, max_length=2000)


class TimeOffReview(BaseModel):
    remarks: Optional[str] = Field(None, max_length=2000)


class TimeOffRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Decimal
    reason: Optional[str] = None
    status: TimeOffStatus
    reviewer_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_remarks: Optional[str] = None
    created_at: datetime
