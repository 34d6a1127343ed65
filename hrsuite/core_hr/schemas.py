"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response / *Detail → response bodies (read)
  - *Brief / *ListItem → compact read representations
"""


import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from hrsuite.common.constants import (
    EmploymentStatus,
    EmploymentType,
    GenderType,
    TerminationType,
)


# ═════════════════════════════════════════════════════════════════════
# Location
# ═════════════════════════════════════════════════════════════════════


class LocationCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    country: str = Field("Suriname", max_length=100)


class LocationUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


class LocationResponse(BaseModel):
    """Full location representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    country: str = "Suriname"
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class LocationBrief(BaseModel):
    """Minimal location info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    city: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: list[uuid.UUID] = Field(default_factory=list)


class BulkDeleteFailure(BaseModel):
    id: uuid.UUID
    error: str


class BulkDeleteResult(BaseModel):
    """Outcome of a sequential bulk delete — one entry per distinct id."""

    deleted: list[uuid.UUID] = Field(default_factory=list)
    failed: list[BulkDeleteFailure] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    parent_department_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None


class DepartmentUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    parent_department_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    parent_department_id: Optional[uuid.UUID] = None
    head_employee_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
    # Enriched fields (set by service layer)
    employee_count: int = 0
    location: Optional[LocationBrief] = None
    head_employee_name: Optional[str] = None


class DepartmentBrief(BaseModel):
    """Minimal department info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    code: str


class DepartmentNode(BaseModel):
    """Recursive node for the department hierarchy."""

    id: uuid.UUID
    code: str
    name: str
    parent_department_id: Optional[uuid.UUID] = None
    employee_count: int = 0
    children: list["DepartmentNode"] = Field(default_factory=list)


# Rebuild model to support recursive reference
DepartmentNode.model_rebuild()


# ═════════════════════════════════════════════════════════════════════
# Employee write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee."""

    employee_code: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    email: EmailStr
    gender: Optional[GenderType] = None
    department_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    job_title: Optional[str] = Field(None, max_length=200)
    employment_type: EmploymentType = EmploymentType.full_time
    hire_date: date

    @model_validator(mode="after")
    def _auto_display_name(self) -> "EmployeeCreate":
        if not self.display_name:
            self.display_name = f"{self.first_name} {self.last_name}".strip()
        return self


class EmployeeUpdate(BaseModel):
    """Partial-update payload for an employee (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    gender: Optional[GenderType] = None
    department_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    job_title: Optional[str] = Field(None, max_length=200)
    employment_type: Optional[EmploymentType] = None
    employment_status: Optional[EmploymentStatus] = None


class EmployeeTerminate(BaseModel):
    termination_date: date
    termination_type: TerminationType


# ═════════════════════════════════════════════════════════════════════
# Employee read schemas
# ═════════════════════════════════════════════════════════════════════


def _fill_display_name(data: Any) -> Any:
    if hasattr(data, "__dict__") and not getattr(data, "display_name", None):
        first = getattr(data, "first_name", "") or ""
        last = getattr(data, "last_name", "") or ""
        data.display_name = f"{first} {last}".strip()
    return data


class EmployeeListItem(BaseModel):
    """Compact employee row for paginated list endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    display_name: Optional[str] = None
    email: str
    job_title: Optional[str] = None
    employment_type: EmploymentType
    employment_status: EmploymentStatus
    hire_date: date
    is_active: bool
    department: Optional[DepartmentBrief] = None
    location: Optional[LocationBrief] = None

    @model_validator(mode="before")
    @classmethod
    def _build_display_name(cls, data: Any) -> Any:
        return _fill_display_name(data)


class EmployeeDetail(BaseModel):
    """Full employee profile — returned by GET /employees/{id}."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    display_name: Optional[str] = None
    email: str
    gender: Optional[GenderType] = None
    department_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    job_title: Optional[str] = None
    employment_type: EmploymentType
    employment_status: EmploymentStatus
    hire_date: date
    termination_date: Optional[date] = None
    termination_type: Optional[TerminationType] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _build_display_name(cls, data: Any) -> Any:
        return _fill_display_name(data)
