"""Core HR router — Employee, Department, Location API endpoints.

Routes:
    /employees                   — List, create employees
    /employees/{id}              — Get, update employee
    /employees/{id}/terminate    — End employment
    /departments                 — List, create departments
    /departments/hierarchy       — Department tree
    /departments/{id}            — Get, update, delete department
    /locations                   — List, create locations
    /locations/bulk-delete       — Sequential multi-delete
    /locations/{id}              — Get, update, delete location
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.auth.dependencies import get_current_user, has_role, require_role
from hrsuite.common.constants import EmploymentStatus, EmploymentType, UserRole
from hrsuite.common.exceptions import ForbiddenException
from hrsuite.common.pagination import PaginationParams
from hrsuite.common.rate_limit import limiter
from hrsuite.core_hr.models import Employee
from hrsuite.core_hr.schemas import (
    BulkDeleteRequest,
    DepartmentCreate,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeListItem,
    EmployeeTerminate,
    EmployeeUpdate,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
)
from hrsuite.core_hr.service import DepartmentService, EmployeeService, LocationService
from hrsuite.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])
locations_router = APIRouter(prefix="", tags=["locations"])


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


@employees_router.get("")
async def list_employees(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department_id: Optional[uuid.UUID] = Query(None),
    location_id: Optional[uuid.UUID] = Query(None),
    employment_status: Optional[EmploymentStatus] = Query(None),
    employment_type: Optional[EmploymentType] = Query(None),
    is_active: Optional[bool] = Query(None),
):
    """List employees with pagination, search, and filtering."""
    result = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department_id=department_id,
        location_id=location_id,
        employment_status=employment_status,
        employment_type=employment_type,
        is_active=is_active,
    )
    return {
        "data": [
            EmployeeListItem.model_validate(emp).model_dump(mode="json")
            for emp in result.data
        ],
        "meta": result.meta.model_dump(),
    }


@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Retrieve an employee.

    - **employee**: own record only
    - **manager**: own record + direct reports
    - **hr_admin+**: any employee
    """
    employee = await EmployeeService.get_employee(db, employee_id)
    if not has_role(request, UserRole.hr_admin) and current_user.id != employee_id:
        is_report = (
            has_role(request, UserRole.manager)
            and employee.reporting_manager_id == current_user.id
        )
        if not is_report:
            raise ForbiddenException(
                detail="You can only view your own record or your direct reports.",
            )
    return {
        "data": EmployeeDetail.model_validate(employee).model_dump(mode="json"),
        "message": "Employee retrieved successfully.",
    }


@employees_router.post("", status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    """Create a new employee record. Requires **hr_admin** role or above."""
    employee = await EmployeeService.create_employee(db, body, actor_id=current_user.id)
    return {
        "data": EmployeeDetail.model_validate(employee).model_dump(mode="json"),
        "message": "Employee created successfully.",
    }


@employees_router.put("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    employee = await EmployeeService.update_employee(
        db, employee_id, body, actor_id=current_user.id,
    )
    return {
        "data": EmployeeDetail.model_validate(employee).model_dump(mode="json"),
        "message": "Employee updated successfully.",
    }


@employees_router.post("/{employee_id}/terminate")
async def terminate_employee(
    employee_id: uuid.UUID,
    body: EmployeeTerminate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    employee = await EmployeeService.terminate_employee(
        db, employee_id, body, actor_id=current_user.id,
    )
    return {
        "data": EmployeeDetail.model_validate(employee).model_dump(mode="json"),
        "message": "Employee terminated.",
    }


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("")
async def list_departments(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(True, description="Filter by active status; null for all"),
):
    departments = await DepartmentService.list_departments(db, is_active=is_active)
    return {
        "data": [d.model_dump(mode="json") for d in departments],
        "message": "Departments retrieved successfully.",
    }


# NOTE: must be declared before /{department_id}.
@departments_router.get("/hierarchy")
async def get_department_hierarchy(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(True),
):
    """Return departments as a parent → children tree."""
    tree = await DepartmentService.get_hierarchy(db, is_active=is_active)
    return {
        "data": [node.model_dump(mode="json") for node in tree],
        "message": "Department hierarchy retrieved successfully.",
    }


@departments_router.get("/{department_id}")
async def get_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    dept = await DepartmentService.get_department(db, department_id)
    return {
        "data": dept.model_dump(mode="json"),
        "message": "Department retrieved successfully.",
    }


@departments_router.post("", status_code=201)
async def create_department(
    body: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    dept = await DepartmentService.create_department(db, body, actor_id=current_user.id)
    return {
        "data": dept.model_dump(mode="json"),
        "message": "Department created successfully.",
    }


@departments_router.put("/{department_id}")
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    dept = await DepartmentService.update_department(
        db, department_id, body, actor_id=current_user.id,
    )
    return {
        "data": dept.model_dump(mode="json"),
        "message": "Department updated successfully.",
    }


@departments_router.delete("/{department_id}")
async def delete_department(
    department_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    await DepartmentService.delete_department(db, department_id, actor_id=current_user.id)
    return {"data": None, "message": "Department deleted successfully."}


# ═════════════════════════════════════════════════════════════════════
# Location Endpoints
# ═════════════════════════════════════════════════════════════════════


@locations_router.get("")
async def list_locations(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
    is_active: Optional[bool] = Query(True),
):
    locations = await LocationService.list_locations(db, is_active=is_active)
    return {
        "data": [
            LocationResponse.model_validate(loc).model_dump(mode="json")
            for loc in locations
        ],
        "message": "Locations retrieved successfully.",
    }


@locations_router.post("/bulk-delete")
@limiter.limit("10/minute")
async def bulk_delete_locations(
    request: Request,
    body: BulkDeleteRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    """Delete several locations; failures are reported per id."""
    result = await LocationService.bulk_delete_locations(
        db, body.ids, actor_id=current_user.id,
    )
    return {
        "data": result.model_dump(mode="json"),
        "message": f"{len(result.deleted)} deleted, {len(result.failed)} failed.",
    }


@locations_router.get("/{location_id}")
async def get_location(
    location_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    location = await LocationService.get_location(db, location_id)
    return {
        "data": LocationResponse.model_validate(location).model_dump(mode="json"),
        "message": "Location retrieved successfully.",
    }


@locations_router.post("", status_code=201)
async def create_location(
    body: LocationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    location = await LocationService.create_location(db, body, actor_id=current_user.id)
    return {
        "data": LocationResponse.model_validate(location).model_dump(mode="json"),
        "message": "Location created successfully.",
    }


@locations_router.put("/{location_id}")
async def update_location(
    location_id: uuid.UUID,
    body: LocationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    location = await LocationService.update_location(
        db, location_id, body, actor_id=current_user.id,
    )
    return {
        "data": LocationResponse.model_validate(location).model_dump(mode="json"),
        "message": "Location updated successfully.",
    }


@locations_router.delete("/{location_id}")
async def delete_location(
    location_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.hr_admin)),
):
    await LocationService.delete_location(db, location_id, actor_id=current_user.id)
    return {"data": None, "message": "Location deleted successfully."}
