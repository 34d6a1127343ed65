"""Core HR service layer — async CRUD + business logic.

Uses:
  - ``paginate()`` from hrsuite.common.pagination
  - ``apply_filters / apply_search`` from hrsuite.common.filters
  - ``create_audit_entry`` from hrsuite.common.audit
  - ``build_department_tree`` from hrsuite.core_hr.tree
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrsuite.common.audit import create_audit_entry
from hrsuite.common.constants import EmploymentStatus
from hrsuite.common.exceptions import (
    AppException,
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrsuite.common.filters import apply_filters, apply_search
from hrsuite.common.pagination import PaginatedResponse, PaginationParams, paginate
from hrsuite.core_hr.models import Department, Employee, Location
from hrsuite.core_hr.schemas import (
    BulkDeleteFailure,
    BulkDeleteResult,
    DepartmentCreate,
    DepartmentNode,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeTerminate,
    EmployeeUpdate,
    LocationBrief,
    LocationCreate,
    LocationUpdate,
)
from hrsuite.core_hr.tree import build_department_tree

logger = logging.getLogger(__name__)


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


async def _exists(db: AsyncSession, model: Any, entity_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(func.count()).select_from(model).where(model.id == entity_id),
    )
    return (result.scalar() or 0) > 0


async def _active_employee_count(db: AsyncSession, *criteria: Any) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Employee)
        .where(Employee.is_active.is_(True), *criteria)
    )
    return result.scalar() or 0


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        location_id: Optional[uuid.UUID] = None,
        employment_status: Optional[str] = None,
        employment_type: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> PaginatedResponse:
        """Return a paginated, filtered, searchable employee list."""

        query = (
            select(Employee)
            .options(
                selectinload(Employee.department),
                selectinload(Employee.location),
            )
            .order_by(Employee.last_name, Employee.first_name)
        )

        filters: dict[str, Any] = {
            "department_id": department_id,
            "location_id": location_id,
            "employment_status": employment_status,
            "employment_type": employment_type,
            "is_active": is_active,
        }
        query = apply_filters(query, Employee, filters)

        if search:
            query = apply_search(
                query,
                Employee,
                search,
                ["first_name", "last_name", "email", "employee_code", "display_name"],
            )

        return await paginate(db, query, pagination, model=Employee)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Employee:
        result = await db.execute(
            select(Employee).where(Employee.id == employee_id),
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def _check_references(
        db: AsyncSession,
        values: dict[str, Any],
    ) -> None:
        errors: dict[str, list[str]] = {}
        refs = (
            ("department_id", Department),
            ("location_id", Location),
            ("reporting_manager_id", Employee),
        )
        for field, model in refs:
            ref_id = values.get(field)
            if ref_id is not None and not await _exists(db, model, ref_id):
                errors[field] = [f"{model.__name__} '{ref_id}' does not exist."]
        if errors:
            raise ValidationException(errors)

    @staticmethod
    async def _check_unique(
        db: AsyncSession,
        values: dict[str, Any],
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        for field in ("employee_code", "email"):
            value = values.get(field)
            if value is None:
                continue
            query = (
                select(func.count())
                .select_from(Employee)
                .where(getattr(Employee, field) == value)
            )
            if exclude_id is not None:
                query = query.where(Employee.id != exclude_id)
            if ((await db.execute(query)).scalar() or 0) > 0:
                raise ConflictError(field, value)

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Create a new employee record."""

        values = data.model_dump()
        await EmployeeService._check_unique(db, values)
        await EmployeeService._check_references(db, values)

        employee = Employee(**values)
        employee.ensure_display_name()

        db.add(employee)
        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            err = str(exc.orig)
            if "employee_code" in err:
                raise ConflictError("employee_code", data.employee_code)
            if "email" in err:
                raise ConflictError("email", data.email)
            raise

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Employee %s created (%s)", employee.employee_code, employee.id)
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial-update an existing employee."""

        employee = await EmployeeService.get_employee(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        await EmployeeService._check_unique(db, changes, exclude_id=employee.id)
        await EmployeeService._check_references(db, changes)
        if changes.get("reporting_manager_id") == employee.id:
            raise ValidationException(
                {"reporting_manager_id": ["An employee cannot report to themselves."]},
            )

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_values[field] = _enum_value(getattr(employee, field, None))
            setattr(employee, field, value)

        # Re-compute display_name if name parts changed
        if "display_name" not in changes and (
            "first_name" in changes or "last_name" in changes
        ):
            employee.display_name = employee.full_name

        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return employee

    # ── Terminate ───────────────────────────────────────────────────

    @staticmethod
    async def terminate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeTerminate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Mark an employee terminated and deactivate the record."""

        employee = await EmployeeService.get_employee(db, employee_id)
        if employee.employment_status == EmploymentStatus.terminated:
            raise BusinessRuleException(
                f"Employee {employee.employee_code} is already terminated.",
            )
        if data.termination_date < employee.hire_date:
            raise ValidationException(
                {"termination_date": ["Termination date cannot precede the hire date."]},
            )

        employee.employment_status = EmploymentStatus.terminated
        employee.termination_date = data.termination_date
        employee.termination_type = data.termination_type
        employee.is_active = False
        employee.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="terminate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info(
            "Employee %s terminated (%s) effective %s",
            employee.employee_code, data.termination_type.value, data.termination_date,
        )
        return employee


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Async CRUD and hierarchy operations for departments."""

    @staticmethod
    async def _employee_counts(db: AsyncSession) -> dict[uuid.UUID, int]:
        count_result = await db.execute(
            select(
                Employee.department_id,
                func.count(Employee.id).label("cnt"),
            )
            .where(Employee.is_active.is_(True))
            .group_by(Employee.department_id)
        )
        return {row[0]: row[1] for row in count_result.all() if row[0]}

    @staticmethod
    def _to_response(dept: Department, emp_count: int) -> DepartmentResponse:
        resp = DepartmentResponse.model_validate(dept)
        resp.employee_count = emp_count
        if dept.location:
            resp.location = LocationBrief.model_validate(dept.location)
        if dept.head_employee:
            resp.head_employee_name = dept.head_employee.full_name
        return resp

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[DepartmentResponse]:
        """Return all departments with active employee counts."""

        query = (
            select(Department)
            .options(
                selectinload(Department.location),
                selectinload(Department.head_employee),
            )
            .order_by(Department.name)
        )
        if is_active is not None:
            query = query.where(Department.is_active == is_active)

        departments = (await db.execute(query)).scalars().all()
        emp_counts = await DepartmentService._employee_counts(db)
        return [
            DepartmentService._to_response(dept, emp_counts.get(dept.id, 0))
            for dept in departments
        ]

    @staticmethod
    async def get_hierarchy(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[DepartmentNode]:
        """Return the department forest, siblings sorted by name."""

        query = select(Department).order_by(Department.name)
        if is_active is not None:
            query = query.where(Department.is_active == is_active)
        departments = (await db.execute(query)).scalars().all()

        emp_counts = await DepartmentService._employee_counts(db)
        return build_department_tree(departments, emp_counts)

    @staticmethod
    async def _load(db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(
            select(Department)
            .where(Department.id == department_id)
            .options(
                selectinload(Department.location),
                selectinload(Department.head_employee),
            )
            .execution_options(populate_existing=True)
        )
        dept = result.scalars().first()
        if dept is None:
            raise NotFoundException("Department", str(department_id))
        return dept

    @staticmethod
    async def get_department(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> DepartmentResponse:
        """Load a single department with enrichments."""

        dept = await DepartmentService._load(db, department_id)
        emp_count = await _active_employee_count(
            db, Employee.department_id == department_id,
        )
        return DepartmentService._to_response(dept, emp_count)

    @staticmethod
    async def _check_parent(
        db: AsyncSession,
        department_id: Optional[uuid.UUID],
        parent_id: uuid.UUID,
    ) -> None:
        """Reject a parent that is missing, is the department itself, or is a descendant."""

        if department_id is not None and parent_id == department_id:
            raise ValidationException(
                {"parent_department_id": ["A department cannot be its own parent."]},
            )

        rows = (
            await db.execute(select(Department.id, Department.parent_department_id))
        ).all()
        parent_of = {row[0]: row[1] for row in rows}
        if parent_id not in parent_of:
            raise ValidationException(
                {"parent_department_id": [f"Department '{parent_id}' does not exist."]},
            )
        if department_id is None:
            return

        seen: set[uuid.UUID] = set()
        current: Optional[uuid.UUID] = parent_id
        while current is not None and current not in seen:
            if current == department_id:
                raise ValidationException(
                    {"parent_department_id": ["Moving the department here would create a cycle."]},
                )
            seen.add(current)
            current = parent_of.get(current)

    @staticmethod
    async def _check_code(
        db: AsyncSession,
        code: str,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(func.count()).select_from(Department).where(Department.code == code)
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if ((await db.execute(query)).scalar() or 0) > 0:
            raise ConflictError("code", code)

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        await DepartmentService._check_code(db, data.code)
        if data.parent_department_id is not None:
            await DepartmentService._check_parent(db, None, data.parent_department_id)
        if data.location_id is not None and not await _exists(db, Location, data.location_id):
            raise ValidationException(
                {"location_id": [f"Location '{data.location_id}' does not exist."]},
            )

        dept = Department(**data.model_dump())
        db.add(dept)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        dept = await DepartmentService._load(db, department_id)

        changes = data.model_dump(exclude_unset=True)
        if "code" in changes and changes["code"] != dept.code:
            await DepartmentService._check_code(db, changes["code"], exclude_id=dept.id)
        if changes.get("parent_department_id") is not None:
            await DepartmentService._check_parent(
                db, dept.id, changes["parent_department_id"],
            )
        if changes.get("location_id") is not None and not await _exists(
            db, Location, changes["location_id"],
        ):
            raise ValidationException(
                {"location_id": [f"Location '{changes['location_id']}' does not exist."]},
            )

        old_values = {field: getattr(dept, field) for field in changes}
        for field, value in changes.items():
            setattr(dept, field, value)
        dept.updated_at = datetime.now(timezone.utc)
        await db.flush()

        if changes:
            await create_audit_entry(
                db,
                action="update",
                entity_type="department",
                entity_id=dept.id,
                actor_id=actor_id,
                old_values=old_values,
                new_values=changes,
            )
        if "parent_department_id" in changes:
            logger.info(
                "Department %s moved under %s", dept.code, changes["parent_department_id"],
            )
        return await DepartmentService.get_department(db, dept.id)

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Soft-delete a department that has no active members or children."""

        dept = await DepartmentService._load(db, department_id)

        if await _active_employee_count(db, Employee.department_id == department_id):
            raise BusinessRuleException(
                f"Department {dept.code} still has active employees.",
            )
        child_count = (
            await db.execute(
                select(func.count())
                .select_from(Department)
                .where(
                    Department.parent_department_id == department_id,
                    Department.is_active.is_(True),
                )
            )
        ).scalar() or 0
        if child_count:
            raise BusinessRuleException(
                f"Department {dept.code} still has {child_count} active sub-department(s).",
            )

        dept.is_active = False
        dept.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="department",
            entity_id=dept.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )


# ═════════════════════════════════════════════════════════════════════
# LocationService
# ═════════════════════════════════════════════════════════════════════


class LocationService:
    """Async CRUD operations for locations."""

    @staticmethod
    async def list_locations(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> Sequence[Location]:
        query = select(Location).order_by(Location.name)
        if is_active is not None:
            query = query.where(Location.is_active == is_active)
        return (await db.execute(query)).scalars().all()

    @staticmethod
    async def get_location(
        db: AsyncSession,
        location_id: uuid.UUID,
    ) -> Location:
        result = await db.execute(
            select(Location).where(Location.id == location_id),
        )
        location = result.scalars().first()
        if location is None:
            raise NotFoundException("Location", str(location_id))
        return location

    @staticmethod
    async def _check_unique(
        db: AsyncSession,
        values: dict[str, Any],
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        for field in ("code", "name"):
            value = values.get(field)
            if value is None:
                continue
            query = (
                select(func.count())
                .select_from(Location)
                .where(getattr(Location, field) == value)
            )
            if exclude_id is not None:
                query = query.where(Location.id != exclude_id)
            if ((await db.execute(query)).scalar() or 0) > 0:
                raise ConflictError(field, value)

    @staticmethod
    async def create_location(
        db: AsyncSession,
        data: LocationCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Location:
        values = data.model_dump()
        await LocationService._check_unique(db, values)

        location = Location(**values)
        db.add(location)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return location

    @staticmethod
    async def update_location(
        db: AsyncSession,
        location_id: uuid.UUID,
        data: LocationUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Location:
        location = await LocationService.get_location(db, location_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return location

        await LocationService._check_unique(db, changes, exclude_id=location.id)

        old_values = {field: getattr(location, field) for field in changes}
        for field, value in changes.items():
            setattr(location, field, value)
        location.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=changes,
        )
        return location

    @staticmethod
    async def delete_location(
        db: AsyncSession,
        location_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Deactivate a location that no active employee is assigned to."""

        location = await LocationService.get_location(db, location_id)
        if not location.is_active:
            raise BusinessRuleException(f"Location {location.code} is already inactive.")

        in_use = await _active_employee_count(db, Employee.location_id == location_id)
        if in_use:
            raise BusinessRuleException(
                f"Location {location.code} is assigned to {in_use} active employee(s).",
            )

        location.is_active = False
        location.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="location",
            entity_id=location.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )

    @staticmethod
    async def bulk_delete_locations(
        db: AsyncSession,
        location_ids: Sequence[uuid.UUID],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BulkDeleteResult:
        """Delete locations one at a time, in input order.

        A failing id is recorded and the loop moves on; repeated ids are
        processed once.
        """
        result = BulkDeleteResult()
        seen: set[uuid.UUID] = set()

        for location_id in location_ids:
            if location_id in seen:
                continue
            seen.add(location_id)
            try:
                await LocationService.delete_location(db, location_id, actor_id=actor_id)
            except AppException as exc:
                logger.warning("Bulk delete skipped location %s: %s", location_id, exc.detail)
                result.failed.append(BulkDeleteFailure(id=location_id, error=exc.detail))
            else:
                result.deleted.append(location_id)

        logger.info(
            "Bulk location delete: %d deleted, %d failed",
            len(result.deleted), len(result.failed),
        )
        return result
