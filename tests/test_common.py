"""Tests for common utilities — filters, pagination, audit trail, errors.

Exercises apply_filters, apply_sorting, apply_search, paginate and
create_audit_entry against the SQLite test database.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.audit import AuditTrail, create_audit_entry
from hrsuite.common.exceptions import (
    BusinessRuleException,
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrsuite.common.filters import _get_column, apply_filters, apply_search, apply_sorting
from hrsuite.common.pagination import PaginationParams, paginate
from hrsuite.core_hr.models import Department, Employee, Location
from tests.conftest import (
    _make_department,
    _make_employee,
    _make_location,
)


# ── Helpers ─────────────────────────────────────────────────────────


async def _seed_location(db: AsyncSession, **kwargs) -> Location:
    loc = Location(**_make_location(**kwargs))
    db.add(loc)
    await db.flush()
    return loc


async def _seed_department(db: AsyncSession, location_id, **kwargs) -> Department:
    dept = Department(**_make_department(location_id=location_id, **kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def _seed_employee(db: AsyncSession, dept_id, loc_id, **kwargs) -> Employee:
    emp = Employee(**_make_employee(department_id=dept_id, location_id=loc_id, **kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def _seed_three(db: AsyncSession) -> None:
    loc = await _seed_location(db)
    dept = await _seed_department(db, loc.id)
    for name in ("Charlie", "Alice", "Bob"):
        await _seed_employee(db, dept.id, loc.id, first_name=name)


# ═════════════════════════════════════════════════════════════════════
# FILTER TESTS
# ═════════════════════════════════════════════════════════════════════


class TestApplyFilters:

    async def test_filter_by_equality(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_filters(select(Employee), Employee, {"first_name": "Alice"})
        employees = (await db.execute(query)).scalars().all()
        assert len(employees) == 1
        assert employees[0].first_name == "Alice"

    async def test_filter_none_values_skipped(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_filters(select(Employee), Employee, {"first_name": None})
        assert len((await db.execute(query)).scalars().all()) == 3

    async def test_filter_ilike(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_filters(select(Employee), Employee, {"first_name__ilike": "li"})
        names = sorted(e.first_name for e in (await db.execute(query)).scalars().all())
        assert names == ["Alice", "Charlie"]

    async def test_filter_in(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_filters(
            select(Employee), Employee, {"first_name__in": ["Alice", "Bob"]},
        )
        assert len((await db.execute(query)).scalars().all()) == 2

    async def test_filter_nonexistent_column_ignored(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_filters(select(Employee), Employee, {"nonexistent_field": "value"})
        assert len((await db.execute(query)).scalars().all()) == 3


class TestApplySearch:

    async def test_search_matches_any_column(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_search(select(Employee), Employee, "bob", ["first_name", "email"])
        employees = (await db.execute(query)).scalars().all()
        assert [e.first_name for e in employees] == ["Bob"]

    async def test_blank_search_no_op(self):
        query = select(Employee)
        assert apply_search(query, Employee, "   ", ["first_name"]) is query


class TestApplySorting:

    async def test_sort_ascending(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_sorting(select(Employee), Employee, "first_name")
        employees = (await db.execute(query)).scalars().all()
        assert [e.first_name for e in employees] == ["Alice", "Bob", "Charlie"]

    async def test_sort_descending(self, db: AsyncSession):
        await _seed_three(db)

        query = apply_sorting(select(Employee), Employee, "-first_name")
        employees = (await db.execute(query)).scalars().all()
        assert [e.first_name for e in employees] == ["Charlie", "Bob", "Alice"]

    def test_sort_none_no_op(self):
        query = select(Employee)
        assert apply_sorting(query, Employee, None) is query

    def test_sort_unknown_column_no_op(self):
        """Unknown sort fields never reach the SQL."""
        query = select(Employee)
        assert apply_sorting(query, Employee, "-nonexistent_field") is query


class TestGetColumn:

    def test_get_existing_column(self):
        assert _get_column(Employee, "first_name") is not None

    def test_get_nonexistent_column(self):
        assert _get_column(Employee, "totally_fake_column") is None

    def test_non_column_attribute(self):
        assert _get_column(Employee, "full_name") is None


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:

    async def _seed_five(self, db: AsyncSession) -> None:
        loc = await _seed_location(db)
        dept = await _seed_department(db, loc.id)
        for i in range(5):
            await _seed_employee(db, dept.id, loc.id, first_name=f"P{i}")

    async def test_paginate_with_sort(self, db: AsyncSession):
        await self._seed_five(db)

        params = PaginationParams(page=1, page_size=3, sort="-first_name")
        result = await paginate(db, select(Employee), params, model=Employee)
        assert [e.first_name for e in result.data] == ["P4", "P3", "P2"]
        assert result.meta.total == 5
        assert result.meta.total_pages == 2
        assert result.meta.has_next is True
        assert result.meta.has_prev is False

    async def test_paginate_page_2(self, db: AsyncSession):
        await self._seed_five(db)

        params = PaginationParams(page=2, page_size=3, sort=None)
        result = await paginate(db, select(Employee), params, model=Employee)
        assert len(result.data) == 2
        assert result.meta.has_prev is True
        assert result.meta.has_next is False

    async def test_paginate_empty_result(self, db: AsyncSession):
        query = select(Employee).where(Employee.first_name == "ZZZ_NONEXISTENT")
        params = PaginationParams(page=1, page_size=10, sort=None)
        result = await paginate(db, query, params, model=Employee)
        assert len(result.data) == 0
        assert result.meta.total == 0
        assert result.meta.total_pages == 0

    def test_offset(self):
        assert PaginationParams(page=3, page_size=20, sort=None).offset == 40


# ═════════════════════════════════════════════════════════════════════
# AUDIT + EXCEPTIONS
# ═════════════════════════════════════════════════════════════════════


class TestAuditTrail:

    async def test_entry_encodes_values(self, db: AsyncSession):
        entity_id = uuid.uuid4()
        ref = uuid.uuid4()
        entry = await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=entity_id,
            old_values={"parent_department_id": None},
            new_values={"parent_department_id": ref},
        )
        await db.commit()

        stored = (
            await db.execute(select(AuditTrail).where(AuditTrail.id == entry.id))
        ).scalars().one()
        assert stored.new_values == {"parent_department_id": str(ref)}
        assert stored.old_values == {"parent_department_id": None}
        assert stored.actor_id is None

    async def test_empty_values_stored_as_null(self, db: AsyncSession):
        entry = await create_audit_entry(
            db, action="delete", entity_type="location", entity_id=uuid.uuid4(),
        )
        assert entry.old_values is None
        assert entry.new_values is None


class TestExceptions:

    def test_not_found(self):
        exc = NotFoundException("Employee", "abc")
        assert exc.status_code == 404
        assert "abc" in exc.detail

    def test_conflict(self):
        exc = ConflictError("code", "ENG")
        assert exc.status_code == 409
        assert "ENG" in exc.detail

    def test_business_rule(self):
        assert BusinessRuleException("nope").status_code == 409

    def test_validation_carries_field_errors(self):
        exc = ValidationException({"end_date": ["must follow start_date"]})
        assert exc.status_code == 422
        assert exc.errors == {"end_date": ["must follow start_date"]}
