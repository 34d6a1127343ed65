"""Shared fixtures: in-memory database, ASGI client, tokens and row factories.

Tests run on SQLite through aiosqlite; the PostgreSQL-only column types are
compiled to SQLite equivalents below.
"""

from __future__ import annotations

import os

# Settings() requires JWT_SECRET at import time.
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

# Every model module, so Base.metadata knows all tables.
import hrsuite.attendance.models  # noqa: F401
import hrsuite.common.audit  # noqa: F401
import hrsuite.core_hr.models  # noqa: F401
import hrsuite.payroll.models  # noqa: F401
import hrsuite.performance.models  # noqa: F401
import hrsuite.recruitment.models  # noqa: F401
import hrsuite.time_off.models  # noqa: F401
from hrsuite.common.constants import UserRole
from hrsuite.common.rate_limit import limiter
from hrsuite.config import settings
from hrsuite.core_hr.models import Department, Employee, Location
from hrsuite.database import Base, get_db
from hrsuite.main import create_app


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


engine = create_async_engine(
    "sqlite+aiosqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def _schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield


async def _test_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
async def app():
    application = create_app()
    application.dependency_overrides[get_db] = _test_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging rows and asserting on them directly."""
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Row factories (plain dicts, so tests can reuse ids) ─────────────

def _stamped(**fields: Any) -> dict:
    now = datetime.now(timezone.utc)
    return {"id": uuid.uuid4(), "created_at": now, "updated_at": now, **fields}


def _make_location(*, code: str = "PBM", name: str = "Paramaribo HQ", city: str = "Paramaribo") -> dict:
    return _stamped(code=code, name=name, city=city, country="Suriname", is_active=True)


def _make_department(
    *,
    name: str = "Engineering",
    code: str = "ENG",
    location_id: uuid.UUID | None = None,
    parent_department_id: uuid.UUID | None = None,
) -> dict:
    return _stamped(
        name=name,
        code=code,
        location_id=location_id,
        parent_department_id=parent_department_id,
        is_active=True,
    )


def _make_employee(
    *,
    email: str | None = None,
    first_name: str = "Test",
    last_name: str = "User",
    department_id: uuid.UUID | None = None,
    location_id: uuid.UUID | None = None,
    hire_date: date = date(2024, 1, 15),
    **extra: Any,
) -> dict:
    suffix = uuid.uuid4().hex[:6].upper()
    data = _stamped(
        employee_code=f"EMP-{suffix}",
        first_name=first_name,
        last_name=last_name,
        display_name=f"{first_name} {last_name}",
        email=email or f"user.{suffix.lower()}@example.sr",
        hire_date=hire_date,
        employment_type="full_time",
        employment_status="active",
        department_id=department_id,
        location_id=location_id,
        is_active=True,
    )
    data.update(extra)
    return data


async def seed(db: AsyncSession, model, data: dict):
    """Insert one row and commit it so requests through the app can see it."""
    obj = model(**data)
    db.add(obj)
    await db.commit()
    return obj


@pytest.fixture
async def test_location(db) -> dict:
    data = _make_location()
    await seed(db, Location, data)
    return data


@pytest.fixture
async def test_department(db, test_location) -> dict:
    data = _make_department(location_id=test_location["id"])
    await seed(db, Department, data)
    return data


@pytest.fixture
async def test_employee(db, test_department, test_location) -> dict:
    data = _make_employee(department_id=test_department["id"], location_id=test_location["id"])
    await seed(db, Employee, data)
    return data


# ── Tokens ──────────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
    token_type: str = "access",
) -> str:
    lifetime = timedelta(hours=-1 if expired else 1)
    claims = {
        "sub": str(employee_id),
        "role": role.value,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def bearer(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}


@pytest.fixture
async def auth_headers(test_employee) -> dict[str, str]:
    """test_employee with the plain employee role."""
    return bearer(test_employee["id"])


@pytest.fixture
def user_headers(db):
    """``headers, employee = await user_headers(UserRole.hr_admin, **fields)``"""

    async def _create(role: UserRole = UserRole.employee, **fields: Any):
        data = _make_employee(**fields)
        await seed(db, Employee, data)
        return bearer(data["id"], role), data

    return _create


@pytest.fixture
async def admin_headers(user_headers) -> dict[str, str]:
    headers, _ = await user_headers(UserRole.hr_admin, first_name="Hana", last_name="Admin")
    return headers
