"""Bearer-token verification and role checks for the API.

Tokens are issued by the platform's identity service; this API only verifies
them. The ``role`` claim is mapped onto the role hierarchy below, and an
unrecognised claim counts as a plain employee.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.constants import UserRole
from hrsuite.common.exceptions import ForbiddenException
from hrsuite.config import settings
from hrsuite.core_hr.models import Employee
from hrsuite.database import get_db

BEARER_PREFIX = "Bearer "

# payroll_admin and recruiter are product-scoped peers of manager.
_GRANTS: dict[UserRole, frozenset[UserRole]] = {
    UserRole.system_admin: frozenset(UserRole),
    UserRole.hr_admin: frozenset({
        UserRole.hr_admin, UserRole.payroll_admin, UserRole.recruiter,
        UserRole.manager, UserRole.employee,
    }),
    UserRole.payroll_admin: frozenset({UserRole.payroll_admin, UserRole.employee}),
    UserRole.recruiter: frozenset({UserRole.recruiter, UserRole.employee}),
    UserRole.manager: frozenset({UserRole.manager, UserRole.employee}),
    UserRole.employee: frozenset({UserRole.employee}),
}


def effective_roles(role: UserRole) -> frozenset[UserRole]:
    """Every role *role* may act as, itself included."""
    return _GRANTS.get(role, frozenset({role}))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def _decode_access_token(token: str) -> dict[str, Any]:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired.")
    except JWTError:
        raise _unauthorized("Invalid token.")
    if claims.get("type") != "access":
        raise _unauthorized("Invalid token type.")
    return claims


def _role_claim(claims: dict[str, Any]) -> UserRole:
    try:
        return UserRole(claims.get("role", UserRole.employee.value))
    except ValueError:
        return UserRole.employee


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """Resolve the Bearer token to an active employee.

    Sets ``request.state.user_role`` for ``require_role`` / ``has_role``.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        raise _unauthorized("Missing or invalid Authorization header.")
    claims = _decode_access_token(header[len(BEARER_PREFIX):])

    try:
        employee_id = uuid.UUID(str(claims.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token subject.")

    employee = (
        await db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True)),
        )
    ).scalars().first()
    if employee is None:
        raise _unauthorized("User account is inactive or not found.")

    request.state.user_role = _role_claim(claims)
    return employee


def require_role(*allowed_roles: UserRole) -> Callable:
    """Dependency factory: 403 unless the caller holds one of *allowed_roles*."""
    allowed = frozenset(allowed_roles)

    async def _check(
        request: Request,
        employee: Employee = Depends(get_current_user),
    ) -> Employee:
        role: UserRole = request.state.user_role
        if not effective_roles(role) & allowed:
            raise ForbiddenException(
                detail=(
                    f"Role '{role.value}' is not permitted. "
                    f"Required: {sorted(r.value for r in allowed)}."
                ),
            )
        return employee

    return _check


def has_role(request: Request, role: UserRole) -> bool:
    return role in effective_roles(request.state.user_role)
