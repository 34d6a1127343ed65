"""API surface tests — health check, JWT validation, RBAC, rate limiting."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt

from hrsuite.common.constants import UserRole
from hrsuite.config import settings
from hrsuite.core_hr.models import Employee
from tests.conftest import _make_employee, bearer, create_access_token, seed


def _headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ── Health ──────────────────────────────────────────────────────────


async def test_health_needs_no_auth(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["version"] == "1.0.0"
    assert body["environment"] == settings.ENVIRONMENT


# ── JWT validation ──────────────────────────────────────────────────


class TestTokenValidation:

    async def test_missing_header(self, client):
        resp = await client.get("/api/v1/employees")
        assert resp.status_code == 401

    async def test_not_bearer(self, client, test_employee):
        token = create_access_token(test_employee["id"])
        resp = await client.get("/api/v1/employees", headers={"Authorization": f"Token {token}"})
        assert resp.status_code == 401

    async def test_expired(self, client, test_employee):
        token = create_access_token(test_employee["id"], expired=True)
        resp = await client.get("/api/v1/employees", headers=_headers(token))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Token has expired."

    async def test_refresh_token_rejected(self, client, test_employee):
        token = create_access_token(test_employee["id"], token_type="refresh")
        resp = await client.get("/api/v1/employees", headers=_headers(token))
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Invalid token type."

    async def test_wrong_signature(self, client, test_employee):
        token = jwt.encode(
            {
                "sub": str(test_employee["id"]),
                "type": "access",
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            "some-other-secret",
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get("/api/v1/employees", headers=_headers(token))
        assert resp.status_code == 401

    async def test_bad_subject(self, client):
        token = jwt.encode(
            {"sub": "not-a-uuid", "type": "access", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get("/api/v1/employees", headers=_headers(token))
        assert resp.status_code == 401

    async def test_unknown_employee(self, client):
        resp = await client.get("/api/v1/employees", headers=bearer(uuid.uuid4(), UserRole.hr_admin))
        assert resp.status_code == 401

    async def test_inactive_employee(self, client, db):
        data = _make_employee(is_active=False, employment_status="terminated")
        await seed(db, Employee, data)
        resp = await client.get("/api/v1/employees", headers=bearer(data["id"], UserRole.hr_admin))
        assert resp.status_code == 401


# ── RBAC ────────────────────────────────────────────────────────────


class TestRoles:

    async def test_unknown_role_claim_is_employee(self, client, test_employee):
        token = jwt.encode(
            {
                "sub": str(test_employee["id"]),
                "role": "superuser",
                "type": "access",
                "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            },
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )
        resp = await client.get("/api/v1/reports/headcount", headers=_headers(token))
        assert resp.status_code == 403

    async def test_forbidden_is_problem_detail(self, client, auth_headers):
        resp = await client.get("/api/v1/payroll/runs", headers=auth_headers)
        assert resp.status_code == 403
        assert resp.headers["content-type"] == "application/problem+json"
        body = resp.json()
        assert body["status"] == 403
        assert body["instance"] == "/api/v1/payroll/runs"

    async def test_system_admin_reaches_every_product(self, client, user_headers):
        headers, _ = await user_headers(UserRole.system_admin)
        for path in (
            "/api/v1/payroll/runs",
            "/api/v1/recruitment/jobs",
            "/api/v1/reports/headcount",
        ):
            resp = await client.get(path, headers=headers)
            assert resp.status_code == 200, path

    async def test_payroll_admin_is_not_recruiter(self, client, user_headers):
        headers, _ = await user_headers(UserRole.payroll_admin)
        resp = await client.get("/api/v1/recruitment/jobs", headers=headers)
        assert resp.status_code == 403


# ── Rate limiting ───────────────────────────────────────────────────


async def test_payroll_calculation_rate_limited(client, user_headers):
    """POST /payroll/runs/{id}/calculate allows 5 requests/minute, then 429."""
    headers, _ = await user_headers(UserRole.payroll_admin)
    url = f"/api/v1/payroll/runs/{uuid.uuid4()}/calculate"

    for i in range(5):
        resp = await client.post(url, headers=headers)
        assert resp.status_code == 404, f"Request {i + 1} should reach the handler"

    resp = await client.post(url, headers=headers)
    assert resp.status_code == 429
