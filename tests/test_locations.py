"""Location tests — CRUD via API, uniqueness, delete protection, bulk delete."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.audit import AuditTrail
from hrsuite.core_hr.models import Employee, Location
from hrsuite.core_hr.service import LocationService
from tests.conftest import TestSessionFactory, _make_employee, _make_location, seed


class TestLocationAPI:

    async def test_create_location_defaults_country(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/locations",
            json={"code": "NCK", "name": "Nickerie Office", "city": "Nieuw Nickerie"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        body = resp.json()["data"]
        assert body["country"] == "Suriname"
        assert body["is_active"] is True

    async def test_duplicate_name_conflict(self, client, admin_headers, db: AsyncSession):
        await seed(db, Location, _make_location())

        resp = await client.post(
            "/api/v1/locations",
            json={"code": "NEW", "name": "Paramaribo HQ"},
            headers=admin_headers,
        )
        assert resp.status_code == 409
        assert "name" in resp.json()["errors"]

    async def test_update_location(self, client, admin_headers, db: AsyncSession):
        loc = _make_location()
        await seed(db, Location, loc)

        resp = await client.put(
            f"/api/v1/locations/{loc['id']}",
            json={"city": "Lelydorp"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["city"] == "Lelydorp"

    async def test_employee_cannot_create(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/locations",
            json={"code": "X", "name": "X"},
            headers=auth_headers,
        )
        assert resp.status_code == 403

    async def test_delete_in_use_blocked(self, client, admin_headers, db: AsyncSession):
        loc = _make_location()
        await seed(db, Location, loc)
        await seed(db, Employee, _make_employee(location_id=loc["id"]))

        resp = await client.delete(f"/api/v1/locations/{loc['id']}", headers=admin_headers)
        assert resp.status_code == 409

    async def test_delete_twice(self, client, admin_headers, db: AsyncSession):
        loc = _make_location()
        await seed(db, Location, loc)

        first = await client.delete(f"/api/v1/locations/{loc['id']}", headers=admin_headers)
        second = await client.delete(f"/api/v1/locations/{loc['id']}", headers=admin_headers)
        assert first.status_code == 200
        assert second.status_code == 409


class TestBulkDelete:

    async def test_partial_success(self, client, admin_headers, db: AsyncSession):
        free = _make_location(code="FRE", name="Free")
        busy = _make_location(code="BSY", name="Busy")
        await seed(db, Location, free)
        await seed(db, Location, busy)
        await seed(db, Employee, _make_employee(location_id=busy["id"]))
        missing = uuid.uuid4()

        resp = await client.post(
            "/api/v1/locations/bulk-delete",
            json={"ids": [str(free["id"]), str(busy["id"]), str(missing)]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["deleted"] == [str(free["id"])]
        assert [f["id"] for f in data["failed"]] == [str(busy["id"]), str(missing)]
        assert resp.json()["message"] == "1 deleted, 2 failed."

    async def test_repeated_ids_processed_once(self, db: AsyncSession):
        loc = _make_location()
        await seed(db, Location, loc)

        result = await LocationService.bulk_delete_locations(db, [loc["id"], loc["id"]])
        assert result.deleted == [loc["id"]]
        assert result.failed == []

    async def test_each_delete_audited(self, db: AsyncSession):
        a = _make_location(code="AAA", name="A")
        b = _make_location(code="BBB", name="B")
        await seed(db, Location, a)
        await seed(db, Location, b)

        await LocationService.bulk_delete_locations(db, [a["id"], b["id"]])
        await db.commit()

        async with TestSessionFactory() as session:
            entries = (
                await session.execute(
                    select(AuditTrail).where(
                        AuditTrail.entity_type == "location",
                        AuditTrail.action == "delete",
                    )
                )
            ).scalars().all()
        assert {e.entity_id for e in entries} == {a["id"], b["id"]}

    async def test_empty_list(self, db: AsyncSession):
        result = await LocationService.bulk_delete_locations(db, [])
        assert result.deleted == []
        assert result.failed == []
