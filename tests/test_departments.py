"""Department module test suite — hierarchy building, parent validation,
delete protection, and the department API.

Uses the shared conftest.py pattern with in-memory SQLite.
"""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.constants import UserRole
from hrsuite.core_hr.models import Department, Employee, Location
from hrsuite.core_hr.tree import build_department_tree
from tests.conftest import (
    _make_department,
    _make_employee,
    _make_location,
    seed,
)


def _dept(name: str, parent: uuid.UUID | None = None) -> dict:
    return {
        "id": uuid.uuid4(),
        "code": name[:3].upper(),
        "name": name,
        "parent_department_id": parent,
    }


# ═════════════════════════════════════════════════════════════════════
# 1. TREE BUILDER
# ═════════════════════════════════════════════════════════════════════


class TestDepartmentTree:

    def test_nests_children_under_parents(self):
        root = _dept("Operations")
        child = _dept("Logistics", root["id"])
        grandchild = _dept("Fleet", child["id"])

        tree = build_department_tree([root, child, grandchild])

        assert len(tree) == 1
        assert tree[0].name == "Operations"
        assert tree[0].children[0].name == "Logistics"
        assert tree[0].children[0].children[0].name == "Fleet"

    def test_orphan_becomes_root(self):
        orphan = _dept("Finance", uuid.uuid4())
        tree = build_department_tree([orphan])
        assert [n.name for n in tree] == ["Finance"]

    def test_preserves_input_order(self):
        root = _dept("Root")
        b = _dept("Beta", root["id"])
        a = _dept("Alpha", root["id"])
        tree = build_department_tree([root, b, a])
        assert [c.name for c in tree[0].children] == ["Beta", "Alpha"]

    def test_cycle_does_not_recurse_forever(self):
        a = _dept("Alpha")
        b = _dept("Beta", a["id"])
        a["parent_department_id"] = b["id"]

        tree = build_department_tree([a, b])
        names = {n.name for n in tree}
        assert names == {"Alpha", "Beta"}

    def test_employee_counts_attached(self):
        root = _dept("Root")
        tree = build_department_tree([root], {root["id"]: 7})
        assert tree[0].employee_count == 7

    def test_duplicate_ids_collapsed(self):
        root = _dept("Root")
        tree = build_department_tree([root, dict(root)])
        assert len(tree) == 1

    def test_empty_input(self):
        assert build_department_tree([]) == []


# ═════════════════════════════════════════════════════════════════════
# 2. DEPARTMENT API
# ═════════════════════════════════════════════════════════════════════


class TestDepartmentAPI:

    async def test_create_department(self, client, admin_headers, db: AsyncSession):
        loc = _make_location()
        await seed(db, Location, loc)

        resp = await client.post(
            "/api/v1/departments",
            json={"code": "ENG", "name": "Engineering", "location_id": str(loc["id"])},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        body = resp.json()["data"]
        assert body["code"] == "ENG"
        assert body["employee_count"] == 0
        assert body["location"]["code"] == "PBM"

    async def test_create_requires_hr_admin(self, client, user_headers):
        headers, _ = await user_headers(UserRole.manager)
        resp = await client.post(
            "/api/v1/departments",
            json={"code": "ENG", "name": "Engineering"},
            headers=headers,
        )
        assert resp.status_code == 403

    async def test_duplicate_code_conflict(self, client, admin_headers, db: AsyncSession):
        await seed(db, Department, _make_department(code="ENG"))

        resp = await client.post(
            "/api/v1/departments",
            json={"code": "ENG", "name": "Engineering 2"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_unknown_parent_rejected(self, client, admin_headers):
        resp = await client.post(
            "/api/v1/departments",
            json={"code": "X", "name": "X", "parent_department_id": str(uuid.uuid4())},
            headers=admin_headers,
        )
        assert resp.status_code == 422
        assert "parent_department_id" in resp.json()["errors"]

    async def test_move_under_descendant_rejected(self, client, admin_headers, db: AsyncSession):
        parent = _make_department(name="Operations", code="OPS")
        await seed(db, Department, parent)
        child = _make_department(name="Logistics", code="LOG", parent_department_id=parent["id"])
        await seed(db, Department, child)

        resp = await client.put(
            f"/api/v1/departments/{parent['id']}",
            json={"parent_department_id": str(child["id"])},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_self_parent_rejected(self, client, admin_headers, db: AsyncSession):
        dept = _make_department()
        await seed(db, Department, dept)

        resp = await client.put(
            f"/api/v1/departments/{dept['id']}",
            json={"parent_department_id": str(dept["id"])},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_hierarchy_endpoint(self, client, admin_headers, db: AsyncSession):
        parent = _make_department(name="Operations", code="OPS")
        await seed(db, Department, parent)
        await seed(db, Department, _make_department(
            name="Logistics", code="LOG", parent_department_id=parent["id"],
        ))
        await seed(db, Employee, _make_employee(department_id=parent["id"]))

        resp = await client.get("/api/v1/departments/hierarchy", headers=admin_headers)
        assert resp.status_code == 200
        roots = resp.json()["data"]
        ops = next(r for r in roots if r["code"] == "OPS")
        assert ops["employee_count"] == 1
        assert [c["code"] for c in ops["children"]] == ["LOG"]

    async def test_delete_with_active_employees_blocked(
        self, client, admin_headers, db: AsyncSession,
    ):
        dept = _make_department(code="HR", name="Human Resources")
        await seed(db, Department, dept)
        await seed(db, Employee, _make_employee(department_id=dept["id"]))

        resp = await client.delete(f"/api/v1/departments/{dept['id']}", headers=admin_headers)
        assert resp.status_code == 409

    async def test_delete_with_children_blocked(self, client, admin_headers, db: AsyncSession):
        parent = _make_department(name="Operations", code="OPS")
        await seed(db, Department, parent)
        await seed(db, Department, _make_department(
            name="Logistics", code="LOG", parent_department_id=parent["id"],
        ))

        resp = await client.delete(f"/api/v1/departments/{parent['id']}", headers=admin_headers)
        assert resp.status_code == 409

    async def test_delete_is_soft(self, client, admin_headers, db: AsyncSession):
        dept = _make_department(code="TMP", name="Temp")
        await seed(db, Department, dept)

        resp = await client.delete(f"/api/v1/departments/{dept['id']}", headers=admin_headers)
        assert resp.status_code == 200

        active = await client.get("/api/v1/departments", headers=admin_headers)
        assert all(d["code"] != "TMP" for d in active.json()["data"])

        everything = await client.get(
            "/api/v1/departments", params={"is_active": "false"}, headers=admin_headers,
        )
        assert [d["code"] for d in everything.json()["data"]] == ["TMP"]

    async def test_get_missing_department(self, client, admin_headers):
        resp = await client.get(f"/api/v1/departments/{uuid.uuid4()}", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")
