"""Department hierarchy builder.

Pure function over already-loaded rows so it can be reused by the
hierarchy endpoint and by reports without touching the session.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable, Optional

from hrsuite.core_hr.schemas import DepartmentNode


def _field(dept: Any, name: str) -> Any:
    if isinstance(dept, dict):
        return dept.get(name)
    return getattr(dept, name, None)


def build_department_tree(
    departments: Iterable[Any],
    employee_counts: Optional[dict[uuid.UUID, int]] = None,
) -> list[DepartmentNode]:
    """Turn a flat department list into a parent → children forest.

    Accepts ORM rows or plain dicts. A department whose parent is not in
    the input (orphan or filtered-out parent) becomes a root. Input order
    is preserved for roots and for each parent's children.
    """
    counts = employee_counts or {}

    nodes: dict[uuid.UUID, DepartmentNode] = {}
    ordered: list[DepartmentNode] = []
    for dept in departments:
        dept_id = _field(dept, "id")
        if dept_id in nodes:
            continue
        node = DepartmentNode(
            id=dept_id,
            code=_field(dept, "code"),
            name=_field(dept, "name"),
            parent_department_id=_field(dept, "parent_department_id"),
            employee_count=counts.get(dept_id, 0),
        )
        nodes[dept_id] = node
        ordered.append(node)

    def _loops_back(node: DepartmentNode) -> bool:
        seen: set[uuid.UUID] = set()
        current = nodes.get(node.parent_department_id)
        while current is not None and current.id not in seen:
            if current is node:
                return True
            seen.add(current.id)
            current = nodes.get(current.parent_department_id)
        return False

    roots: list[DepartmentNode] = []
    for node in ordered:
        parent = nodes.get(node.parent_department_id) if node.parent_department_id else None
        # Nodes on a parent cycle become roots.
        if parent is None or _loops_back(node):
            roots.append(node)
        else:
            parent.children.append(node)

    return roots
