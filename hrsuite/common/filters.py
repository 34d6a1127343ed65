"""Query helpers for list endpoints: keyword filters, sorting and search.

Filter keys name a mapped column, optionally followed by an operator suffix::

    {"department_id": d}              department_id = d
    {"first_name__ilike": "an"}       first_name ILIKE '%an%'
    {"hire_date__from": date(...)}    hire_date >= ...
    {"hire_date__to": date(...)}      hire_date <= ...
    {"employment_status__in": [...]}  employment_status IN (...)

Keys naming anything other than a mapped column are ignored, so request
parameters never reach SQL as identifiers.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import Select, String, cast, or_
from sqlalchemy.orm import InstrumentedAttribute

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "ilike": lambda col, value: col.ilike(f"%{value}%"),
    "from": operator.ge,
    "to": operator.le,
    "in": lambda col, value: col.in_(value),
}


def _get_column(model: Any, name: str) -> Optional[InstrumentedAttribute]:
    """Return the mapped attribute *name* of *model*, or None for anything else."""
    attr = getattr(model, name, None)
    return attr if isinstance(attr, InstrumentedAttribute) else None


def _split_key(key: str) -> tuple[str, Callable[[Any, Any], Any]]:
    name, sep, suffix = key.rpartition("__")
    if sep and suffix in _OPERATORS:
        return name, _OPERATORS[suffix]
    return key, operator.eq


def apply_filters(query: Select, model: Any, filters: dict[str, Any]) -> Select:
    """AND together one condition per non-None entry of *filters*."""
    conditions = []
    for key, value in filters.items():
        if value is None:
            continue
        name, op = _split_key(key)
        column = _get_column(model, name)
        if column is not None:
            conditions.append(op(column, value))
    return query.where(*conditions) if conditions else query


def apply_sorting(query: Select, model: Any, sort: Optional[str]) -> Select:
    """Order by ``"field"`` ascending or ``"-field"`` descending.

    An unknown field leaves *query* untouched.
    """
    if not sort:
        return query
    column = _get_column(model, sort.lstrip("-"))
    if column is None:
        return query
    return query.order_by(column.desc() if sort.startswith("-") else column.asc())


def apply_search(
    query: Select,
    model: Any,
    search: Optional[str],
    columns: Sequence[str],
) -> Select:
    """OR a case-insensitive substring match over *columns*."""
    term = (search or "").strip()
    if not term:
        return query
    searchable = [c for c in (_get_column(model, name) for name in columns) if c is not None]
    if not searchable:
        return query
    return query.where(or_(*(cast(c, String).ilike(f"%{term}%") for c in searchable)))
