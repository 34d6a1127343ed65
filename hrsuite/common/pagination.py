"""Page/size/sort parameters and the ``{"data", "meta"}`` list envelope."""


import math
from typing import Any, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrsuite.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from hrsuite.common.filters import apply_sorting

T = TypeVar("T")


class PaginationParams:
    """List-endpoint query parameters; inject with ``Depends()``."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        sort: Optional[str] = Query(None, description='Column name, "-" prefix for descending'),
    ) -> None:
        self.page = page
        self.page_size = page_size
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / page_size) if total else 0
        return cls(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedResponse(BaseModel, Generic[T]):
    data: Sequence[T]
    meta: PaginationMeta


async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any = None,
) -> PaginatedResponse:
    """Run *query* for one page and count the full result set.

    A valid ``params.sort`` column on *model* replaces the query's own
    ordering; an invalid one keeps it.
    """
    unordered = query.order_by(None)
    if params.sort and model is not None:
        sorted_query = apply_sorting(unordered, model, params.sort)
        if sorted_query is not unordered:
            query = sorted_query

    total: int = (
        await session.execute(select(func.count()).select_from(unordered.subquery()))
    ).scalar_one()
    rows = (
        await session.execute(query.offset(params.offset).limit(params.page_size))
    ).scalars().all()

    return PaginatedResponse(
        data=rows,
        meta=PaginationMeta.build(params.page, params.page_size, total),
    )
