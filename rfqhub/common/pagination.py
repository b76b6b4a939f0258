"""Page/sort parameters and paged responses shared by the list endpoints."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rfqhub.common.exceptions import ValidationError

T = TypeVar("T")


class PaginationParams:
    """Inject as a FastAPI dependency for any list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(20, ge=1, le=50, description="Items per page"),
        sort_by: str | None = Query(None, description="Column to sort by"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$", description="asc or desc"),
    ):
        self.page = page
        self.page_size = page_size
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: list[Any], total: int, params: PaginationParams, **extra: Any):
        return cls(
            items=items,
            total=total,
            page=params.page,
            page_size=params.page_size,
            total_pages=(total + params.page_size - 1) // params.page_size,
            **extra,
        )


def sort_column(model: Any, name: str):
    """The table column called ``name``; anything else is a 422."""
    columns = model.__table__.columns
    if name not in columns:
        raise ValidationError(f"Cannot sort by '{name}'")
    return columns[name]


async def paginate(
    db: AsyncSession,
    query: Select,
    params: PaginationParams,
    model: Any,
    default_sort: Any = None,
) -> tuple[list[Any], int]:
    """Apply sorting and paging to ``query`` and return (items, total_count)."""
    if params.sort_by:
        col = sort_column(model, params.sort_by)
        query = query.order_by(col.asc() if params.sort_order == "asc" else col.desc())
    elif default_sort is not None:
        query = query.order_by(default_sort)
    # Stable pages when the sort key ties
    query = query.order_by(model.__table__.c.id)

    count_q = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_q)).scalar() or 0

    query = query.offset(params.offset).limit(params.page_size)
    result = await db.execute(query)
    return list(result.scalars().all()), total
