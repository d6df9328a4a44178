"""
Paging, search and sort helpers shared by every list endpoint.

Sorting is restricted to a per-endpoint allow-list keyed by the wire field
name (matched case-insensitively); the primary key is always appended as a
tie-breaker so pages stay stable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from fastapi import Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from orglicense_shared.schemas.common import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PagedResponse,
    PaginationRequest,
)

T = TypeVar("T")
R = TypeVar("R")


def pagination_params(
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, alias="pageSize"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_descending: bool = Query(False, alias="sortDescending"),
    search: Optional[str] = Query(None, max_length=200),
) -> PaginationRequest:
    """FastAPI dependency collecting the uniform list query parameters."""
    return PaginationRequest(
        page=page,
        page_size=min(page_size, MAX_PAGE_SIZE),
        sort_by=sort_by,
        sort_descending=sort_descending,
        search=search,
    )


def search_pattern(pagination: PaginationRequest) -> Optional[str]:
    """Lower-cased LIKE pattern for the search term, or None when blank."""
    if pagination.search is None:
        return None
    term = pagination.search.strip().lower()
    if not term:
        return None
    return f"%{term}%"


@dataclass
class Page(Generic[T]):
    items: Sequence[T]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    def to_response(self, mapper: Optional[Callable[[T], R]] = None) -> PagedResponse:
        items = [mapper(item) for item in self.items] if mapper else list(self.items)
        return PagedResponse(
            items=items,
            page=self.page,
            page_size=self.page_size,
            total_count=self.total_count,
            total_pages=self.total_pages,
            has_previous_page=self.page > 1,
            has_next_page=self.page < self.total_pages,
        )


async def paginate(
    session: AsyncSession,
    stmt: Select,
    pagination: PaginationRequest,
    *,
    sort_fields: dict[str, Any],
    default_sort: str,
    tiebreaker: Any,
    scalars: bool = False,
) -> Page:
    """Count, order and slice ``stmt`` according to ``pagination``.

    ``sort_fields`` maps lower-cased wire names to column expressions; an
    unknown ``sortBy`` falls back to ``default_sort``.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await session.execute(count_stmt)).scalar_one()

    key = (pagination.sort_by or "").strip().lower()
    column = sort_fields.get(key, sort_fields[default_sort.lower()])
    if pagination.sort_descending:
        ordered = stmt.order_by(column.desc(), tiebreaker.desc())
    else:
        ordered = stmt.order_by(column.asc(), tiebreaker.asc())

    result = await session.execute(
        ordered.offset(pagination.offset).limit(pagination.page_size)
    )
    rows = result.scalars().all() if scalars else result.all()
    return Page(
        items=rows,
        page=pagination.page,
        page_size=pagination.page_size,
        total_count=total,
    )
