"""Generic pagination utilities for SQLAlchemy async queries."""


import math
from typing import Any, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from leaveflow.common.exceptions import ValidationException

T = TypeVar("T")


# ── Request parameters ──────────────────────────────────────────────

class PaginationParams:
    """Page / page-size / sort triple passed to list operations.

    ``sort`` names a mapped column; prefix "-" for DESC (e.g. "-start_date").
    """

    def __init__(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: Optional[str] = None,
    ) -> None:
        errors: dict[str, list[str]] = {}
        if page < 1:
            errors["page"] = ["Must be at least 1."]
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            errors["page_size"] = [f"Must be between 1 and {MAX_PAGE_SIZE}."]
        if errors:
            raise ValidationException(errors)
        self.page = page
        self.page_size = page_size
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


# ── Pydantic response models ───────────────────────────────────────

class PaginationMeta(BaseModel):
    """Metadata block embedded in every paginated response."""

    page: int
    page_size: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard envelope: ``{"data": [...], "meta": {...}}``."""

    data: Sequence[T]
    meta: PaginationMeta


# ── SQLAlchemy helper ───────────────────────────────────────────────

async def paginate(
    session: AsyncSession,
    query: Select,
    params: PaginationParams,
    *,
    model: Any,
) -> PaginatedResponse:
    """
    Execute *query* with LIMIT/OFFSET derived from *params* and return
    a ``PaginatedResponse`` with data + meta.

    Sort names must be mapped columns of *model*; anything else is
    rejected instead of being interpolated into SQL.
    """
    # ── sorting ─────────────────────────────────────────────────────
    if params.sort:
        descending = params.sort.startswith("-")
        col_name = params.sort.lstrip("-")
        if col_name not in inspect(model).columns:
            raise ValidationException({"sort": [f"Unknown sort field '{col_name}'."]})
        col = getattr(model, col_name)
        query = query.order_by(None).order_by(col.desc() if descending else col.asc())

    # ── total count (strip ORDER BY for efficiency) ─────────────────
    count_q = query.with_only_columns(
        func.count(), maintain_column_froms=True,
    ).order_by(None)
    total: int = (await session.execute(count_q)).scalar_one()

    # ── paginated rows ──────────────────────────────────────────────
    rows = (
        await session.execute(
            query.offset(params.offset).limit(params.page_size)
        )
    ).scalars().all()

    total_pages = math.ceil(total / params.page_size) if total else 0

    return PaginatedResponse(
        data=rows,
        meta=PaginationMeta(
            page=params.page,
            page_size=params.page_size,
            total=total,
            total_pages=total_pages,
            has_next=params.page < total_pages,
            has_prev=params.page > 1,
        ),
    )
