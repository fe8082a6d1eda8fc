"""Leave service layer — category catalog, balance lookup, request queries.

Ledger mutations do not live here: they are performed by
:class:`leaveflow.hr.service.HrActionService`, which calls the loaders below
inside its own transaction.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.exceptions import DuplicateException, NotFoundException
from leaveflow.common.pagination import PaginatedResponse, PaginationParams, paginate
from leaveflow.leave import ledger
from leaveflow.leave.models import LeaveBalance, LeaveCategory, LeaveRequest
from leaveflow.leave.schemas import (
    LeaveBalanceOut,
    LeaveCategoryCreate,
    LeaveCategoryUpdate,
    LeaveRequestFilters,
    LeaveRequestOut,
)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave reads and catalog writes, always scoped to one workspace."""

    # ─────────────────────────────────────────────────────────────────
    # Catalog
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_category(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        category_id: uuid.UUID,
        *,
        active_only: bool = False,
    ) -> LeaveCategory:
        """Return the category, or 404 if absent or owned by another workspace."""
        query = select(LeaveCategory).where(
            LeaveCategory.id == category_id,
            LeaveCategory.workspace_id == workspace_id,
        )
        if active_only:
            query = query.where(LeaveCategory.is_active.is_(True))
        category = (await db.execute(query)).scalars().first()
        if category is None:
            raise NotFoundException("LeaveCategory", str(category_id))
        return category

    @staticmethod
    async def create_category(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        data: LeaveCategoryCreate,
    ) -> LeaveCategory:
        code = data.code.strip().upper()
        existing = await db.execute(
            select(LeaveCategory.id).where(
                LeaveCategory.workspace_id == workspace_id,
                LeaveCategory.code == code,
            )
        )
        if existing.scalar() is not None:
            raise DuplicateException("code", code)

        category = LeaveCategory(
            workspace_id=workspace_id,
            code=code,
            name=data.name,
            description=data.description,
            color=data.color,
            annual_quota=data.annual_quota,
            carry_forward_allowed=data.carry_forward_allowed,
            max_carry_forward=data.max_carry_forward,
            is_active=True,
        )
        db.add(category)
        await db.flush()
        return category

    @staticmethod
    async def update_category(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        category_id: uuid.UUID,
        data: LeaveCategoryUpdate,
    ) -> LeaveCategory:
        category = await LeaveService.get_category(db, workspace_id, category_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(category, field, value)
        await db.flush()
        return category

    @staticmethod
    async def list_categories(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        *,
        is_active: Optional[bool] = True,
    ) -> Sequence[LeaveCategory]:
        """List a workspace's categories; ``is_active=None`` returns all."""
        query = select(LeaveCategory).where(LeaveCategory.workspace_id == workspace_id)
        if is_active is not None:
            query = query.where(LeaveCategory.is_active.is_(is_active))
        result = await db.execute(query.order_by(LeaveCategory.code))
        return result.scalars().all()

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        user_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
        *,
        for_update: bool = False,
    ) -> Optional[LeaveBalance]:
        query = select(LeaveBalance).where(
            LeaveBalance.user_id == user_id,
            LeaveBalance.category_id == category_id,
            LeaveBalance.year == year,
        )
        if for_update:
            query = query.with_for_update()
        return (await db.execute(query)).scalars().first()

    @staticmethod
    async def get_or_create_balance(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        category: LeaveCategory,
        year: int,
    ) -> LeaveBalance:
        """Load the balance for the key, lazily initializing it from the quota.

        A concurrent insert of the same key trips the unique constraint at
        flush time, which the transaction helper reports as a conflict.
        """
        balance = await LeaveService.get_balance(
            db, user_id, category.id, year, for_update=True,
        )
        if balance is not None:
            return balance

        balance = ledger.new_balance(
            user_id=user_id,
            workspace_id=category.workspace_id,
            category_id=category.id,
            year=year,
            annual_quota=category.annual_quota,
        )
        db.add(balance)
        await db.flush()
        return balance

    @staticmethod
    async def list_balances(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        params: PaginationParams,
        *,
        user_id: Optional[uuid.UUID] = None,
        year: Optional[int] = None,
    ) -> PaginatedResponse[LeaveBalanceOut]:
        query = select(LeaveBalance).where(LeaveBalance.workspace_id == workspace_id)
        if user_id is not None:
            query = query.where(LeaveBalance.user_id == user_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        query = query.order_by(LeaveBalance.year.desc(), LeaveBalance.user_id)

        page = await paginate(db, query, params, model=LeaveBalance)
        return PaginatedResponse[LeaveBalanceOut](
            data=[LeaveBalanceOut.model_validate(b) for b in page.data],
            meta=page.meta,
        )

    # ─────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
    ) -> LeaveRequest:
        """Return the request, or 404 if absent or owned by another workspace."""
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.id == request_id,
                LeaveRequest.workspace_id == workspace_id,
            )
        )
        request = result.scalars().first()
        if request is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return request

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        params: PaginationParams,
        filters: Optional[LeaveRequestFilters] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        query = select(LeaveRequest).where(LeaveRequest.workspace_id == workspace_id)
        if filters is not None:
            if filters.user_id is not None:
                query = query.where(LeaveRequest.user_id == filters.user_id)
            if filters.category_id is not None:
                query = query.where(LeaveRequest.category_id == filters.category_id)
            if filters.status is not None:
                query = query.where(LeaveRequest.status == filters.status)
            if filters.year is not None:
                query = query.where(
                    LeaveRequest.start_date >= date(filters.year, 1, 1),
                    LeaveRequest.start_date <= date(filters.year, 12, 31),
                )
        query = query.order_by(LeaveRequest.created_at.desc())

        page = await paginate(db, query, params, model=LeaveRequest)
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in page.data],
            meta=page.meta,
        )
