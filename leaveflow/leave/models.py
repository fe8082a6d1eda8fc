"""Leave ORM models: LeaveCategory, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leaveflow.common.constants import LeaveStatus, LeaveTimePeriod
from leaveflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveCategory(Base):
    __tablename__ = "leave_categories"
    __table_args__ = (
        sa.UniqueConstraint("workspace_id", "code", name="uq_leave_category_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    color: Mapped[str] = mapped_column(sa.String(7), default="#3B82F6", nullable=False)
    annual_quota: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("12"), nullable=False
    )
    carry_forward_allowed: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, nullable=False
    )
    max_carry_forward: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<LeaveCategory {self.code} ws={self.workspace_id}>"


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "user_id", "category_id", "year", name="uq_leave_balance"
        ),
        sa.CheckConstraint(
            "total_quota >= 0 AND used >= 0 AND pending >= 0 "
            "AND carried_forward >= 0 AND available >= 0",
            name="ck_leave_balance_non_negative",
        ),
        sa.CheckConstraint(
            "used + pending <= total_quota",
            name="ck_leave_balance_within_quota",
        ),
        sa.CheckConstraint(
            "available = total_quota - used - pending",
            name="ck_leave_balance_available",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_categories.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    total_quota: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    used: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    pending: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    carried_forward: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    # Stored for querying; always written by ledger.recompute_available()
    available: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), nullable=False
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def key(self) -> tuple[uuid.UUID, uuid.UUID, int]:
        return (self.user_id, self.category_id, self.year)

    def __repr__(self) -> str:
        return (
            f"<LeaveBalance {self.user_id}/{self.category_id}/{self.year} "
            f"total={self.total_quota} used={self.used} pending={self.pending}>"
        )


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.CheckConstraint("days > 0", name="ck_leave_request_days_positive"),
        sa.Index("ix_leave_requests_workspace_status", "workspace_id", "status"),
        sa.Index("ix_leave_requests_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_categories.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    time_period: Mapped[LeaveTimePeriod] = mapped_column(
        sa.Enum(LeaveTimePeriod, name="leave_time_period"),
        nullable=False,
        default=LeaveTimePeriod.full_day,
    )
    # Resolver of the terminal transition (approve or reject)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    hr_notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def balance_year(self) -> int:
        """Year of the balance this request reserves against."""
        return self.start_date.year

    @property
    def balance_key(self) -> tuple[uuid.UUID, uuid.UUID, int]:
        return (self.user_id, self.category_id, self.balance_year)

    @property
    def is_terminal(self) -> bool:
        return self.status != LeaveStatus.pending

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.id} {self.status.value} "
            f"{self.start_date}..{self.end_date} ({self.days}d)>"
        )
