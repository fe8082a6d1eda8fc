"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → inputs (write)
  - *Out                          → outputs (read)

Cross-field business rules (date order, half-day multiples, reason required)
are enforced by :mod:`leaveflow.leave.workflow` so they surface as
``ValidationException`` regardless of how the input was built.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leaveflow.common.constants import LeaveStatus, LeaveTimePeriod
from leaveflow.config import settings


# ═════════════════════════════════════════════════════════════════════
# Leave Category
# ═════════════════════════════════════════════════════════════════════


class LeaveCategoryCreate(BaseModel):
    """Payload for creating a leave category in a workspace."""

    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=10)
    annual_quota: Decimal = Field(
        default_factory=lambda: Decimal(settings.DEFAULT_ANNUAL_QUOTA), ge=0,
    )
    carry_forward_allowed: bool = False
    max_carry_forward: Decimal = Field(default=Decimal("0"), ge=0)
    color: str = Field(default="#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class LeaveCategoryUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    annual_quota: Optional[Decimal] = Field(None, ge=0)
    carry_forward_allowed: Optional[bool] = None
    max_carry_forward: Optional[Decimal] = Field(None, ge=0)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator(
        "name", "annual_quota", "carry_forward_allowed", "max_carry_forward",
        "color", "is_active",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("May be omitted but not null.")
        return v


class LeaveCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    workspace_id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    color: str
    annual_quota: Decimal
    carry_forward_allowed: bool
    max_carry_forward: Decimal
    is_active: bool


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    workspace_id: uuid.UUID
    category_id: uuid.UUID
    year: int
    total_quota: Decimal
    used: Decimal
    pending: Decimal
    carried_forward: Decimal
    available: Decimal
    version: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for an employee applying for leave."""

    category_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    days: Decimal = Field(..., description="Leave days; multiples of 0.5")
    reason: str = Field(..., max_length=1000)
    time_period: LeaveTimePeriod = LeaveTimePeriod.full_day


class BulkMarkRequest(BaseModel):
    """Payload for HR marking leave on behalf of an employee."""

    user_id: uuid.UUID
    category_id: uuid.UUID
    start_date: date
    end_date: date
    days: Decimal
    reason: str = Field(..., max_length=1000)
    status: Literal[LeaveStatus.approved, LeaveStatus.pending] = LeaveStatus.approved
    time_period: LeaveTimePeriod = LeaveTimePeriod.full_day


class LeaveRequestOut(BaseModel):
    """Full leave request representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    workspace_id: uuid.UUID
    category_id: uuid.UUID
    start_date: date
    end_date: date
    days: Decimal
    reason: str
    status: LeaveStatus
    time_period: LeaveTimePeriod
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    hr_notes: Optional[str] = None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


class LeaveRequestFilters(BaseModel):
    """Optional filters for listing requests in a workspace."""

    user_id: Optional[uuid.UUID] = None
    category_id: Optional[uuid.UUID] = None
    status: Optional[LeaveStatus] = None
    year: Optional[int] = None
