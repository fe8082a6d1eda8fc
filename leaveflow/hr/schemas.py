"""HR action Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from leaveflow.common.constants import EmploymentStatus
from leaveflow.hr.events import HrEvent
from leaveflow.hr.interfaces import DeliveryResult


class EmployeeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    full_name: str
    employment_status: EmploymentStatus


class CarryForwardOut(BaseModel):
    user_id: uuid.UUID
    category_id: uuid.UUID
    from_year: int
    to_year: int
    carried_forward: Decimal
    total_quota: Decimal


class RecalculationOut(BaseModel):
    category_id: uuid.UUID
    year: int
    updated: int


class ActionResult(BaseModel):
    """What every HR action returns: the domain event, the data, delivery status."""

    event: Optional[HrEvent] = None
    data: Any = None
    delivery: Optional[DeliveryResult] = None
