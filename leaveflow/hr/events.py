"""Typed HR domain events: kinds, payload shapes and template mapping.

Both lookup tables must cover every :class:`HrEventType`; this is checked
when the module is imported, so a missing entry stops the process at startup
instead of failing on the first delivery.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date as date_type, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, SerializeAsAny

from leaveflow.common.constants import (
    AttendanceStatus,
    EmploymentStatus,
    LeaveStatus,
)


class HrEventType(str, enum.Enum):
    leave_requested = "LEAVE_REQUESTED"
    leave_approved = "LEAVE_APPROVED"
    leave_rejected = "LEAVE_REJECTED"
    leave_cancelled = "LEAVE_CANCELLED"
    leave_marked = "LEAVE_MARKED"
    employee_activated = "EMPLOYEE_ACTIVATED"
    employee_deactivated = "EMPLOYEE_DEACTIVATED"
    attendance_overridden = "ATTENDANCE_OVERRIDDEN"
    carry_forward_applied = "CARRY_FORWARD_APPLIED"


# ── Payloads ────────────────────────────────────────────────────────

class EventSubject(BaseModel):
    """The employee an event is about; every payload carries these."""

    subject_user_id: uuid.UUID
    subject_email: str
    subject_name: str


class LeaveEventPayload(EventSubject):
    leave_id: uuid.UUID
    category_code: str
    start_date: date_type
    end_date: date_type
    days: Decimal
    status: LeaveStatus


class LeaveRejectedPayload(LeaveEventPayload):
    reason: str


class EmployeeStatusPayload(EventSubject):
    employment_status: EmploymentStatus


class AttendanceOverriddenPayload(EventSubject):
    attendance_id: uuid.UUID
    date: date_type
    status: AttendanceStatus


class CarryForwardPayload(EventSubject):
    category_code: str
    year: int
    carried_forward: Decimal


# ── Lookup tables ───────────────────────────────────────────────────

EVENT_TEMPLATE_MAP: dict[HrEventType, str] = {
    HrEventType.leave_requested: "LEAVE_REQUESTED",
    HrEventType.leave_approved: "LEAVE_APPROVED",
    HrEventType.leave_rejected: "LEAVE_REJECTED",
    HrEventType.leave_cancelled: "LEAVE_CANCELLED",
    HrEventType.leave_marked: "LEAVE_MARKED",
    HrEventType.employee_activated: "EMPLOYEE_ACTIVATED",
    HrEventType.employee_deactivated: "EMPLOYEE_DEACTIVATED",
    HrEventType.attendance_overridden: "ATTENDANCE_REMINDER",
    HrEventType.carry_forward_applied: "LEAVE_CARRY_FORWARD",
}

EVENT_PAYLOADS: dict[HrEventType, type[EventSubject]] = {
    HrEventType.leave_requested: LeaveEventPayload,
    HrEventType.leave_approved: LeaveEventPayload,
    HrEventType.leave_rejected: LeaveRejectedPayload,
    HrEventType.leave_cancelled: LeaveEventPayload,
    HrEventType.leave_marked: LeaveEventPayload,
    HrEventType.employee_activated: EmployeeStatusPayload,
    HrEventType.employee_deactivated: EmployeeStatusPayload,
    HrEventType.attendance_overridden: AttendanceOverriddenPayload,
    HrEventType.carry_forward_applied: CarryForwardPayload,
}


def validate_event_maps(
    template_map: Mapping[HrEventType, str],
    payload_map: Mapping[HrEventType, type[EventSubject]],
) -> None:
    """Raise ``RuntimeError`` unless both maps cover every event kind."""
    problems: list[str] = []
    for kind in HrEventType:
        if not template_map.get(kind):
            problems.append(f"{kind.value}: no template")
        if kind not in payload_map:
            problems.append(f"{kind.value}: no payload schema")
    if problems:
        raise RuntimeError("Incomplete HR event mapping: " + "; ".join(problems))


validate_event_maps(EVENT_TEMPLATE_MAP, EVENT_PAYLOADS)


# ── Event envelope ──────────────────────────────────────────────────

class HrEvent(BaseModel):
    type: HrEventType
    workspace_id: uuid.UUID
    payload: SerializeAsAny[EventSubject]
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def template_code(self) -> str:
        return EVENT_TEMPLATE_MAP[self.type]

    def payload_dict(self) -> dict[str, Any]:
        return self.payload.model_dump(mode="json")


def build_event(
    event_type: HrEventType,
    workspace_id: uuid.UUID,
    **fields: Any,
) -> HrEvent:
    """Validate *fields* against the payload schema for *event_type*."""
    payload = EVENT_PAYLOADS[event_type](**fields)
    return HrEvent(type=event_type, workspace_id=workspace_id, payload=payload)


def template_for(event_type: HrEventType) -> Optional[str]:
    return EVENT_TEMPLATE_MAP.get(event_type)
