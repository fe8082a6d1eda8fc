"""Attendance Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date as date_type, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.common.constants import AttendanceStatus


class AttendanceOverride(BaseModel):
    """HR correction of a single attendance record; omitted fields are kept."""

    status: Optional[AttendanceStatus] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_times(self) -> "AttendanceOverride":
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must be after check_in.")
        return self


class AttendanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    workspace_id: uuid.UUID
    date: date_type
    status: AttendanceStatus
    notes: Optional[str] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    is_override: bool
    override_by: Optional[uuid.UUID] = None
    marked_by: Optional[uuid.UUID] = None
    leave_request_id: Optional[uuid.UUID] = None
