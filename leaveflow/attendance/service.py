"""Attendance side effects of leave, plus HR overrides.

Check-in / check-out capture is handled elsewhere; this module only writes the
fields leave and HR corrections own, and leaves every other column of an
existing row as it was.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.attendance.models import AttendanceRecord
from leaveflow.attendance.schemas import AttendanceOverride
from leaveflow.common.constants import AttendanceStatus, LeaveTimePeriod
from leaveflow.common.exceptions import NotFoundException
from leaveflow.leave.models import LeaveRequest
from leaveflow.leave.workflow import iter_dates


def leave_note(category_name: str, reason: str) -> str:
    return f"Leave: {category_name} - {reason}"


class AttendanceService:

    @staticmethod
    async def get_record(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        record_id: uuid.UUID,
    ) -> AttendanceRecord:
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.id == record_id,
                AttendanceRecord.workspace_id == workspace_id,
            )
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("AttendanceRecord", str(record_id))
        return record

    @staticmethod
    async def upsert_leave_days(
        db: AsyncSession,
        request: LeaveRequest,
        *,
        category_name: str,
        marked_by: uuid.UUID,
        time_period: Optional[LeaveTimePeriod] = None,
    ) -> list[AttendanceRecord]:
        """Mark every date of *request* as leave (or half day).

        Existing rows only get status, notes, marked_by and leave_request_id
        rewritten; check-in/out and override flags are preserved.
        """
        period = time_period or request.time_period
        status = (
            AttendanceStatus.half_day
            if period == LeaveTimePeriod.half_day
            else AttendanceStatus.leave
        )
        note = leave_note(category_name, request.reason)

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.user_id == request.user_id,
                AttendanceRecord.date >= request.start_date,
                AttendanceRecord.date <= request.end_date,
            )
        )
        existing = {r.date: r for r in result.scalars().all()}

        records: list[AttendanceRecord] = []
        for day in iter_dates(request.start_date, request.end_date):
            record = existing.get(day)
            if record is None:
                record = AttendanceRecord(
                    user_id=request.user_id,
                    workspace_id=request.workspace_id,
                    date=day,
                    is_override=False,
                )
                db.add(record)
            record.status = status
            record.notes = note
            record.marked_by = marked_by
            record.leave_request_id = request.id
            records.append(record)

        await db.flush()
        return records

    @staticmethod
    def apply_override(
        record: AttendanceRecord,
        data: AttendanceOverride,
        actor_id: uuid.UUID,
    ) -> AttendanceRecord:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(record, field, value)
        record.is_override = True
        record.override_by = actor_id
        return record
