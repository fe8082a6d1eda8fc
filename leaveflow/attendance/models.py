"""Attendance ORM model."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leaveflow.common.constants import AttendanceStatus
from leaveflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
        sa.Index("ix_attendance_workspace_date", "workspace_id", "date"),
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
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status"),
        nullable=False,
        default=AttendanceStatus.absent,
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    check_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    check_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    is_override: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    override_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    marked_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    leave_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_requests.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<AttendanceRecord {self.user_id} {self.date} {self.status.value}>"
