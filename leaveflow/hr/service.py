"""HR Action Service — the single gateway for every ledger mutation.

Each operation follows the same steps:
  1. authorize the actor against the targeted workspace (Tenancy)
  2. check the subject's employment status where the action requires it
  3. apply transition + ledger + attendance writes in one transaction,
     holding the per-key lock for the affected balance
  4. after commit: request an audit write (best-effort)
  5. build the typed event, hand it to the dispatcher (best-effort), return

Anything failing in 1-3 raises a typed ``AppException`` and nothing is
written. Failures in 4-5 are logged and never undo the committed mutation.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import AsyncExitStack
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaveflow.attendance.schemas import AttendanceOverride, AttendanceRecordOut
from leaveflow.attendance.service import AttendanceService
from leaveflow.common.constants import EmploymentStatus, LeaveStatus, LeaveTimePeriod
from leaveflow.common.exceptions import (
    InvalidEmployeeStateException,
    LedgerInvariantError,
    NotFoundException,
    ValidationException,
)
from leaveflow.common.locks import KeyedLock
from leaveflow.database import transaction
from leaveflow.hr.events import HrEvent, HrEventType, build_event
from leaveflow.hr.interfaces import (
    AuditLog,
    DatabaseAuditLog,
    DatabaseEmploymentDirectory,
    DeliveryResult,
    EmploymentDirectory,
    EventDispatcher,
)
from leaveflow.hr.schemas import (
    ActionResult,
    CarryForwardOut,
    EmployeeOut,
    RecalculationOut,
)
from leaveflow.leave import ledger, workflow
from leaveflow.leave.models import LeaveBalance, LeaveCategory, LeaveRequest
from leaveflow.leave.schemas import (
    BulkMarkRequest,
    LeaveCategoryCreate,
    LeaveCategoryOut,
    LeaveCategoryUpdate,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from leaveflow.leave.service import LeaveService
from leaveflow.tenancy.models import User
from leaveflow.tenancy.service import AccessContext, TenancyService, require_leave_module

logger = logging.getLogger(__name__)

BalanceKey = tuple[uuid.UUID, uuid.UUID, int]


def _leave_event(
    event_type: HrEventType,
    request: LeaveRequest,
    subject: User,
    category: LeaveCategory,
    **extra: Any,
) -> HrEvent:
    return build_event(
        event_type,
        request.workspace_id,
        subject_user_id=subject.id,
        subject_email=subject.email,
        subject_name=subject.full_name,
        leave_id=request.id,
        category_code=category.code,
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        status=request.status,
        **extra,
    )


def _leave_details(request: LeaveRequest, category: LeaveCategory, **extra: Any) -> dict:
    details = {
        "category": category.code,
        "days": str(request.days),
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat(),
        "status": request.status.value,
    }
    details.update(extra)
    return details


# ═════════════════════════════════════════════════════════════════════
# HrActionService
# ═════════════════════════════════════════════════════════════════════


class HrActionService:
    """Validates permissions and employee state, mutates, audits, emits."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit_log: Optional[AuditLog] = None,
        dispatcher: Optional[EventDispatcher] = None,
        directory: Optional[EmploymentDirectory] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._session_factory = session_factory
        self._audit_log = audit_log or DatabaseAuditLog(session_factory)
        self._dispatcher = dispatcher
        self._directory = directory or DatabaseEmploymentDirectory(session_factory)
        self._locks = locks or KeyedLock()

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _authorize(
        db: AsyncSession,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        *,
        require_hr: bool = False,
        leave_module: bool = False,
    ) -> AccessContext:
        ctx = await TenancyService.get_access_context(
            db, actor_id, workspace_id, require_hr=require_hr,
        )
        if leave_module:
            require_leave_module(ctx)
        return ctx

    async def _require_active(self, user_id: uuid.UUID) -> None:
        status = await self._directory.get_employment_status(user_id)
        if status != EmploymentStatus.active:
            raise InvalidEmployeeStateException(
                user_id, status.value, EmploymentStatus.active.value,
            )

    async def _peek_request_key(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        require_hr: bool,
        leave_module: bool,
    ) -> BalanceKey:
        """Authorize, then learn which balance a request reserves against."""
        async with self._session_factory() as db:
            await self._authorize(
                db, actor_id, workspace_id,
                require_hr=require_hr, leave_module=leave_module,
            )
            request = await LeaveService.get_request(db, workspace_id, request_id)
            return request.balance_key

    @staticmethod
    async def _load_reserved_balance(
        db: AsyncSession,
        request: LeaveRequest,
    ) -> LeaveBalance:
        balance = await LeaveService.get_balance(db, *request.balance_key, for_update=True)
        if balance is None:
            raise LedgerInvariantError(
                f"No balance holds the reservation of leave request '{request.id}'."
            )
        return balance

    async def _finish(
        self,
        *,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        details: Optional[dict[str, Any]],
        source_ip: Optional[str],
        data: Any,
        event: Optional[HrEvent] = None,
    ) -> ActionResult:
        """Post-commit steps; nothing here may undo the committed change."""
        try:
            await self._audit_log.record(
                actor_id, workspace_id, action, entity_type, entity_id, details, source_ip,
            )
        except Exception:
            logger.exception(
                "Audit write failed for %s %s/%s", action, entity_type, entity_id,
            )

        delivery: Optional[DeliveryResult] = None
        if event is not None and self._dispatcher is not None:
            try:
                delivery = await self._dispatcher.handle(
                    event.type, event.payload_dict(), workspace_id,
                )
            except Exception:
                logger.exception("Event dispatch failed for %s", event.type.value)
                delivery = DeliveryResult(
                    success=False,
                    event=event.type,
                    template_code=event.template_code,
                    reason="Dispatch failed",
                )

        return ActionResult(event=event, data=data, delivery=delivery)

    # ─────────────────────────────────────────────────────────────────
    # Create / Cancel (employee actions)
    # ─────────────────────────────────────────────────────────────────

    async def create_leave(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Apply for leave: reserve the days and insert a pending request."""
        key = (actor_id, data.category_id, data.start_date.year)

        async with self._locks.hold(key):
            async with transaction(self._session_factory) as db:
                ctx = await self._authorize(db, actor_id, workspace_id, leave_module=True)
                await self._require_active(actor_id)
                days = workflow.validate_request_input(
                    data.start_date, data.end_date, data.days, data.reason,
                )

                category = await LeaveService.get_category(
                    db, workspace_id, data.category_id, active_only=True,
                )
                balance = await LeaveService.get_or_create_balance(
                    db, user_id=actor_id, category=category, year=data.start_date.year,
                )
                request = workflow.create_request(
                    balance,
                    category,
                    user_id=actor_id,
                    created_by=actor_id,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    days=days,
                    reason=data.reason,
                    time_period=data.time_period,
                )
                db.add(request)
                await db.flush()

                event = _leave_event(HrEventType.leave_requested, request, ctx.user, category)
                out = LeaveRequestOut.model_validate(request)
                details = _leave_details(request, category)

        logger.info("Leave %s requested by %s (%s days)", out.id, actor_id, out.days)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="create",
            entity_type="leave_request",
            entity_id=out.id,
            details=details,
            source_ip=source_ip,
            data=out,
            event=event,
        )

    async def cancel_leave(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Withdraw one's own pending request and release the reservation."""
        key = await self._peek_request_key(
            actor_id, workspace_id, request_id, require_hr=False, leave_module=True,
        )

        async with self._locks.hold(key):
            async with transaction(self._session_factory) as db:
                ctx = await self._authorize(db, actor_id, workspace_id, leave_module=True)
                request = await LeaveService.get_request(db, workspace_id, request_id)
                balance = await self._load_reserved_balance(db, request)
                workflow.cancel(request, balance, actor_id)
                await db.flush()

                category = await LeaveService.get_category(db, workspace_id, request.category_id)
                event = _leave_event(HrEventType.leave_cancelled, request, ctx.user, category)
                out = LeaveRequestOut.model_validate(request)
                details = _leave_details(request, category)

        logger.info("Leave %s cancelled by %s", out.id, actor_id)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="cancel",
            entity_type="leave_request",
            entity_id=out.id,
            details=details,
            source_ip=source_ip,
            data=out,
            event=event,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject (HR actions)
    # ─────────────────────────────────────────────────────────────────

    async def approve_leave(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
        *,
        time_period: Optional[LeaveTimePeriod] = None,
        hr_notes: Optional[str] = None,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Approve a pending request: pending -> used, then mark attendance."""
        key = await self._peek_request_key(
            actor_id, workspace_id, request_id, require_hr=True, leave_module=True,
        )

        async with self._locks.hold(key):
            async with transaction(self._session_factory) as db:
                await self._authorize(
                    db, actor_id, workspace_id, require_hr=True, leave_module=True,
                )
                request = await LeaveService.get_request(db, workspace_id, request_id)
                workflow.ensure_transition(request, LeaveStatus.approved)
                await self._require_active(request.user_id)

                balance = await self._load_reserved_balance(db, request)
                workflow.approve(request, balance, actor_id)
                if hr_notes is not None:
                    request.hr_notes = hr_notes

                category = await LeaveService.get_category(db, workspace_id, request.category_id)
                records = await AttendanceService.upsert_leave_days(
                    db,
                    request,
                    category_name=category.name,
                    marked_by=actor_id,
                    time_period=time_period,
                )
                await db.flush()

                subject = await TenancyService.get_user(db, request.user_id)
                event = _leave_event(HrEventType.leave_approved, request, subject, category)
                out = LeaveRequestOut.model_validate(request)
                details = _leave_details(
                    request, category, attendance_records=len(records),
                )

        logger.info("Leave %s approved by %s", out.id, actor_id)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="approve",
            entity_type="leave_request",
            entity_id=out.id,
            details=details,
            source_ip=source_ip,
            data=out,
            event=event,
        )

    async def reject_leave(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
        reason: str,
        *,
        hr_notes: Optional[str] = None,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Reject a pending request and release its reservation."""
        key = await self._peek_request_key(
            actor_id, workspace_id, request_id, require_hr=True, leave_module=True,
        )

        async with self._locks.hold(key):
            async with transaction(self._session_factory) as db:
                await self._authorize(
                    db, actor_id, workspace_id, require_hr=True, leave_module=True,
                )
                request = await LeaveService.get_request(db, workspace_id, request_id)
                workflow.ensure_transition(request, LeaveStatus.rejected)
                await self._require_active(request.user_id)

                balance = await self._load_reserved_balance(db, request)
                workflow.reject(request, balance, actor_id, reason)
                if hr_notes is not None:
                    request.hr_notes = hr_notes
                await db.flush()

                category = await LeaveService.get_category(db, workspace_id, request.category_id)
                subject = await TenancyService.get_user(db, request.user_id)
                event = _leave_event(
                    HrEventType.leave_rejected, request, subject, category,
                    reason=request.rejection_reason,
                )
                out = LeaveRequestOut.model_validate(request)
                details = _leave_details(request, category, reason=request.rejection_reason)

        logger.info("Leave %s rejected by %s", out.id, actor_id)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="reject",
            entity_type="leave_request",
            entity_id=out.id,
            details=details,
            source_ip=source_ip,
            data=out,
            event=event,
        )

    # ─────────────────────────────────────────────────────────────────
    # Bulk mark (HR on behalf of an employee)
    # ─────────────────────────────────────────────────────────────────

    async def bulk_mark_leave(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        data: BulkMarkRequest,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Record leave for an employee, approved immediately by default.

        The approved path still goes reserve -> commit so the ledger sees the
        same movements as a normal request followed by an approval.
        """
        key = (data.user_id, data.category_id, data.start_date.year)

        async with self._locks.hold(key):
            async with transaction(self._session_factory) as db:
                await self._authorize(
                    db, actor_id, workspace_id, require_hr=True, leave_module=True,
                )
                subject = await db.get(User, data.user_id)
                if subject is None or subject.membership_for(workspace_id) is None:
                    raise NotFoundException("User", str(data.user_id))
                await self._require_active(data.user_id)
                days = workflow.validate_request_input(
                    data.start_date, data.end_date, data.days, data.reason,
                )

                category = await LeaveService.get_category(
                    db, workspace_id, data.category_id, active_only=True,
                )
                balance = await LeaveService.get_or_create_balance(
                    db, user_id=data.user_id, category=category, year=data.start_date.year,
                )
                request = workflow.create_request(
                    balance,
                    category,
                    user_id=data.user_id,
                    created_by=actor_id,
                    start_date=data.start_date,
                    end_date=data.end_date,
                    days=days,
                    reason=data.reason,
                    time_period=data.time_period,
                )
                db.add(request)

                attendance_count = 0
                if data.status == LeaveStatus.approved:
                    workflow.approve(request, balance, actor_id)
                    await db.flush()
                    records = await AttendanceService.upsert_leave_days(
                        db,
                        request,
                        category_name=category.name,
                        marked_by=actor_id,
                    )
                    attendance_count = len(records)
                await db.flush()

                event = _leave_event(HrEventType.leave_marked, request, subject, category)
                out = LeaveRequestOut.model_validate(request)
                details = _leave_details(
                    request,
                    category,
                    time_period=data.time_period.value,
                    marked_for=str(data.user_id),
                    attendance_records=attendance_count,
                )

        logger.info(
            "Leave %s marked for %s by %s (%s)", out.id, data.user_id, actor_id, out.status.value,
        )
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="create",
            entity_type="leave_request",
            entity_id=out.id,
            details=details,
            source_ip=source_ip,
            data=out,
            event=event,
        )

    # ─────────────────────────────────────────────────────────────────
    # HR notes
    # ─────────────────────────────────────────────────────────────────

    async def update_hr_notes(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        request_id: uuid.UUID,
        notes: Optional[str],
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Annotate a request in any state; only ``hr_notes`` changes."""
        async with transaction(self._session_factory) as db:
            await self._authorize(db, actor_id, workspace_id, require_hr=True)
            request = await LeaveService.get_request(db, workspace_id, request_id)
            request.hr_notes = notes
            await db.flush()
            out = LeaveRequestOut.model_validate(request)

        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="update_notes",
            entity_type="leave_request",
            entity_id=out.id,
            details={"hr_notes": notes},
            source_ip=source_ip,
            data=out,
        )

    # ─────────────────────────────────────────────────────────────────
    # Employee lifecycle
    # ─────────────────────────────────────────────────────────────────

    async def _set_employment_status(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        status: EmploymentStatus,
        event_type: HrEventType,
        action: str,
        source_ip: Optional[str],
    ) -> ActionResult:
        async with transaction(self._session_factory) as db:
            await self._authorize(db, actor_id, workspace_id, require_hr=True)
            subject = await db.get(User, user_id)
            if subject is None or subject.membership_for(workspace_id, active_only=False) is None:
                raise NotFoundException("User", str(user_id))

            previous = subject.employment_status
            subject.employment_status = status
            await db.flush()

            event = build_event(
                event_type,
                workspace_id,
                subject_user_id=subject.id,
                subject_email=subject.email,
                subject_name=subject.full_name,
                employment_status=status,
            )
            out = EmployeeOut.model_validate(subject)

        logger.info("Employee %s %s by %s", user_id, action, actor_id)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action=action,
            entity_type="user",
            entity_id=user_id,
            details={"from": previous.value, "to": status.value},
            source_ip=source_ip,
            data=out,
            event=event,
        )

    async def activate_employee(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        return await self._set_employment_status(
            actor_id, workspace_id, user_id,
            EmploymentStatus.active, HrEventType.employee_activated, "activate", source_ip,
        )

    async def deactivate_employee(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        return await self._set_employment_status(
            actor_id, workspace_id, user_id,
            EmploymentStatus.inactive, HrEventType.employee_deactivated, "deactivate", source_ip,
        )

    # ─────────────────────────────────────────────────────────────────
    # Attendance override
    # ─────────────────────────────────────────────────────────────────

    async def override_attendance(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        record_id: uuid.UUID,
        data: AttendanceOverride,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        async with transaction(self._session_factory) as db:
            await self._authorize(db, actor_id, workspace_id, require_hr=True)
            record = await AttendanceService.get_record(db, workspace_id, record_id)
            await self._require_active(record.user_id)

            AttendanceService.apply_override(record, data, actor_id)
            await db.flush()

            subject = await TenancyService.get_user(db, record.user_id)
            event = build_event(
                HrEventType.attendance_overridden,
                workspace_id,
                subject_user_id=subject.id,
                subject_email=subject.email,
                subject_name=subject.full_name,
                attendance_id=record.id,
                date=record.date,
                status=record.status,
            )
            out = AttendanceRecordOut.model_validate(record)

        logger.info("Attendance %s overridden by %s", record_id, actor_id)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="override",
            entity_type="attendance",
            entity_id=record_id,
            details=data.model_dump(mode="json", exclude_unset=True),
            source_ip=source_ip,
            data=out,
            event=event,
        )

    # ─────────────────────────────────────────────────────────────────
    # Ledger maintenance
    # ─────────────────────────────────────────────────────────────────

    async def apply_carry_forward(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        category_id: uuid.UUID,
        from_year: int,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Carry unused days of *from_year* into the following year's balance."""
        to_year = from_year + 1
        keys = sorted((user_id, category_id, year) for year in (from_year, to_year))

        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self._locks.hold(key))
            async with transaction(self._session_factory) as db:
                await self._authorize(db, actor_id, workspace_id, require_hr=True)
                category = await LeaveService.get_category(db, workspace_id, category_id)
                if not category.carry_forward_allowed:
                    raise ValidationException(
                        {"category_id": [f"{category.name} does not allow carry forward."]}
                    )
                subject = await TenancyService.get_user(db, user_id)

                from_balance = await LeaveService.get_balance(
                    db, user_id, category_id, from_year, for_update=True,
                )
                if from_balance is None:
                    raise NotFoundException("LeaveBalance", f"{user_id}/{category.code}/{from_year}")
                to_balance = await LeaveService.get_or_create_balance(
                    db, user_id=user_id, category=category, year=to_year,
                )
                carried = ledger.apply_carry_forward(
                    from_balance, to_balance, category.annual_quota, category.max_carry_forward,
                )
                await db.flush()

                event = build_event(
                    HrEventType.carry_forward_applied,
                    workspace_id,
                    subject_user_id=subject.id,
                    subject_email=subject.email,
                    subject_name=subject.full_name,
                    category_code=category.code,
                    year=to_year,
                    carried_forward=carried,
                )
                out = CarryForwardOut(
                    user_id=user_id,
                    category_id=category_id,
                    from_year=from_year,
                    to_year=to_year,
                    carried_forward=carried,
                    total_quota=to_balance.total_quota,
                )
                balance_id = to_balance.id

        logger.info(
            "Carried %s day(s) of %s into %s for %s", carried, category_id, to_year, user_id,
        )
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="carry_forward",
            entity_type="leave_balance",
            entity_id=balance_id,
            details={"from_year": from_year, "to_year": to_year, "carried": str(carried)},
            source_ip=source_ip,
            data=out,
            event=event,
        )

    async def recalculate_balances(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        category_id: uuid.UUID,
        year: int,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        """Re-derive ``total_quota`` for every balance of a category and year.

        All-or-nothing: one balance that would break the ledger aborts the lot.
        """
        async with self._session_factory() as db:
            await self._authorize(db, actor_id, workspace_id, require_hr=True)
            await LeaveService.get_category(db, workspace_id, category_id)
            rows = await db.execute(
                select(LeaveBalance.user_id).where(
                    LeaveBalance.category_id == category_id,
                    LeaveBalance.year == year,
                )
            )
            keys = sorted((user_id, category_id, year) for user_id in rows.scalars().all())

        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(self._locks.hold(key))
            async with transaction(self._session_factory) as db:
                category = await LeaveService.get_category(db, workspace_id, category_id)
                result = await db.execute(
                    select(LeaveBalance).where(
                        LeaveBalance.category_id == category_id,
                        LeaveBalance.year == year,
                    )
                )
                updated = 0
                for balance in result.scalars().all():
                    if balance.key not in keys:
                        continue
                    ledger.recalculate_total_quota(balance, category.annual_quota)
                    updated += 1
                await db.flush()

        out = RecalculationOut(category_id=category_id, year=year, updated=updated)
        logger.info("Recalculated %d balance(s) of %s/%s", updated, category_id, year)
        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="recalculate",
            entity_type="leave_category",
            entity_id=category_id,
            details={"year": year, "updated": updated},
            source_ip=source_ip,
            data=out,
        )

    # ─────────────────────────────────────────────────────────────────
    # Catalog
    # ─────────────────────────────────────────────────────────────────

    async def create_category(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        data: LeaveCategoryCreate,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        async with transaction(self._session_factory) as db:
            await self._authorize(
                db, actor_id, workspace_id, require_hr=True, leave_module=True,
            )
            category = await LeaveService.create_category(db, workspace_id, data)
            out = LeaveCategoryOut.model_validate(category)

        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="create",
            entity_type="leave_category",
            entity_id=out.id,
            details={"code": out.code, "annual_quota": str(out.annual_quota)},
            source_ip=source_ip,
            data=out,
        )

    async def update_category(
        self,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        category_id: uuid.UUID,
        data: LeaveCategoryUpdate,
        *,
        source_ip: Optional[str] = None,
    ) -> ActionResult:
        async with transaction(self._session_factory) as db:
            await self._authorize(
                db, actor_id, workspace_id, require_hr=True, leave_module=True,
            )
            category = await LeaveService.update_category(db, workspace_id, category_id, data)
            out = LeaveCategoryOut.model_validate(category)

        return await self._finish(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action="update",
            entity_type="leave_category",
            entity_id=out.id,
            details=data.model_dump(mode="json", exclude_unset=True),
            source_ip=source_ip,
            data=out,
        )
