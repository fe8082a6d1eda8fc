"""Leave request state machine.

    pending ──► approved
        ├─────► rejected
        └─────► cancelled

Every transition here pairs the status change with the matching ledger
mutation on the request's balance. Callers persist both in one transaction.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator, Optional

from leaveflow.common.constants import LeaveStatus, LeaveTimePeriod
from leaveflow.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    ValidationException,
)
from leaveflow.leave import ledger
from leaveflow.leave.models import LeaveBalance, LeaveCategory, LeaveRequest

ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset({
        LeaveStatus.approved,
        LeaveStatus.rejected,
        LeaveStatus.cancelled,
    }),
    LeaveStatus.approved: frozenset(),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}


def ensure_transition(request: LeaveRequest, target: LeaveStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[request.status]:
        raise InvalidTransitionException(
            f"Cannot move leave request from {request.status.value} to {target.value}.",
            current=request.status.value,
        )


# ── Input validation ────────────────────────────────────────────────

def calendar_span(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days + 1


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def validate_request_input(
    start_date: date,
    end_date: date,
    days: Decimal,
    reason: Optional[str],
) -> Decimal:
    """Check dates, day count and reason; returns the normalized day count."""
    if end_date < start_date:
        raise ValidationException({"end_date": ["End date must be on or after start date."]})
    days = ledger.validate_days(days)
    span = calendar_span(start_date, end_date)
    if days > span:
        raise ValidationException(
            {"days": [f"Cannot exceed the {span} calendar day(s) between the dates."]}
        )
    if not reason or not reason.strip():
        raise ValidationException({"reason": ["Reason is required."]})
    return days


# ── Transitions ─────────────────────────────────────────────────────

def create_request(
    balance: LeaveBalance,
    category: LeaveCategory,
    *,
    user_id: uuid.UUID,
    created_by: uuid.UUID,
    start_date: date,
    end_date: date,
    days: Decimal,
    reason: str,
    time_period: LeaveTimePeriod = LeaveTimePeriod.full_day,
) -> LeaveRequest:
    """Reserve *days* on *balance* and build the matching pending request."""
    days = validate_request_input(start_date, end_date, days, reason)
    if balance.year != start_date.year:
        raise ValidationException(
            {"start_date": [f"Balance year {balance.year} does not match the request."]}
        )
    ledger.reserve(balance, days)
    return LeaveRequest(
        id=uuid.uuid4(),
        user_id=user_id,
        workspace_id=category.workspace_id,
        category_id=category.id,
        start_date=start_date,
        end_date=end_date,
        days=days,
        reason=reason.strip(),
        status=LeaveStatus.pending,
        time_period=time_period,
        created_by=created_by,
    )


def approve(
    request: LeaveRequest,
    balance: LeaveBalance,
    resolver_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    ensure_transition(request, LeaveStatus.approved)
    ledger.commit_used(balance, request.days)
    request.status = LeaveStatus.approved
    request.approved_by = resolver_id
    request.approved_at = now or datetime.now(timezone.utc)
    return request


def reject(
    request: LeaveRequest,
    balance: LeaveBalance,
    resolver_id: uuid.UUID,
    reason: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    ensure_transition(request, LeaveStatus.rejected)
    if not reason or not reason.strip():
        raise ValidationException({"rejection_reason": ["Rejection reason is required."]})
    ledger.release_pending(balance, request.days)
    request.status = LeaveStatus.rejected
    request.approved_by = resolver_id
    request.approved_at = now or datetime.now(timezone.utc)
    request.rejection_reason = reason.strip()
    return request


def cancel(
    request: LeaveRequest,
    balance: LeaveBalance,
    actor_id: uuid.UUID,
) -> LeaveRequest:
    if request.user_id != actor_id:
        raise ForbiddenException("Only the requester can cancel this leave request.")
    if request.is_terminal:
        raise InvalidTransitionException(
            "Cannot cancel processed request", current=request.status.value,
        )
    ensure_transition(request, LeaveStatus.cancelled)
    ledger.release_pending(balance, request.days)
    request.status = LeaveStatus.cancelled
    return request
