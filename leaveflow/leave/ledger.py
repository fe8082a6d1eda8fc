"""Balance ledger — pure arithmetic on :class:`LeaveBalance` rows.

Every mutation computes the new counters first, validates them with
:func:`check_invariants`, and only then assigns them to the balance, so a
rejected mutation leaves the object untouched. ``available`` is never edited
directly; it is always rewritten by :func:`recompute_available`.

Invariants (also enforced by CHECK constraints on ``leave_balances``):
  - available = total_quota - used - pending
  - all counters >= 0
  - used + pending <= total_quota
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from leaveflow.common.constants import HALF_DAY, ZERO_DAYS
from leaveflow.common.exceptions import (
    InsufficientBalanceException,
    LedgerInvariantError,
    ValidationException,
)
from leaveflow.leave.models import LeaveBalance


def _d(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


# ── Validation ──────────────────────────────────────────────────────

def validate_days(days: Decimal, field: str = "days") -> Decimal:
    """Days must be a positive multiple of 0.5."""
    days = _d(days)
    if days <= ZERO_DAYS:
        raise ValidationException({field: ["Must be greater than zero."]})
    if days % HALF_DAY != ZERO_DAYS:
        raise ValidationException({field: ["Must be a multiple of 0.5."]})
    return days


def compute_available(total: Decimal, used: Decimal, pending: Decimal) -> Decimal:
    return _d(total) - _d(used) - _d(pending)


def check_invariants(
    total: Decimal,
    used: Decimal,
    pending: Decimal,
    carried: Decimal = ZERO_DAYS,
) -> None:
    total, used, pending, carried = _d(total), _d(used), _d(pending), _d(carried)
    for name, value in (
        ("total_quota", total),
        ("used", used),
        ("pending", pending),
        ("carried_forward", carried),
    ):
        if value < ZERO_DAYS:
            raise LedgerInvariantError(f"Balance {name} cannot be negative ({value}).")
    if used + pending > total:
        raise LedgerInvariantError(
            f"Used ({used}) plus pending ({pending}) exceeds total quota ({total})."
        )


def recompute_available(balance: LeaveBalance) -> Decimal:
    balance.available = compute_available(balance.total_quota, balance.used, balance.pending)
    return balance.available


def _assign(
    balance: LeaveBalance,
    *,
    total: Decimal,
    used: Decimal,
    pending: Decimal,
    carried: Decimal,
) -> LeaveBalance:
    check_invariants(total, used, pending, carried)
    balance.total_quota = total
    balance.used = used
    balance.pending = pending
    balance.carried_forward = carried
    recompute_available(balance)
    return balance


# ── Initialization ──────────────────────────────────────────────────

def new_balance(
    *,
    user_id: uuid.UUID,
    workspace_id: uuid.UUID,
    category_id: uuid.UUID,
    year: int,
    annual_quota: Decimal,
) -> LeaveBalance:
    """Fresh balance for a (user, category, year) key: full quota, nothing used."""
    balance = LeaveBalance(
        user_id=user_id,
        workspace_id=workspace_id,
        category_id=category_id,
        year=year,
    )
    return _assign(
        balance,
        total=_d(annual_quota),
        used=ZERO_DAYS,
        pending=ZERO_DAYS,
        carried=ZERO_DAYS,
    )


# ── Mutations ───────────────────────────────────────────────────────

def reserve(balance: LeaveBalance, days: Decimal) -> LeaveBalance:
    """Move *days* into ``pending``; fails if fewer are available."""
    days = validate_days(days)
    available = compute_available(balance.total_quota, balance.used, balance.pending)
    if available < days:
        raise InsufficientBalanceException(available, days)
    return _assign(
        balance,
        total=_d(balance.total_quota),
        used=_d(balance.used),
        pending=_d(balance.pending) + days,
        carried=_d(balance.carried_forward),
    )


def commit_used(balance: LeaveBalance, days: Decimal) -> LeaveBalance:
    """Convert a reservation into consumption: pending -> used."""
    days = validate_days(days)
    if _d(balance.pending) < days:
        raise LedgerInvariantError(
            f"Cannot commit {days} day(s); only {balance.pending} pending."
        )
    return _assign(
        balance,
        total=_d(balance.total_quota),
        used=_d(balance.used) + days,
        pending=_d(balance.pending) - days,
        carried=_d(balance.carried_forward),
    )


def release_pending(balance: LeaveBalance, days: Decimal) -> LeaveBalance:
    """Drop a reservation without consuming it."""
    days = validate_days(days)
    if _d(balance.pending) < days:
        raise LedgerInvariantError(
            f"Cannot release {days} day(s); only {balance.pending} pending."
        )
    return _assign(
        balance,
        total=_d(balance.total_quota),
        used=_d(balance.used),
        pending=_d(balance.pending) - days,
        carried=_d(balance.carried_forward),
    )


def recalculate_total_quota(balance: LeaveBalance, annual_quota: Decimal) -> LeaveBalance:
    """Re-derive ``total_quota`` as annual quota plus carried-forward days."""
    carried = _d(balance.carried_forward)
    return _assign(
        balance,
        total=_d(annual_quota) + carried,
        used=_d(balance.used),
        pending=_d(balance.pending),
        carried=carried,
    )


def apply_carry_forward(
    from_balance: LeaveBalance,
    to_balance: LeaveBalance,
    annual_quota: Decimal,
    max_carry_forward: Decimal,
) -> Decimal:
    """Carry the unused days of *from_balance* into *to_balance*.

    The amount is capped at *max_carry_forward* when that is positive; a zero
    cap means "no cap". Returns the carried amount.
    """
    leftover = max(
        compute_available(from_balance.total_quota, from_balance.used, from_balance.pending),
        ZERO_DAYS,
    )
    cap = _d(max_carry_forward)
    carry = min(leftover, cap) if cap > ZERO_DAYS else leftover

    _assign(
        to_balance,
        total=_d(annual_quota) + carry,
        used=_d(to_balance.used),
        pending=_d(to_balance.pending),
        carried=carry,
    )
    return carry
