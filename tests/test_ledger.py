"""Tests for the balance ledger — pure arithmetic, no database.

Covers reserve / commit / release, invariant checks, quota recalculation and
the carry-forward cap.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from leaveflow.common.exceptions import (
    InsufficientBalanceException,
    LedgerInvariantError,
    ValidationException,
)
from leaveflow.leave import ledger
from leaveflow.leave.models import LeaveBalance


def _balance(
    total="20",
    used="0",
    pending="0",
    carried="0",
    year=2026,
) -> LeaveBalance:
    balance = LeaveBalance(
        user_id=uuid.uuid4(),
        workspace_id=uuid.uuid4(),
        category_id=uuid.uuid4(),
        year=year,
        total_quota=Decimal(total),
        used=Decimal(used),
        pending=Decimal(pending),
        carried_forward=Decimal(carried),
    )
    ledger.recompute_available(balance)
    return balance


def _counters(balance: LeaveBalance) -> tuple:
    return (
        balance.total_quota,
        balance.used,
        balance.pending,
        balance.carried_forward,
        balance.available,
    )


# ═════════════════════════════════════════════════════════════════════
# VALIDATION
# ═════════════════════════════════════════════════════════════════════


class TestValidateDays:

    def test_accepts_whole_and_half_days(self):
        assert ledger.validate_days(Decimal("3")) == Decimal("3")
        assert ledger.validate_days(Decimal("0.5")) == Decimal("0.5")
        assert ledger.validate_days(Decimal("2.5")) == Decimal("2.5")

    def test_accepts_plain_numbers(self):
        assert ledger.validate_days(4) == Decimal("4")
        assert ledger.validate_days("1.5") == Decimal("1.5")

    @pytest.mark.parametrize("days", ["0", "-1", "-0.5"])
    def test_rejects_non_positive(self, days):
        with pytest.raises(ValidationException) as exc_info:
            ledger.validate_days(Decimal(days))
        assert "days" in exc_info.value.errors

    @pytest.mark.parametrize("days", ["0.25", "1.3", "2.75"])
    def test_rejects_non_half_multiples(self, days):
        with pytest.raises(ValidationException) as exc_info:
            ledger.validate_days(Decimal(days))
        assert exc_info.value.errors["days"] == ["Must be a multiple of 0.5."]


class TestCheckInvariants:

    def test_valid_counters_pass(self):
        ledger.check_invariants(Decimal("20"), Decimal("5"), Decimal("15"))

    def test_negative_counter_fails(self):
        with pytest.raises(LedgerInvariantError):
            ledger.check_invariants(Decimal("20"), Decimal("-1"), Decimal("0"))

    def test_negative_carried_fails(self):
        with pytest.raises(LedgerInvariantError):
            ledger.check_invariants(
                Decimal("20"), Decimal("0"), Decimal("0"), Decimal("-0.5"),
            )

    def test_over_committed_fails(self):
        with pytest.raises(LedgerInvariantError) as exc_info:
            ledger.check_invariants(Decimal("10"), Decimal("6"), Decimal("5"))
        assert exc_info.value.status_code == 409
        assert exc_info.value.error_type == "ledger-invariant"


# ═════════════════════════════════════════════════════════════════════
# INITIALIZATION
# ═════════════════════════════════════════════════════════════════════


class TestNewBalance:

    def test_starts_at_full_quota(self):
        balance = ledger.new_balance(
            user_id=uuid.uuid4(),
            workspace_id=uuid.uuid4(),
            category_id=uuid.uuid4(),
            year=2026,
            annual_quota=Decimal("20"),
        )
        assert _counters(balance) == (
            Decimal("20"), Decimal("0"), Decimal("0"), Decimal("0"), Decimal("20"),
        )
        assert balance.year == 2026


# ═════════════════════════════════════════════════════════════════════
# MUTATIONS
# ═════════════════════════════════════════════════════════════════════


class TestReserve:

    def test_moves_days_into_pending(self):
        balance = _balance()
        ledger.reserve(balance, Decimal("5"))
        assert balance.pending == Decimal("5")
        assert balance.available == Decimal("15")
        assert balance.used == Decimal("0")

    def test_exact_available_is_allowed(self):
        balance = _balance(total="20", used="17")
        ledger.reserve(balance, Decimal("3"))
        assert balance.available == Decimal("0")

    def test_insufficient_balance_leaves_counters_untouched(self):
        balance = _balance(total="20", used="17")
        before = _counters(balance)

        with pytest.raises(InsufficientBalanceException) as exc_info:
            ledger.reserve(balance, Decimal("5"))

        assert exc_info.value.available == Decimal("3")
        assert exc_info.value.requested == Decimal("5")
        assert exc_info.value.status_code == 422
        assert _counters(balance) == before

    def test_half_day_reservation(self):
        balance = _balance()
        ledger.reserve(balance, Decimal("0.5"))
        assert balance.available == Decimal("19.5")


class TestCommitUsed:

    def test_moves_pending_to_used(self):
        balance = _balance(pending="5")
        ledger.commit_used(balance, Decimal("5"))
        assert balance.pending == Decimal("0")
        assert balance.used == Decimal("5")
        assert balance.available == Decimal("15")

    def test_requires_enough_pending(self):
        balance = _balance(pending="2")
        before = _counters(balance)
        with pytest.raises(LedgerInvariantError):
            ledger.commit_used(balance, Decimal("3"))
        assert _counters(balance) == before


class TestReleasePending:

    def test_restores_available(self):
        balance = _balance(pending="5")
        ledger.release_pending(balance, Decimal("5"))
        assert balance.pending == Decimal("0")
        assert balance.available == Decimal("20")

    def test_requires_enough_pending(self):
        balance = _balance(pending="1")
        with pytest.raises(LedgerInvariantError):
            ledger.release_pending(balance, Decimal("1.5"))
        assert balance.pending == Decimal("1")


class TestConservation:
    """used + pending + available == total_quota across a whole lifecycle."""

    def test_lifecycle_conserves_quota(self):
        balance = _balance()
        steps = [
            (ledger.reserve, "5"),
            (ledger.reserve, "3"),
            (ledger.commit_used, "5"),
            (ledger.release_pending, "3"),
            (ledger.reserve, "0.5"),
            (ledger.commit_used, "0.5"),
        ]
        for fn, days in steps:
            fn(balance, Decimal(days))
            assert balance.used + balance.pending + balance.available == balance.total_quota
            assert balance.available >= 0

        assert balance.used == Decimal("5.5")
        assert balance.pending == Decimal("0")
        assert balance.available == Decimal("14.5")


class TestRecalculateTotalQuota:

    def test_total_is_annual_plus_carried(self):
        balance = _balance(total="20", used="4", carried="3")
        ledger.recalculate_total_quota(balance, Decimal("25"))
        assert balance.total_quota == Decimal("28")
        assert balance.available == Decimal("24")

    def test_rejects_quota_below_consumption(self):
        balance = _balance(total="20", used="12", pending="4")
        before = _counters(balance)
        with pytest.raises(LedgerInvariantError):
            ledger.recalculate_total_quota(balance, Decimal("10"))
        assert _counters(balance) == before


class TestApplyCarryForward:

    def test_capped_at_max(self):
        """Year Y available 8, cap 5 -> carried 5, total = annual + 5."""
        from_balance = _balance(total="20", used="12", year=2025)
        to_balance = _balance(total="20", year=2026)

        carried = ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("5"),
        )

        assert carried == Decimal("5")
        assert to_balance.carried_forward == Decimal("5")
        assert to_balance.total_quota == Decimal("25")
        assert to_balance.available == Decimal("25")

    def test_below_cap_carries_everything(self):
        from_balance = _balance(total="20", used="17", year=2025)
        to_balance = _balance(total="20", year=2026)
        carried = ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("5"),
        )
        assert carried == Decimal("3")
        assert to_balance.total_quota == Decimal("23")

    def test_zero_cap_means_uncapped(self):
        from_balance = _balance(total="20", used="8", year=2025)
        to_balance = _balance(total="20", year=2026)
        carried = ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("0"),
        )
        assert carried == Decimal("12")
        assert to_balance.total_quota == Decimal("32")

    def test_pending_days_are_not_carried(self):
        from_balance = _balance(total="20", used="10", pending="8", year=2025)
        to_balance = _balance(total="20", year=2026)
        carried = ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("10"),
        )
        assert carried == Decimal("2")

    def test_keeps_target_consumption(self):
        from_balance = _balance(total="20", used="15", year=2025)
        to_balance = _balance(total="20", used="6", pending="2", year=2026)
        ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("5"),
        )
        assert to_balance.used == Decimal("6")
        assert to_balance.pending == Decimal("2")
        assert to_balance.available == Decimal("17")

    def test_reapplying_overwrites_previous_carry(self):
        from_balance = _balance(total="20", used="16", year=2025)
        to_balance = _balance(total="23", carried="3", year=2026)
        ledger.apply_carry_forward(
            from_balance, to_balance, Decimal("20"), Decimal("0"),
        )
        assert to_balance.carried_forward == Decimal("4")
        assert to_balance.total_quota == Decimal("24")
