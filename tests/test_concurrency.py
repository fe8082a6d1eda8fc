"""Tests for serialization of ledger mutations.

Per-key locking inside one process, optimistic version checks across
processes, and the lock registry itself.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from leaveflow.common.constants import EmploymentStatus, LeaveStatus
from leaveflow.common.exceptions import ConflictError, InsufficientBalanceException
from leaveflow.common.locks import KeyedLock
from leaveflow.database import transaction
from leaveflow.hr.service import HrActionService
from leaveflow.leave import ledger
from leaveflow.leave.models import LeaveBalance, LeaveRequest
from leaveflow.leave.schemas import LeaveRequestCreate
from tests.conftest import (
    RecordingAuditLog,
    StaticDirectory,
    TestSessionFactory,
    fetch,
    fetch_all,
    fetch_balance,
    seed_balance,
    seed_category,
)


class TestConcurrentCreates:

    async def test_only_one_of_two_overlapping_reservations_fits(self, world):
        """available 20; 15 and 10 requested at once -> exactly one accepted."""
        await seed_balance(world.employee.id, world.category)
        locks = KeyedLock()
        service = HrActionService(
            TestSessionFactory,
            audit_log=RecordingAuditLog(),
            directory=StaticDirectory({world.employee.id: EmploymentStatus.active}),
            locks=locks,
        )
        fifteen = LeaveRequestCreate(
            category_id=world.category.id,
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 16),
            days=Decimal("15"),
            reason="Long trip",
        )
        ten = LeaveRequestCreate(
            category_id=world.category.id,
            start_date=date(2026, 5, 4),
            end_date=date(2026, 5, 13),
            days=Decimal("10"),
            reason="Another trip",
        )

        results = await asyncio.gather(
            service.create_leave(world.employee.id, world.workspace.id, fifteen),
            service.create_leave(world.employee.id, world.workspace.id, ten),
            return_exceptions=True,
        )

        accepted = [r for r in results if not isinstance(r, BaseException)]
        failed = [r for r in results if isinstance(r, BaseException)]
        assert len(accepted) == 1
        assert len(failed) == 1
        assert isinstance(failed[0], InsufficientBalanceException)

        (request,) = await fetch_all(LeaveRequest)
        assert request.status == LeaveStatus.pending
        (balance,) = await fetch_all(LeaveBalance)
        assert balance.pending == request.days
        assert balance.available == Decimal("20") - request.days
        assert balance.available >= 0
        assert len(locks) == 0


class TestCarryForwardSerialization:

    async def test_waits_for_writer_on_source_year(self, world):
        """2025 available 8, cap 5; a 2025 writer reserves 8 first -> carry 0."""
        category = await seed_category(
            world.workspace.id, code="EL", carry_forward_allowed=True,
            max_carry_forward=Decimal("5"),
        )
        source = await seed_balance(
            world.employee.id, category, year=2025, used=Decimal("12"),
        )
        locks = KeyedLock()
        service = HrActionService(
            TestSessionFactory, audit_log=RecordingAuditLog(), locks=locks,
        )

        async with locks.hold((world.employee.id, category.id, 2025)):
            carry = asyncio.create_task(service.apply_carry_forward(
                world.hr.id, world.workspace.id, world.employee.id, category.id, 2025,
            ))
            await asyncio.sleep(0.05)
            assert not carry.done()

            async with transaction(TestSessionFactory) as session:
                balance = await session.get(LeaveBalance, source.id)
                ledger.reserve(balance, Decimal("8"))

        result = await carry

        assert result.data.carried_forward == Decimal("0")
        source_after = await fetch_balance(world.employee.id, category.id, 2025)
        assert source_after.available == Decimal("0")
        target = await fetch_balance(world.employee.id, category.id, 2026)
        assert target.carried_forward == Decimal("0")
        assert target.total_quota == Decimal("20")
        assert len(locks) == 0


class TestOptimisticVersioning:

    async def test_stale_balance_write_is_a_conflict(self, world):
        seeded = await seed_balance(world.employee.id, world.category)

        with pytest.raises(ConflictError) as exc_info:
            async with transaction(TestSessionFactory) as first:
                stale = await first.get(LeaveBalance, seeded.id)
                async with transaction(TestSessionFactory) as second:
                    fresh = await second.get(LeaveBalance, seeded.id)
                    ledger.reserve(fresh, Decimal("2"))
                ledger.reserve(stale, Decimal("3"))

        assert exc_info.value.status_code == 409
        balance = await fetch(LeaveBalance, seeded.id)
        assert balance.pending == Decimal("2")
        assert balance.version == 2

    async def test_duplicate_balance_key_is_a_conflict(self, world):
        await seed_balance(world.employee.id, world.category)

        with pytest.raises(ConflictError):
            async with transaction(TestSessionFactory) as session:
                session.add(ledger.new_balance(
                    user_id=world.employee.id,
                    workspace_id=world.workspace.id,
                    category_id=world.category.id,
                    year=2026,
                    annual_quota=Decimal("20"),
                ))

        assert len(await fetch_all(LeaveBalance)) == 1


class TestKeyedLock:

    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str, pause: float) -> None:
            async with locks.hold(("u", "c", 2026)):
                order.append(f"{name}-in")
                await asyncio.sleep(pause)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a", 0.02), worker("b", 0))

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def holder() -> None:
            async with locks.hold("first"):
                await asyncio.wait_for(inside.wait(), timeout=1)

        async def other() -> None:
            async with locks.hold("second"):
                assert locks.is_locked("first")
                inside.set()

        await asyncio.gather(holder(), other())
        assert not locks.is_locked("first")
        assert len(locks) == 0

    async def test_lock_released_on_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")
        assert not locks.is_locked("k")
        assert len(locks) == 0
