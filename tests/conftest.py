"""Shared test fixtures — async DB, client, fakes, seed helpers.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Point settings at SQLite before any other import touches pydantic-settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leaveflow.common.constants import (
    EmploymentStatus,
    WorkspaceRole,
    WorkspaceType,
)
from leaveflow.common.exceptions import NotFoundException
from leaveflow.database import Base, get_db
from leaveflow.hr.events import HrEventType, template_for
from leaveflow.hr.interfaces import DeliveryResult
from leaveflow.hr.service import HrActionService
from leaveflow.main import create_app

# Import ALL model modules so metadata holds every table and FK target
import leaveflow.attendance.models  # noqa: F401
import leaveflow.common.audit  # noqa: F401
import leaveflow.leave.models  # noqa: F401
import leaveflow.tenancy.models  # noqa: F401

from leaveflow.leave.models import LeaveBalance, LeaveCategory
from leaveflow.tenancy.models import User, Workspace, WorkspaceMembership
from leaveflow.tenancy.service import apply_type_defaults

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ──────────

from sqlalchemy.dialects.postgresql import INET, JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(INET, "sqlite")
def _inet_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Fakes for the external interfaces ───────────────────────────────

class RecordingAuditLog:
    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    async def record(
        self,
        actor_id,
        workspace_id,
        action,
        entity_type,
        entity_id,
        details=None,
        source_ip=None,
    ) -> None:
        self.entries.append(dict(
            actor_id=actor_id,
            workspace_id=workspace_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            source_ip=source_ip,
        ))


class FailingAuditLog:
    async def record(self, *args, **kwargs) -> None:
        raise RuntimeError("audit store unavailable")


class RecordingDispatcher:
    def __init__(self) -> None:
        self.calls: list[tuple[HrEventType, dict, uuid.UUID]] = []

    async def handle(self, event_type, payload, workspace_id) -> DeliveryResult:
        self.calls.append((event_type, payload, workspace_id))
        return DeliveryResult(
            success=True, event=event_type, template_code=template_for(event_type),
        )


class FailingDispatcher:
    async def handle(self, event_type, payload, workspace_id) -> DeliveryResult:
        raise ConnectionError("mail gateway down")


class StaticDirectory:
    """Employment directory backed by a dict; unknown users are 404."""

    def __init__(self, statuses: Optional[dict[uuid.UUID, EmploymentStatus]] = None) -> None:
        self.statuses = dict(statuses or {})

    async def get_employment_status(self, user_id: uuid.UUID) -> EmploymentStatus:
        if user_id not in self.statuses:
            raise NotFoundException("User", str(user_id))
        return self.statuses[user_id]


@pytest.fixture
def audit_log() -> RecordingAuditLog:
    return RecordingAuditLog()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def hr_service(audit_log, dispatcher) -> HrActionService:
    """Service with recording fakes and the default DB employment directory."""
    return HrActionService(
        TestSessionFactory, audit_log=audit_log, dispatcher=dispatcher,
    )


# ── Model factories ─────────────────────────────────────────────────

async def seed_workspace(
    *,
    name: str = "Acme Core",
    type: WorkspaceType = WorkspaceType.core,
    is_active: bool = True,
    user_count: int = 0,
) -> Workspace:
    async with TestSessionFactory() as s:
        ws = Workspace(id=uuid.uuid4(), name=name, type=type, is_active=is_active,
                       user_count=user_count)
        apply_type_defaults(ws)
        s.add(ws)
        await s.commit()
        return ws


async def seed_user(
    *,
    email: Optional[str] = None,
    full_name: str = "Test User",
    memberships: Optional[dict[uuid.UUID, WorkspaceRole]] = None,
    status: EmploymentStatus = EmploymentStatus.active,
    is_system_admin: bool = False,
    legacy_workspace_id: Optional[uuid.UUID] = None,
    legacy_role: Optional[WorkspaceRole] = None,
) -> User:
    """Insert a user with active memberships in the given workspaces."""
    memberships = memberships or {}
    first = next(iter(memberships), None)
    async with TestSessionFactory() as s:
        user = User(
            id=uuid.uuid4(),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            full_name=full_name,
            employment_status=status,
            is_system_admin=is_system_admin,
            workspace_id=legacy_workspace_id or first,
            role=legacy_role or (memberships[first] if first else None),
            current_workspace_id=first,
        )
        s.add(user)
        await s.flush()
        for workspace_id, role in memberships.items():
            s.add(WorkspaceMembership(
                user_id=user.id, workspace_id=workspace_id, role=role, is_active=True,
            ))
        await s.commit()
        return user


async def seed_category(
    workspace_id: uuid.UUID,
    *,
    code: str = "AL",
    name: str = "Annual Leave",
    annual_quota: Decimal = Decimal("20"),
    carry_forward_allowed: bool = False,
    max_carry_forward: Decimal = Decimal("0"),
    is_active: bool = True,
) -> LeaveCategory:
    async with TestSessionFactory() as s:
        category = LeaveCategory(
            id=uuid.uuid4(),
            workspace_id=workspace_id,
            code=code,
            name=name,
            annual_quota=annual_quota,
            carry_forward_allowed=carry_forward_allowed,
            max_carry_forward=max_carry_forward,
            is_active=is_active,
        )
        s.add(category)
        await s.commit()
        return category


async def seed_balance(
    user_id: uuid.UUID,
    category: LeaveCategory,
    *,
    year: int = 2026,
    total_quota: Decimal = Decimal("20"),
    used: Decimal = Decimal("0"),
    pending: Decimal = Decimal("0"),
    carried_forward: Decimal = Decimal("0"),
) -> LeaveBalance:
    async with TestSessionFactory() as s:
        balance = LeaveBalance(
            user_id=user_id,
            workspace_id=category.workspace_id,
            category_id=category.id,
            year=year,
            total_quota=total_quota,
            used=used,
            pending=pending,
            carried_forward=carried_forward,
            available=total_quota - used - pending,
        )
        s.add(balance)
        await s.commit()
        return balance


# ── Fresh reads (never from a test's stale identity map) ────────────

async def fetch(model, pk):
    async with TestSessionFactory() as s:
        return await s.get(model, pk)


async def fetch_balance(
    user_id: uuid.UUID,
    category_id: uuid.UUID,
    year: int = 2026,
) -> Optional[LeaveBalance]:
    async with TestSessionFactory() as s:
        result = await s.execute(
            select(LeaveBalance).where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.category_id == category_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()


async def fetch_all(model, *where):
    async with TestSessionFactory() as s:
        result = await s.execute(select(model).where(*where))
        return result.scalars().all()


# ── Composite world: CORE workspace, HR, employee, AL category ──────

@dataclass
class World:
    workspace: Workspace
    hr: User
    employee: User
    category: LeaveCategory


@pytest.fixture
async def world() -> World:
    workspace = await seed_workspace()
    hr = await seed_user(
        email="hr@example.com",
        full_name="Hana HR",
        memberships={workspace.id: WorkspaceRole.hr},
    )
    employee = await seed_user(
        email="emp@example.com",
        full_name="Eli Employee",
        memberships={workspace.id: WorkspaceRole.member},
    )
    category = await seed_category(workspace.id)
    return World(workspace=workspace, hr=hr, employee=employee, category=category)
