"""Enums and constants for leaveflow — matching the database ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Tenancy ─────────────────────────────────────────────────────────

class WorkspaceType(str, enum.Enum):
    core = "CORE"
    community = "COMMUNITY"


class PlanType(str, enum.Enum):
    trial = "TRIAL"
    free = "FREE"
    pro = "PRO"
    enterprise = "ENTERPRISE"


class WorkspaceRole(str, enum.Enum):
    admin = "admin"
    hr = "hr"
    team_lead = "team_lead"
    member = "member"
    community_admin = "community_admin"


class AccessRole(str, enum.Enum):
    """Effective role of an actor inside one workspace.

    Mirrors :class:`WorkspaceRole` plus the workspace-independent operator role.
    """

    system_admin = "system_admin"
    admin = "admin"
    hr = "hr"
    team_lead = "team_lead"
    member = "member"
    community_admin = "community_admin"


# ── Employee ────────────────────────────────────────────────────────

class EmploymentStatus(str, enum.Enum):
    active = "ACTIVE"
    inactive = "INACTIVE"
    on_notice = "ON_NOTICE"
    exited = "EXITED"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveTimePeriod(str, enum.Enum):
    full_day = "full_day"
    half_day = "half_day"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    half_day = "half_day"
    leave = "leave"
    holiday = "holiday"


# ── Role sets ───────────────────────────────────────────────────────

# Roles allowed to perform HR actions inside a workspace.
HR_ROLES: frozenset[AccessRole] = frozenset({
    AccessRole.system_admin,
    AccessRole.admin,
    AccessRole.hr,
    AccessRole.community_admin,
})

# Roles that may use CORE-only modules (leave) inside a COMMUNITY workspace.
CORE_BYPASS_ROLES: frozenset[AccessRole] = frozenset({
    AccessRole.system_admin,
    AccessRole.admin,
    AccessRole.hr,
})

# ── Misc constants ──────────────────────────────────────────────────

HALF_DAY = Decimal("0.5")
ZERO_DAYS = Decimal("0")
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
