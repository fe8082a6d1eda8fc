"""Tenancy service layer — role resolution, workspace lifecycle, memberships.

Every role check in the system goes through :func:`resolve_role`, which reads
the membership of the *targeted* workspace. The legacy ``User.role`` /
``User.workspace_id`` pair is maintained for older clients but is never
consulted for authorization.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import (
    CORE_BYPASS_ROLES,
    HR_ROLES,
    AccessRole,
    PlanType,
    WorkspaceRole,
    WorkspaceType,
)
from leaveflow.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    NotMemberException,
)
from leaveflow.config import settings
from leaveflow.tenancy.models import User, Workspace, WorkspaceMembership
from leaveflow.tenancy.schemas import WorkspaceCreate

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# Pure resolution
# ═════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AccessContext:
    """Who is acting, where, and with which effective role."""

    user: User
    workspace: Workspace
    role: AccessRole
    is_system_admin: bool

    @property
    def is_hr(self) -> bool:
        return self.role in HR_ROLES


def resolve_role(user: User, workspace_id: uuid.UUID) -> AccessRole:
    """Return the user's effective role in *workspace_id*.

    System administrators satisfy any workspace without a membership lookup.
    """
    if user.is_system_admin:
        return AccessRole.system_admin
    membership = user.membership_for(workspace_id)
    if membership is None:
        raise NotMemberException(workspace_id)
    return AccessRole(membership.role.value)


def require_hr_role(user: User, workspace_id: uuid.UUID) -> AccessRole:
    role = resolve_role(user, workspace_id)
    if role not in HR_ROLES:
        raise ForbiddenException("HR privileges are required for this action.")
    return role


def require_leave_module(ctx: AccessContext) -> None:
    """Leave management is a CORE-workspace feature.

    System admins and workspace admin/hr roles may still use it inside a
    COMMUNITY workspace.
    """
    if ctx.workspace.is_core or ctx.role in CORE_BYPASS_ROLES:
        return
    raise ForbiddenException(
        "Leave management is only available in CORE workspaces."
    )


def resolve_active_workspace(
    user: User,
    requested_workspace_id: Optional[uuid.UUID] = None,
) -> Optional[uuid.UUID]:
    """Pick the workspace an action targets.

    Order: explicit request, current workspace, legacy workspace, first active
    membership. Returns ``None`` only for a system admin with no workspace.
    """
    if requested_workspace_id is not None:
        if not user.is_system_admin and user.membership_for(requested_workspace_id) is None:
            raise NotMemberException(requested_workspace_id)
        return requested_workspace_id

    if user.current_workspace_id is not None:
        return user.current_workspace_id
    if user.workspace_id is not None:
        return user.workspace_id

    active = user.active_workspace_ids()
    if active:
        return active[0]
    if user.is_system_admin:
        return None
    raise ForbiddenException("User is not associated with any active workspace.")


def apply_type_defaults(workspace: Workspace) -> None:
    """Derive feature flags, limits and plan from ``workspace.type``."""
    if workspace.type == WorkspaceType.core:
        workspace.bulk_user_import = True
        workspace.audit_logs = True
        workspace.advanced_automation = True
        workspace.custom_branding = True
        workspace.max_users = None
        workspace.max_tasks = None
        workspace.max_teams = None
        workspace.max_storage_gb = None
        workspace.plan_type = PlanType.enterprise
    else:
        workspace.bulk_user_import = False
        workspace.audit_logs = False
        workspace.advanced_automation = False
        workspace.custom_branding = False
        workspace.max_users = settings.COMMUNITY_MAX_USERS
        workspace.max_tasks = settings.COMMUNITY_MAX_TASKS
        workspace.max_teams = settings.COMMUNITY_MAX_TEAMS
        workspace.max_storage_gb = settings.COMMUNITY_MAX_STORAGE_GB
        workspace.plan_type = PlanType.free


def sync_legacy_membership(user: User) -> Optional[WorkspaceMembership]:
    """Reconcile the legacy ``workspace_id``/``role`` pair with memberships.

    A legacy reference without a membership is materialized as one; a user with
    memberships but no legacy reference gets it filled from the first active
    membership. Returns the membership created, if any. The caller flushes.
    """
    created: Optional[WorkspaceMembership] = None
    if user.workspace_id is not None:
        if user.membership_for(user.workspace_id, active_only=False) is None:
            created = WorkspaceMembership(
                user_id=user.id,
                workspace_id=user.workspace_id,
                role=user.role or WorkspaceRole.member,
                is_active=True,
            )
            user.memberships.append(created)
    else:
        first = next((m for m in user.memberships if m.is_active), None)
        if first is not None:
            user.workspace_id = first.workspace_id
            user.role = first.role

    if user.current_workspace_id is None and user.workspace_id is not None:
        user.current_workspace_id = user.workspace_id
    return created


# ═════════════════════════════════════════════════════════════════════
# TenancyService
# ═════════════════════════════════════════════════════════════════════


class TenancyService:
    """Async workspace and membership operations."""

    # ─────────────────────────────────────────────────────────────────
    # Loaders
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def get_workspace(db: AsyncSession, workspace_id: uuid.UUID) -> Workspace:
        workspace = await db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundException("Workspace", str(workspace_id))
        return workspace

    @staticmethod
    async def get_access_context(
        db: AsyncSession,
        user_id: uuid.UUID,
        workspace_id: uuid.UUID,
        *,
        require_hr: bool = False,
    ) -> AccessContext:
        """Load actor + workspace and resolve the actor's role there."""
        user = await TenancyService.get_user(db, user_id)
        workspace = await TenancyService.get_workspace(db, workspace_id)
        if not workspace.is_active:
            raise ForbiddenException("Workspace has been deactivated.")

        if require_hr:
            role = require_hr_role(user, workspace_id)
        else:
            role = resolve_role(user, workspace_id)

        return AccessContext(
            user=user,
            workspace=workspace,
            role=role,
            is_system_admin=user.is_system_admin,
        )

    @staticmethod
    async def _require_operator(db: AsyncSession, actor_id: uuid.UUID) -> User:
        actor = await TenancyService.get_user(db, actor_id)
        if not actor.is_system_admin:
            raise ForbiddenException("Only system administrators can manage workspaces.")
        return actor

    # ─────────────────────────────────────────────────────────────────
    # Workspace lifecycle
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_workspace(
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: WorkspaceCreate,
    ) -> Workspace:
        await TenancyService._require_operator(db, actor_id)
        workspace = Workspace(name=data.name, type=data.type, is_active=True, user_count=0)
        apply_type_defaults(workspace)
        db.add(workspace)
        await db.flush()
        logger.info("Workspace %s created (%s)", workspace.id, workspace.type.value)
        return workspace

    @staticmethod
    async def change_workspace_type(
        db: AsyncSession,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        new_type: WorkspaceType,
    ) -> Workspace:
        await TenancyService._require_operator(db, actor_id)
        workspace = await TenancyService.get_workspace(db, workspace_id)
        workspace.type = new_type
        apply_type_defaults(workspace)
        await db.flush()
        logger.info("Workspace %s switched to %s", workspace.id, new_type.value)
        return workspace

    @staticmethod
    async def set_workspace_active(
        db: AsyncSession,
        actor_id: uuid.UUID,
        workspace_id: uuid.UUID,
        is_active: bool,
    ) -> Workspace:
        await TenancyService._require_operator(db, actor_id)
        workspace = await TenancyService.get_workspace(db, workspace_id)
        workspace.is_active = is_active
        await db.flush()
        return workspace

    # ─────────────────────────────────────────────────────────────────
    # Memberships
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def add_member(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
        role: WorkspaceRole = WorkspaceRole.member,
    ) -> WorkspaceMembership:
        """Add (or reactivate) a membership; an active one only changes role."""
        workspace = await TenancyService.get_workspace(db, workspace_id)
        user = await TenancyService.get_user(db, user_id)

        membership = user.membership_for(workspace_id, active_only=False)
        if membership is not None and membership.is_active:
            membership.role = role
        else:
            if not workspace.can_add_user():
                raise ForbiddenException(
                    f"Workspace user limit reached ({workspace.max_users})."
                )
            if membership is None:
                membership = WorkspaceMembership(
                    user_id=user.id,
                    workspace_id=workspace_id,
                    role=role,
                    is_active=True,
                )
                user.memberships.append(membership)
            else:
                membership.is_active = True
                membership.role = role
            workspace.user_count += 1

        if user.current_workspace_id is None:
            user.current_workspace_id = workspace_id
        if user.workspace_id is None or user.workspace_id == workspace_id:
            user.workspace_id = workspace_id
            user.role = role

        await db.flush()
        return membership

    @staticmethod
    async def remove_member(
        db: AsyncSession,
        workspace_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> WorkspaceMembership:
        """Deactivate a membership and move the user's pointers elsewhere."""
        workspace = await TenancyService.get_workspace(db, workspace_id)
        user = await TenancyService.get_user(db, user_id)

        membership = user.membership_for(workspace_id)
        if membership is None:
            raise NotFoundException("WorkspaceMembership", f"{user_id}@{workspace_id}")

        membership.is_active = False
        workspace.user_count = max(0, workspace.user_count - 1)

        fallback = next((m for m in user.memberships if m.is_active), None)
        if user.current_workspace_id == workspace_id:
            user.current_workspace_id = fallback.workspace_id if fallback else None
        if user.workspace_id == workspace_id:
            user.workspace_id = fallback.workspace_id if fallback else None
            user.role = fallback.role if fallback else None

        await db.flush()
        return membership

    @staticmethod
    async def switch_workspace(
        db: AsyncSession,
        user_id: uuid.UUID,
        workspace_id: uuid.UUID,
    ) -> User:
        user = await TenancyService.get_user(db, user_id)
        workspace = await TenancyService.get_workspace(db, workspace_id)
        if not user.is_system_admin and user.membership_for(workspace_id) is None:
            raise NotMemberException(workspace_id)
        if not workspace.is_active:
            raise ForbiddenException("Workspace has been deactivated.")
        user.current_workspace_id = workspace_id
        await db.flush()
        return user
