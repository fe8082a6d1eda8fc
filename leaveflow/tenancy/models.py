"""Tenancy ORM models: Workspace, User, WorkspaceMembership."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import (
    EmploymentStatus,
    PlanType,
    WorkspaceRole,
    WorkspaceType,
)
from leaveflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    type: Mapped[WorkspaceType] = mapped_column(
        sa.Enum(WorkspaceType, name="workspace_type"),
        nullable=False,
        default=WorkspaceType.community,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)

    # Feature flags (derived from type)
    bulk_user_import: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    audit_logs: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)
    advanced_automation: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, nullable=False
    )
    custom_branding: Mapped[bool] = mapped_column(sa.Boolean, default=False, nullable=False)

    # Limits (NULL = unlimited)
    max_users: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_tasks: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_teams: Mapped[Optional[int]] = mapped_column(sa.Integer)
    max_storage_gb: Mapped[Optional[int]] = mapped_column(sa.Integer)

    user_count: Mapped[int] = mapped_column(sa.Integer, default=0, nullable=False)
    plan_type: Mapped[PlanType] = mapped_column(
        sa.Enum(PlanType, name="plan_type"),
        nullable=False,
        default=PlanType.free,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    memberships: Mapped[list[WorkspaceMembership]] = relationship(
        back_populates="workspace"
    )

    @property
    def is_core(self) -> bool:
        return self.type == WorkspaceType.core

    def can_add_user(self) -> bool:
        if self.is_core or self.max_users is None:
            return True
        return self.user_count < self.max_users

    def has_feature(self, feature: str) -> bool:
        if feature not in FEATURE_FLAGS:
            raise KeyError(feature)
        return bool(getattr(self, feature))

    def __repr__(self) -> str:
        return f"<Workspace {self.name} ({self.type.value})>"


FEATURE_FLAGS = (
    "bulk_user_import",
    "audit_logs",
    "advanced_automation",
    "custom_branding",
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(sa.String(200), nullable=False)

    # Legacy single-workspace fields, kept in sync with memberships
    role: Mapped[Optional[WorkspaceRole]] = mapped_column(
        sa.Enum(WorkspaceRole, name="workspace_role")
    )
    workspace_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workspaces.id")
    )

    current_workspace_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("workspaces.id")
    )
    is_system_admin: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, nullable=False
    )
    employment_status: Mapped[EmploymentStatus] = mapped_column(
        sa.Enum(EmploymentStatus, name="employment_status"),
        nullable=False,
        default=EmploymentStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    memberships: Mapped[list[WorkspaceMembership]] = relationship(
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def membership_for(
        self,
        workspace_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Optional[WorkspaceMembership]:
        for membership in self.memberships:
            if membership.workspace_id != workspace_id:
                continue
            if active_only and not membership.is_active:
                continue
            return membership
        return None

    def active_workspace_ids(self) -> list[uuid.UUID]:
        return [m.workspace_id for m in self.memberships if m.is_active]

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class WorkspaceMembership(Base):
    __tablename__ = "workspace_memberships"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "workspace_id", name="uq_membership_user_workspace"),
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
    role: Mapped[WorkspaceRole] = mapped_column(
        sa.Enum(WorkspaceRole, name="workspace_role"),
        nullable=False,
        default=WorkspaceRole.member,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )

    # Relationships
    user: Mapped[User] = relationship(back_populates="memberships")
    workspace: Mapped[Workspace] = relationship(back_populates="memberships")

    def __repr__(self) -> str:
        return f"<WorkspaceMembership {self.user_id}@{self.workspace_id} {self.role.value}>"
