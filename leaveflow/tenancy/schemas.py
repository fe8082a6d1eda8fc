"""Tenancy Pydantic v2 schemas — workspaces and memberships."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leaveflow.common.constants import PlanType, WorkspaceRole, WorkspaceType


class WorkspaceCreate(BaseModel):
    """Payload for creating a workspace (operator only)."""

    name: str = Field(..., min_length=1, max_length=100)
    type: WorkspaceType = WorkspaceType.community


class WorkspaceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    type: WorkspaceType
    is_active: bool
    plan_type: PlanType
    bulk_user_import: bool
    audit_logs: bool
    advanced_automation: bool
    custom_branding: bool
    max_users: Optional[int] = None
    max_tasks: Optional[int] = None
    max_teams: Optional[int] = None
    max_storage_gb: Optional[int] = None
    user_count: int
    created_at: datetime


class MembershipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    workspace_id: uuid.UUID
    role: WorkspaceRole
    is_active: bool
    joined_at: datetime
