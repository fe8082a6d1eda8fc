"""Narrow interfaces to the HR core's external collaborators.

The HR Action Service only talks to audit persistence, notification delivery
and the employee directory through these protocols. Each has a default
implementation good enough for a single-process deployment and for tests.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Protocol

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import EmploymentStatus
from leaveflow.common.exceptions import NotFoundException
from leaveflow.hr.events import HrEventType, template_for
from leaveflow.tenancy.models import User

logger = logging.getLogger(__name__)


class DeliveryResult(BaseModel):
    success: bool
    event: HrEventType
    template_code: Optional[str] = None
    reason: Optional[str] = None


# ── Protocols ───────────────────────────────────────────────────────

class AuditLog(Protocol):
    async def record(
        self,
        actor_id: uuid.UUID,
        workspace_id: Optional[uuid.UUID],
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        details: Optional[dict[str, Any]] = None,
        source_ip: Optional[str] = None,
    ) -> None: ...


class EventDispatcher(Protocol):
    async def handle(
        self,
        event_type: HrEventType,
        payload: dict[str, Any],
        workspace_id: uuid.UUID,
    ) -> DeliveryResult: ...


class EmploymentDirectory(Protocol):
    async def get_employment_status(self, user_id: uuid.UUID) -> EmploymentStatus: ...


# ── Default implementations ─────────────────────────────────────────

class DatabaseAuditLog:
    """Writes one ``audit_trail`` row per call, in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        actor_id: uuid.UUID,
        workspace_id: Optional[uuid.UUID],
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        details: Optional[dict[str, Any]] = None,
        source_ip: Optional[str] = None,
    ) -> None:
        async with self._session_factory() as session:
            await create_audit_entry(
                session,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                workspace_id=workspace_id,
                details=details,
                ip_address=source_ip,
            )
            await session.commit()


class LoggingEventDispatcher:
    """Resolves the template for an event and logs the delivery request.

    Stands in for an email gateway; it never raises for a missing recipient
    or template, it reports them in the returned :class:`DeliveryResult`.
    """

    async def handle(
        self,
        event_type: HrEventType,
        payload: dict[str, Any],
        workspace_id: uuid.UUID,
    ) -> DeliveryResult:
        template_code = template_for(event_type)
        if template_code is None:
            logger.warning("No template mapping for event %s", event_type.value)
            return DeliveryResult(
                success=False, event=event_type, reason="No template mapping",
            )

        recipient = payload.get("subject_email")
        if not recipient:
            logger.info("Skipping %s: no recipient email", event_type.value)
            return DeliveryResult(
                success=False,
                event=event_type,
                template_code=template_code,
                reason="No recipient email",
            )

        logger.info(
            "Queued %s (template %s) to %s in workspace %s",
            event_type.value, template_code, recipient, workspace_id,
        )
        return DeliveryResult(success=True, event=event_type, template_code=template_code)


class DatabaseEmploymentDirectory:
    """Reads ``User.employment_status``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_employment_status(self, user_id: uuid.UUID) -> EmploymentStatus:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise NotFoundException("User", str(user_id))
            return user.employment_status
