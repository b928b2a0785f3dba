"""
Fire-and-forget audit trail.

``AuditLog.record`` is what request code calls: it builds the entry,
schedules its insert on a dedicated session and returns at once. The
request never awaits the write, and a failed write is reported to the
operational log only. Because the insert uses its own session, rolling
back the request transaction never erases a denial record.

Usage:
    audit_log.record(
        AuditAction.ASSIGN_ROLE,
        user_id=admin.id,
        resource="users",
        resource_id=target_id,
        details={"role": "mentor"},
        ip_address=client_ip,
    )
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any, NamedTuple, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.kernel.models.audit_entry import AuditAction, AuditEntry
from src.kernel.models.base import generate_uuid, utcnow
from src.kernel.models.principal import Principal
from src.logging_config import get_logger

logger = get_logger(__name__)


class AuditRecord(NamedTuple):
    """An audit entry joined with its actor's public identity."""

    entry: AuditEntry
    username: Optional[str]
    email: Optional[str]


def serialize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Convert detail values to JSON-serializable types."""
    return {key: _serialize_value(value) for key, value in details.items()}


def _serialize_value(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_details(value)
    if isinstance(value, (set, frozenset)):
        return sorted(_serialize_value(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    return value


class AuditLog:
    """
    Append-only audit sink.

    There is no update or delete operation. Pending writes are tracked so
    shutdown (and tests) can wait for them with ``drain``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    def record(
        self,
        action: Union[AuditAction, str],
        *,
        user_id: Optional[uuid.UUID] = None,
        resource: Optional[str] = None,
        resource_id: Optional[Union[uuid.UUID, str]] = None,
        details: Optional[dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditEntry:
        """
        Record an action without waiting for it to be stored.

        Must be called from a running event loop. The returned entry is
        not yet durable.
        """
        entry = AuditEntry(
            id=generate_uuid(),
            user_id=user_id,
            action=action.value if isinstance(action, AuditAction) else action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=serialize_details(details or {}),
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utcnow(),
        )

        task = asyncio.create_task(self._persist(entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return entry

    async def _persist(self, entry: AuditEntry) -> None:
        try:
            await self.write(entry)
        except Exception:
            logger.exception(
                "Failed to write audit entry",
                extra={
                    "audit_action": entry.action,
                    "audit_user_id": str(entry.user_id) if entry.user_id else None,
                },
            )

    async def write(self, entry: AuditEntry) -> AuditEntry:
        """Durably insert one entry on a dedicated session."""
        async with self.session_factory() as session:
            session.add(entry)
            await session.commit()
        return entry

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def query(
        self,
        principal_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[AuditRecord], int]:
        """
        Page through the trail, newest first.

        Args:
            principal_id: Only entries whose actor is this principal
            action: Only entries with this action name
            limit: Page size
            offset: Entries to skip

        Returns:
            Tuple of (records, total matching entries)
        """
        query = select(AuditEntry, Principal.username, Principal.email).outerjoin(
            Principal, Principal.id == AuditEntry.user_id
        )
        count_query = select(func.count(AuditEntry.id))

        if principal_id is not None:
            query = query.where(AuditEntry.user_id == principal_id)
            count_query = count_query.where(AuditEntry.user_id == principal_id)
        if action:
            query = query.where(AuditEntry.action == action)
            count_query = count_query.where(AuditEntry.action == action)

        query = query.order_by(AuditEntry.created_at.desc()).offset(offset).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            records = [AuditRecord(*row) for row in result.all()]
            total = (await session.execute(count_query)).scalar() or 0

        return records, total
