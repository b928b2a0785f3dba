"""
Append-only audit trail.

Every sensitive action and every denied authorization check is recorded
here. Rows are never updated or deleted by the application; retention is
handled outside of it.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, generate_uuid, utcnow


class AuditAction(str, Enum):
    """Well-known audit action names."""

    # Access control
    UNAUTHORIZED_ACCESS_ATTEMPT = "unauthorized_access_attempt"
    ASSIGN_ROLE = "assign_role"
    REMOVE_ROLE = "remove_role"

    # Relationships
    ADD_CHILD = "add_child"
    ADD_STUDENT = "add_student"
    UPDATE_STUDENT_RELATIONSHIP = "update_student_relationship"
    VIEW_CHILD_PROGRESS = "view_child_progress"
    VIEW_STUDENT_PROGRESS = "view_student_progress"

    # Identity
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    ACCOUNT_DELETED = "account_deleted"


class AuditEntry(Base):
    """
    One immutable audit record.

    ``user_id`` deliberately has no foreign key: entries outlive the
    principal they describe.
    """

    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    # Actor (system events may not have one)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    # What happened, to what
    action: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    resource: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    # Origin
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_activity_logs_user_time", "user_id", "created_at"),
        Index("ix_activity_logs_action_time", "action", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action} {self.resource}:{self.resource_id}>"
