"""
Delegated-access relationship edges between principals.

Two kinds exist. Guardian links (parent -> child) carry capability flags
and have no lifecycle. Mentor links (mentor -> student) carry a status
that ends the relationship without deleting the row.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow


class RelationshipKind(str, Enum):
    """Kinds of supervisor -> supervised edges."""
    GUARDIAN = "guardian"
    MENTOR = "mentor"


class GuardianCapability(str, Enum):
    """Capability flags on a guardian link (values are column names)."""
    VIEW_PROGRESS = "can_view_progress"
    MANAGE_SETTINGS = "can_manage_settings"


class MentorshipStatus(str, Enum):
    """Mentor link lifecycle."""
    ACTIVE = "active"
    ENDED = "ended"


class GuardianLink(Base, TimestampMixin):
    """Parent (supervisor) -> child (supervised) edge."""

    __tablename__ = "parent_child_relationships"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    parent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    child_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    relationship_type: Mapped[str] = mapped_column(
        String(50),
        default="parent",
        nullable=False,
    )

    # Capability flags
    is_primary: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_view_progress: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_manage_settings: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("parent_id", "child_id", name="uq_parent_child"),
    )

    def allows(self, capability: GuardianCapability) -> bool:
        return bool(getattr(self, capability.value))

    def __repr__(self) -> str:
        return f"<GuardianLink {self.parent_id}->{self.child_id}>"


class MentorLink(Base, TimestampMixin):
    """Mentor (supervisor) -> student (supervised) edge."""

    __tablename__ = "mentor_student_relationships"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    mentor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=MentorshipStatus.ACTIVE.value,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("mentor_id", "student_id", name="uq_mentor_student"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MentorshipStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<MentorLink {self.mentor_id}->{self.student_id} {self.status}>"
