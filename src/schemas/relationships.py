"""
Guardian and mentor relationship schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.kernel.models.relationship import MentorshipStatus


class GuardianLinkCreate(BaseModel):
    """Link a child to a parent. Unset flags default to true."""

    child_id: Optional[uuid.UUID] = None
    relationship_type: Optional[str] = Field(None, max_length=50)
    is_primary: Optional[bool] = None
    can_view_progress: Optional[bool] = None
    can_manage_settings: Optional[bool] = None


class GuardianLinkResponse(BaseModel):
    id: uuid.UUID
    parent_id: uuid.UUID
    child_id: uuid.UUID
    relationship_type: str
    is_primary: bool
    can_view_progress: bool
    can_manage_settings: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ChildResponse(BaseModel):
    """A linked child's public profile with the edge's flags."""

    id: uuid.UUID
    username: str
    email: str
    avatar_url: Optional[str] = None
    points: int
    level: int
    streak_days: int
    last_activity: Optional[datetime] = None
    relationship_type: str
    is_primary: bool
    can_view_progress: bool
    can_manage_settings: bool


class MentorLinkCreate(BaseModel):
    """Link a student to a mentor."""

    student_id: Optional[uuid.UUID] = None
    organization_name: Optional[str] = Field(None, max_length=255)
    start_date: Optional[datetime] = None
    notes: Optional[str] = None


class MentorLinkUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    status: Optional[MentorshipStatus] = None
    notes: Optional[str] = None
    end_date: Optional[datetime] = None


class MentorLinkResponse(BaseModel):
    id: uuid.UUID
    mentor_id: uuid.UUID
    student_id: uuid.UUID
    organization_name: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    status: MentorshipStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentResponse(BaseModel):
    """A linked student's public profile with the edge's details."""

    id: uuid.UUID
    username: str
    email: str
    avatar_url: Optional[str] = None
    points: int
    level: int
    streak_days: int
    last_activity: Optional[datetime] = None
    organization_name: Optional[str] = None
    start_date: datetime
    status: MentorshipStatus
    notes: Optional[str] = None


class ProgressResponse(BaseModel):
    """Progress figures of a supervised principal."""

    user_id: uuid.UUID
    username: str
    points: int
    level: int
    streak_days: int
    member_since: datetime
    last_activity: Optional[datetime] = None
