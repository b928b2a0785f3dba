"""
Audit trail and administration schemas.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from src.schemas.relationships import ProgressResponse


class ActivityLogResponse(BaseModel):
    """One audit entry, joined with its actor's handle and email."""

    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    username: Optional[str] = None
    email: Optional[str] = None
    action: str
    resource: Optional[str] = None
    resource_id: Optional[str] = None
    details: dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class ActivityLogListResponse(BaseModel):
    logs: list[ActivityLogResponse]
    total: int
    limit: int
    offset: int


class StudentProgressResponse(BaseModel):
    """Mentor view of a student: progress plus recent activity."""

    progress: ProgressResponse
    recent_activities: list[ActivityLogResponse]


class AdminUserResponse(BaseModel):
    id: uuid.UUID
    email: str
    username: str
    is_active: bool
    points: int
    level: int
    last_activity: Optional[datetime] = None
    created_at: datetime
    roles: list[str] = []

    class Config:
        from_attributes = True


class AdminUserListResponse(BaseModel):
    users: list[AdminUserResponse]
    total: int
    limit: int
    offset: int


class StatisticsResponse(BaseModel):
    total_users: int
    new_users_week: int
    active_users_today: int
    total_students: int
    total_parents: int
    total_mentors: int
