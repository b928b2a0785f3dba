"""
Authentication and profile schemas.
"""

import re
import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


def _check_username(v: str) -> str:
    v = v.strip()
    if not USERNAME_PATTERN.match(v):
        raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
    return v


class RegisterRequest(BaseModel):
    """Registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    username: str = Field(..., min_length=3, max_length=50)
    role: Optional[str] = Field(None, description="student, parent or mentor")
    date_of_birth: Optional[date] = None
    parent_email: Optional[EmailStr] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _check_username(v)


class LoginRequest(BaseModel):
    """Login request."""

    email: EmailStr
    password: str


class ProfileResponse(BaseModel):
    """Principal profile with its effective roles."""

    id: uuid.UUID
    email: str
    username: str
    avatar_url: Optional[str] = None
    date_of_birth: Optional[date] = None
    parent_email: Optional[str] = None
    preferences: dict[str, Any] = {}
    points: int
    level: int
    streak_days: int
    last_activity: Optional[datetime] = None
    created_at: datetime
    roles: list[str] = []
    permissions: list[str] = []

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Profile update request; omitted fields are left unchanged."""

    username: Optional[str] = Field(None, min_length=3, max_length=50)
    avatar_url: Optional[str] = Field(None, max_length=500)
    date_of_birth: Optional[date] = None
    parent_email: Optional[EmailStr] = None
    preferences: Optional[dict[str, Any]] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        return _check_username(v) if v is not None else v


class TokenResponse(BaseModel):
    """Bearer token issued at registration or login."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: ProfileResponse


class ChangePasswordRequest(BaseModel):
    """Password change request."""

    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class DeleteAccountRequest(BaseModel):
    """Account deletion needs the password as confirmation."""

    password: str = Field(..., min_length=1)
