"""
Common schema types used across the API.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """
    Standard error response.

    Denials add what was required (``required_roles``,
    ``required_permissions``, ``relationship_kind``...) as extra keys.
    """

    detail: str
    code: Optional[str] = None

    class Config:
        extra = "allow"


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str
    data: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    database: str = "connected"
