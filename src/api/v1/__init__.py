"""
API v1 routes.
"""

from fastapi import APIRouter

from src.api.v1 import admin, auth, relationships, roles
from src.schemas.common import ErrorResponse

# Shape of every AccessError body, documented once for the whole version
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or malformed identifier"},
    401: {"model": ErrorResponse, "description": "Authentication required"},
    403: {"model": ErrorResponse, "description": "Access denied"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "Access could not be decided"},
}

router = APIRouter(responses=ERROR_RESPONSES)

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(roles.router, tags=["Roles"])
router.include_router(relationships.router, tags=["Relationships"])
router.include_router(admin.router, tags=["Administration"])
