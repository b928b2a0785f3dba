"""
Access-control error taxonomy.

Every failure the kernel can report to a caller is an ``AccessError``
subclass carrying an HTTP status, a stable machine code and optional
structured details. The API layer turns them into JSON responses.
"""

from typing import Any, Optional


class AccessError(Exception):
    """Base class for authentication and authorization failures."""

    status_code: int = 400
    code: str = "access_error"
    default_message: str = "Access error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details}


# Authentication

class AuthenticationRequiredError(AccessError):
    status_code = 401
    code = "authentication_required"
    default_message = "Access token required"


class InvalidTokenError(AccessError):
    status_code = 403
    code = "invalid_token"
    default_message = "The provided token is invalid"


class ExpiredTokenError(AccessError):
    status_code = 403
    code = "expired_token"
    default_message = "The provided token has expired. Please log in again"


class PrincipalNotFoundError(AccessError):
    status_code = 401
    code = "principal_not_found"
    default_message = "The user associated with this token no longer exists"


# Authorization

class InsufficientRoleError(AccessError):
    status_code = 403
    code = "insufficient_role"
    default_message = "Insufficient permissions"


class InsufficientPermissionError(AccessError):
    status_code = 403
    code = "insufficient_permission"
    default_message = "Insufficient permissions"


class RelationshipNotFoundError(AccessError):
    status_code = 403
    code = "relationship_not_found"
    default_message = "You do not have permission to access this user's data"


class CapabilityDeniedError(AccessError):
    status_code = 403
    code = "capability_denied"
    default_message = "The relationship does not grant this capability"


class AuthorizationUnavailableError(AccessError):
    """The store failed while resolving a decision (not a denial)."""

    status_code = 500
    code = "authorization_unavailable"
    default_message = "Unable to verify access at this time"


# Lookups and validation

class RoleNotFoundError(AccessError):
    status_code = 404
    code = "role_not_found"
    default_message = "Role not found"


class RecordNotFoundError(AccessError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class IdentifierValidationError(AccessError):
    status_code = 400
    code = "validation_error"
    default_message = "A required identifier is missing"


class DuplicatePrincipalError(AccessError):
    status_code = 409
    code = "duplicate_principal"
    default_message = "Email or username already registered"


class InvalidCredentialsError(AccessError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password"
