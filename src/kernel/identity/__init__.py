"""
Identity Core - credentials, bearer tokens and principal management.
"""

from src.kernel.identity.password import PasswordHasher, hash_password, verify_password
from src.kernel.identity.jwt import (
    IssuedToken,
    TokenClaims,
    TokenService,
    get_token_service,
)
from src.kernel.identity.identity_service import IdentityService

__all__ = [
    "PasswordHasher",
    "hash_password",
    "verify_password",
    "TokenService",
    "TokenClaims",
    "IssuedToken",
    "get_token_service",
    "IdentityService",
]
