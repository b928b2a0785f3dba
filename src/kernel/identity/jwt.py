"""
Bearer token issue and verification.

Tokens are HS256 JWTs binding a principal id, email and username with an
absolute expiry. Verification never touches the store: the claims may be
stale, so callers reload the principal before trusting anything else.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError

from src.config import get_settings
from src.kernel.errors import ExpiredTokenError, InvalidTokenError


class TokenClaims(BaseModel):
    """Verified (but not freshness-checked) token payload."""

    sub: str  # Principal ID
    email: str
    username: str
    exp: datetime
    iat: datetime

    @property
    def principal_id(self) -> uuid.UUID:
        return uuid.UUID(self.sub)


class IssuedToken(BaseModel):
    """A freshly signed bearer token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until the token expires
    expires_at: datetime


class TokenService:
    """
    Stateless token signer/verifier.

    Only the shared secret, the algorithm and the clock are read; there is
    no revocation list.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl: Optional[timedelta] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.ttl = ttl or timedelta(minutes=settings.access_token_expire_minutes)

    def issue(
        self,
        principal_id: uuid.UUID,
        email: str,
        username: str,
        ttl: Optional[timedelta] = None,
    ) -> IssuedToken:
        """
        Sign a token for a principal.

        Args:
            principal_id: Principal's unique identifier
            email: Principal's email
            username: Principal's handle
            ttl: Override of the configured lifetime

        Returns:
            IssuedToken with the encoded JWT and its expiry
        """
        now = datetime.now(timezone.utc)
        lifetime = ttl if ttl is not None else self.ttl
        expire = now + lifetime

        payload = {
            "sub": str(principal_id),
            "email": email,
            "username": username,
            "exp": expire,
            "iat": now,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return IssuedToken(
            access_token=token,
            expires_in=max(int(lifetime.total_seconds()), 0),
            expires_at=expire,
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and check a token.

        Raises:
            ExpiredTokenError: The signature is valid but the token is past its expiry
            InvalidTokenError: Malformed token, bad signature or missing claims
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except ExpiredSignatureError:
            raise ExpiredTokenError()
        except JWTError:
            raise InvalidTokenError()

        try:
            return TokenClaims(
                sub=str(uuid.UUID(payload["sub"])),
                email=payload["email"],
                username=payload["username"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError, ValidationError):
            raise InvalidTokenError()


def get_token_service() -> TokenService:
    """Token service bound to the current settings."""
    return TokenService()
