"""Unit tests for bearer token issue and verification."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from src.kernel.errors import ExpiredTokenError, InvalidTokenError
from src.kernel.identity.jwt import TokenService

SECRET = "unit-test-secret-key-0123456789abcdef"


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret_key=SECRET, algorithm="HS256", ttl=timedelta(minutes=30))


class TestTokenService:

    def test_issue_then_verify_returns_claims(self, tokens: TokenService):
        principal_id = uuid.uuid4()
        issued = tokens.issue(principal_id, "kid@example.com", "kid")

        claims = tokens.verify(issued.access_token)

        assert claims.principal_id == principal_id
        assert claims.email == "kid@example.com"
        assert claims.username == "kid"
        assert issued.token_type == "bearer"
        assert issued.expires_in == 30 * 60

    def test_expiry_is_absolute_from_issue(self, tokens: TokenService):
        before = datetime.now(timezone.utc)
        issued = tokens.issue(uuid.uuid4(), "a@example.com", "a")
        claims = tokens.verify(issued.access_token)

        assert claims.exp - claims.iat == timedelta(minutes=30)
        assert claims.iat >= before.replace(microsecond=0)

    def test_expired_token_is_distinct_from_invalid(self, tokens: TokenService):
        issued = tokens.issue(uuid.uuid4(), "a@example.com", "a", ttl=timedelta(seconds=-5))

        with pytest.raises(ExpiredTokenError) as exc_info:
            tokens.verify(issued.access_token)
        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "expired_token"

    def test_wrong_secret_is_invalid(self, tokens: TokenService):
        other = TokenService(secret_key="another-secret-key-0123456789abcdef")
        issued = other.issue(uuid.uuid4(), "a@example.com", "a")

        with pytest.raises(InvalidTokenError):
            tokens.verify(issued.access_token)

    def test_garbage_is_invalid(self, tokens: TokenService):
        with pytest.raises(InvalidTokenError):
            tokens.verify("not.a.jwt")

    def test_missing_claims_are_invalid(self, tokens: TokenService):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "exp": now + timedelta(minutes=5), "iat": now},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            tokens.verify(token)

    def test_non_uuid_subject_is_invalid(self, tokens: TokenService):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "42",
                "email": "a@example.com",
                "username": "a",
                "exp": now + timedelta(minutes=5),
                "iat": now,
            },
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            tokens.verify(token)
