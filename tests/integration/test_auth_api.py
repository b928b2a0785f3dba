"""Integration tests for /api/v1/auth endpoints."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from src.kernel.identity.jwt import TokenService

PASSWORD = "Secret123!"


@pytest.mark.asyncio
async def test_register_returns_token_and_profile(client: AsyncClient):
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "NewUser@example.com",
            "password": PASSWORD,
            "username": "newuser",
            "role": "mentor",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] > 0
    assert data["user"]["email"] == "newuser@example.com"
    assert data["user"]["roles"] == ["mentor"]
    assert "students.manage" in data["user"]["permissions"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, register):
    await register("first")

    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "first@example.com", "password": PASSWORD, "username": "second"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_principal"
    assert response.json()["field"] == "email"


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": "weak@example.com", "password": "password", "username": "weak"},
    )

    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "body.password"


@pytest.mark.asyncio
async def test_login(client: AsyncClient, register):
    await register("kid")

    ok = await client.post("/api/v1/auth/login", json={"email": "kid@example.com", "password": PASSWORD})
    bad = await client.post("/api/v1/auth/login", json={"email": "kid@example.com", "password": "Nope1234"})

    assert ok.status_code == 200
    assert ok.json()["user"]["username"] == "kid"
    assert bad.status_code == 401
    assert bad.json()["code"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_profile_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/profile")

    assert response.status_code == 401
    assert response.json()["code"] == "authentication_required"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_malformed_token(client: AsyncClient):
    response = await client.get(
        "/api/v1/auth/profile", headers={"Authorization": "Bearer not-a-token"}
    )

    assert response.status_code == 403
    assert response.json()["code"] == "invalid_token"


@pytest.mark.asyncio
async def test_expired_token(client: AsyncClient, register):
    user_id, _ = await register("kid")
    token = TokenService().issue(
        uuid.UUID(user_id), "kid@example.com", "kid", ttl=timedelta(seconds=-1)
    )

    response = await client.get(
        "/api/v1/auth/profile",
        headers={"Authorization": f"Bearer {token.access_token}"},
    )

    assert response.status_code == 403
    assert response.json()["code"] == "expired_token"


@pytest.mark.asyncio
async def test_token_for_deleted_principal(client: AsyncClient):
    token = TokenService().issue(uuid.uuid4(), "ghost@example.com", "ghost")

    response = await client.get(
        "/api/v1/auth/profile",
        headers={"Authorization": f"Bearer {token.access_token}"},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "principal_not_found"


@pytest.mark.asyncio
async def test_profile_reflects_current_roles(client: AsyncClient, register, promote):
    user_id, headers = await register("kid")
    await promote(user_id, "mentor")

    response = await client.get("/api/v1/auth/profile", headers=headers)

    assert response.status_code == 200
    assert response.json()["roles"] == ["mentor", "student"]


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, register):
    _, headers = await register("kid")

    response = await client.put(
        "/api/v1/auth/profile",
        json={"username": "kiddo", "preferences": {"theme": "dark"}},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["username"] == "kiddo"
    assert response.json()["preferences"] == {"theme": "dark"}


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, register):
    _, headers = await register("kid")

    wrong = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "Nope1234", "new_password": "Another123"},
        headers=headers,
    )
    right = await client.post(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Another123"},
        headers=headers,
    )
    login = await client.post(
        "/api/v1/auth/login", json={"email": "kid@example.com", "password": "Another123"}
    )

    assert wrong.status_code == 401
    assert right.status_code == 200
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_delete_account(client: AsyncClient, register):
    _, headers = await register("kid")

    response = await client.request(
        "DELETE", "/api/v1/auth/account", json={"password": PASSWORD}, headers=headers
    )
    after = await client.get("/api/v1/auth/profile", headers=headers)

    assert response.status_code == 200
    assert after.status_code == 401


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    given = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    bogus = await client.get("/health", headers={"X-Request-ID": "has spaces"})

    assert given.headers["X-Request-ID"] == "trace-123"
    assert bogus.headers["X-Request-ID"] != "has spaces"
    assert uuid.UUID(bogus.headers["X-Request-ID"])


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "connected"
