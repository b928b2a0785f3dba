"""
Pytest fixtures for MindSpark tests.

Every test gets its own SQLite file, seeded role catalog and audit log.
API tests talk to the app in-process through httpx's ASGI transport; the
lifespan does not run there, so the fixtures put the store and the audit
log on ``app.state`` themselves.
"""

import os
import uuid
from typing import AsyncGenerator

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./mindspark_test_unused.db"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings

get_settings.cache_clear()

from src.database import Database
from src.kernel.audit.audit_log import AuditLog
from src.kernel.identity.identity_service import IdentityService
from src.kernel.models.principal import Principal
from src.kernel.permissions.authorization import AuthorizationEngine
from src.kernel.permissions.catalog import RoleCatalog
from src.kernel.permissions.grant_ledger import GrantLedger
from src.main import create_app

PASSWORD = "Secret123!"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'mindspark.db'}")


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """A fresh store with the default role catalog."""
    database = Database(settings)
    await database.create_all()
    async with database.session_factory() as session:
        await RoleCatalog(session).ensure_defaults()
        await session.commit()

    yield database

    await database.dispose()


@pytest_asyncio.fixture
async def audit_log(database: Database) -> AsyncGenerator[AuditLog, None]:
    audit_log = AuditLog(database.session_factory)
    yield audit_log
    await audit_log.drain()


@pytest_asyncio.fixture
async def db_session(
    database: Database,
    audit_log: AuditLog,
) -> AsyncGenerator[AsyncSession, None]:
    """Kernel-level session; rolled back before the audit log drains."""
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def identity(db_session: AsyncSession, audit_log: AuditLog) -> IdentityService:
    return IdentityService(db_session, audit_log)


@pytest.fixture
def grants(db_session: AsyncSession) -> GrantLedger:
    return GrantLedger(db_session)


@pytest.fixture
def engine(db_session: AsyncSession, audit_log: AuditLog) -> AuthorizationEngine:
    return AuthorizationEngine(db_session, audit_log)


@pytest_asyncio.fixture
async def make_principal(identity: IdentityService):
    """Factory registering a principal with the given role in the test session."""

    async def _make(name: str, role: str = "student") -> Principal:
        principal = await identity.register(
            email=f"{name}@example.com",
            password=PASSWORD,
            username=name,
            role=role,
        )
        if role not in identity.settings.self_registrable_roles:
            await identity.grants.assign_role(principal.id, role)
        return principal

    return _make


# API

@pytest_asyncio.fixture
async def app(settings: Settings, database: Database, audit_log: AuditLog):
    app = create_app(settings)
    app.state.database = database
    app.state.audit_log = audit_log
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def register(client: AsyncClient):
    """Register through the API; returns (principal id, auth headers)."""

    async def _register(name: str, role: str = "student") -> tuple[str, dict]:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": f"{name}@example.com",
                "password": PASSWORD,
                "username": name,
                "role": role,
            },
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}

    return _register


@pytest.fixture
def promote(database: Database):
    """Grant a role directly in the store, bypassing the API."""

    async def _promote(principal_id: str, role: str) -> None:
        async with database.session_factory() as session:
            await GrantLedger(session).assign_role(uuid.UUID(principal_id), role)
            await session.commit()

    return _promote


@pytest_asyncio.fixture
async def admin(register, promote) -> tuple[str, dict]:
    admin_id, headers = await register("root_admin")
    await promote(admin_id, "admin")
    return admin_id, headers
