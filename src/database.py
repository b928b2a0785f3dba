"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.

The engine is owned by a ``Database`` object built by the application
factory; request handlers reach it only through ``src.api.deps``.
"""

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.config import Settings


def create_engine_for(settings: Settings) -> AsyncEngine:
    """Create an async engine with a bounded per-call timeout."""
    timeout = settings.db_command_timeout_seconds

    if settings.database_url.startswith("sqlite"):
        # NullPool: every session gets its own connection, so the audit
        # writer and the request session never share a transaction.
        engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            connect_args={"check_same_thread": False, "timeout": timeout},
            poolclass=NullPool,
        )

        busy_timeout_ms = int(timeout * 1000)

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode + foreign keys on every new SQLite connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            cursor.close()

        return engine

    # PostgreSQL settings with connection pooling
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_timeout=timeout,
        connect_args={"command_timeout": timeout},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by request sessions and the audit writer."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


class Database:
    """Engine plus session factory for one configured store."""

    def __init__(self, settings: Settings):
        self.engine = create_engine_for(settings)
        self.session_factory = create_session_factory(self.engine)

    async def create_all(self) -> None:
        """Create tables for every registered model."""
        # Import Base from kernel models to ensure all models are registered
        from src.kernel.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """True if the store answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    async def dispose(self) -> None:
        """Close database connections."""
        await self.engine.dispose()
