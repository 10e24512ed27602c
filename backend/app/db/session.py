# backend/app/db/session.py
"""
Async database session management for SQLAlchemy.

The engine and session factory live on a Database handle that the
application creates in its lifespan and disposes at shutdown. Services
never reach for a module-level engine; they receive an AsyncSession.

Production considerations:
- Uses asyncpg for PostgreSQL
- Uses aiosqlite for SQLite (local development fallback)
- Pool settings differ for SQLite (no pooling) vs PostgreSQL
- DATABASE_ECHO disabled by default (prevents SQL query exposure)
"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from backend.app.core.config import Settings


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    SQLite (local development / tests):
    - NullPool, a new connection per session
    - check_same_thread=False for async compatibility

    PostgreSQL (production):
    - AsyncAdaptedQueuePool with pool_size=5, max_overflow=10
    - pool_pre_ping=True to detect stale connections
    - pool_recycle=300 for hosts that close idle connections
    """
    if settings.is_sqlite:
        return create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


class Database:
    """
    Store handle: one engine + one session factory per application.

    expire_on_commit=False lets handlers read model attributes after commit;
    autoflush=False keeps writes explicit.
    """

    def __init__(self, settings: Settings):
        self.engine: AsyncEngine = create_engine_from_settings(settings)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        # Import models so their tables are registered on Base.metadata
        from backend.app import models  # noqa: F401
        from backend.app.db.base import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    Usage in FastAPI endpoints:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...

    Creates a session per request from the application's Database handle
    and closes it afterwards, even if the endpoint raises. This does NOT
    auto-commit; services commit explicitly.
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
