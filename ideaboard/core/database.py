import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ideaboard.core.config import BackendSettings, get_settings
from ideaboard.infrastructure.db.base import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Async SQLAlchemy manager for backend services."""

    _engine: AsyncEngine | None = None
    _session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    async def initialize(cls) -> None:
        if cls._engine is not None:
            return

        settings = get_settings()
        cls._engine = _build_engine(settings)
        cls._session_factory = async_sessionmaker(
            cls._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        # Ensure model modules are imported before metadata usage.
        from ideaboard.infrastructure.db import models  # noqa: F401

        if settings.BACKEND_AUTO_CREATE_TABLES:
            async with cls._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Backend tables ensured")

    @classmethod
    async def close(cls) -> None:
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._session_factory = None
            logger.info("Database engine closed")

    @classmethod
    def session_factory(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None:
            raise RuntimeError(
                "Database manager is not initialized. Call initialize() first."
            )
        return cls._session_factory


def _build_engine(settings: BackendSettings) -> AsyncEngine:
    if not settings.is_sqlite:
        return create_async_engine(
            settings.database_url,
            echo=settings.BACKEND_DATABASE_ECHO,
            pool_size=settings.BACKEND_DATABASE_POOL_SIZE,
            max_overflow=settings.BACKEND_DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    engine = create_async_engine(
        settings.database_url,
        echo=settings.BACKEND_DATABASE_ECHO,
    )

    # SQLite has no row locks: take the write lock when the transaction opens so
    # read-then-write sequences serialize like SELECT ... FOR UPDATE does.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    session_maker = DatabaseManager.session_factory()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
