"""
database.py — Async SQLAlchemy engine, session factory, and lifecycle.

Uses asyncpg for PostgreSQL (production) and aiosqlite for SQLite (development).
A Database is constructed explicitly by the process entry point (main.lifespan)
and handed to the store; nothing here is created at import time.
"""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
    pass


# ─────────────────────────────────────────────
# Database handle
# ─────────────────────────────────────────────

class Database:
    """Owns one async engine and its session factory.

    Usage:
        db = Database("sqlite+aiosqlite:///./alpha.db")
        await db.connect()
        async with db.session() as session:
            ...
        await db.disconnect()
    """

    def __init__(self, url: str | None = None, config: Settings | None = None):
        self._config = config or default_settings
        self.url = url or self._config.async_database_url
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.url

    def _engine_kwargs(self) -> dict:
        kwargs: dict = {"echo": self._config.debug, "future": True}
        # SQLite doesn't support pool_size / max_overflow
        if not self.is_sqlite:
            kwargs.update(
                {
                    "pool_size": self._config.db_pool_size,
                    "max_overflow": self._config.db_max_overflow,
                    "pool_timeout": self._config.db_pool_timeout,
                    "pool_recycle": self._config.db_pool_recycle,
                    "pool_pre_ping": True,
                }
            )
            if self._config.db_ssl_args:
                kwargs["connect_args"] = self._config.db_ssl_args
        return kwargs

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected — call connect() first")
        return self._engine

    async def connect(self, create_schema: bool = True) -> None:
        """Create the engine and (optionally) all tables.

        Idempotent — existing tables are left intact.
        """
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, **self._engine_kwargs())
        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        if create_schema:
            await self.create_tables()
        logger.info("Database connected (%s)", "sqlite" if self.is_sqlite else "postgresql")

    async def disconnect(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database disconnected")

    def session(self) -> AsyncSession:
        """Return a new AsyncSession; use as an async context manager."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected — call connect() first")
        return self._sessionmaker()

    async def create_tables(self) -> None:
        """Create all tables defined in models.py."""
        import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def drop_tables(self) -> None:
        """Drop ALL tables — for use in tests only, never in production."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.warning("All database tables dropped")

