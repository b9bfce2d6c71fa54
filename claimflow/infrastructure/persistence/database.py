"""Async engine, session factory and declarative Base.

The engine is built on first use, so importing the app (health, docs,
tests with in-memory repositories) does not need DATABASE_URL. Tables
are created by Alembic, never by metadata.create_all.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from claimflow.core.config import get_settings
from claimflow.domain.exceptions import SqlNotConfiguredException

logger = logging.getLogger(__name__)

engine: Any = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Declarative base for the flow engine tables."""


def _ensure_engine() -> None:
    """Build the engine and session factory once, when DATABASE_URL is set."""
    global engine, AsyncSessionLocal
    if AsyncSessionLocal is not None:
        return
    settings = get_settings()
    if not settings.database_url:
        return
    engine = create_async_engine(
        settings.async_database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=3600,
        connect_args={"command_timeout": settings.db_command_timeout},
    )
    AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


async def dispose_engine() -> None:
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


async def get_db_transactional():
    """Request-scoped session inside one transaction: commit on success, rollback on error.

    Every flow route uses it, reads included, so instance state, completion
    rows and gate evaluations written by one request commit together.

    Raises:
        SqlNotConfiguredException: DATABASE_URL is not set.
    """
    _ensure_engine()
    if AsyncSessionLocal is None:
        logger.error("DATABASE_URL is not set; run alembic upgrade head against a Postgres database")
        raise SqlNotConfiguredException()
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session
