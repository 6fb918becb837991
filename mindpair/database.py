"""
MindPair — Async Database Engine & Session Factory

Builds one async SQLAlchemy engine from ``DATABASE_URL``:

1. **PostgreSQL (production)** – ``asyncpg`` driver with a tuned pool.  A
   plain ``postgresql://`` URL is upgraded to the asyncpg dialect.
2. **SQLite (local development)** – ``aiosqlite`` driver with the dialect's
   default pool.

The engine and session factory are created at import time and shared by the
SQL compare store and the health checks.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mindpair.config import get_settings

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Declarative base
# ------------------------------------------------------------------ #

class Base(DeclarativeBase):
    """Declarative base of the attempts, score_bands and compare_tokens
    tables."""


# ------------------------------------------------------------------ #
# Pool configuration (PostgreSQL only)
# ------------------------------------------------------------------ #

_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def _normalise_url(url: str) -> str:
    """Transparently upgrade plain scheme names to their async dialects so
    that developers do not need to remember the driver prefix."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for ``url`` (defaults to ``DATABASE_URL``)."""
    settings = get_settings()
    url = _normalise_url(url or settings.DATABASE_URL)

    kwargs: dict = {"echo": settings.LOG_LEVEL == "DEBUG"}
    if url.startswith("postgresql"):
        kwargs.update(_POOL_KWARGS)

    engine = create_async_engine(url, **kwargs)
    logger.info("Database engine created (%s)", engine.dialect.name)
    return engine


# ------------------------------------------------------------------ #
# Module-level engine & session factory
# ------------------------------------------------------------------ #

engine = build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
