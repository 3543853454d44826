"""
Tandem — Relational store wiring

Users, preferences and matches live in PostgreSQL (chat messages live in
MongoDB, see ``app.mongo``).  ``build_engine`` picks one of two routes:

* **Cloud SQL** when ``CLOUD_SQL_USE_UNIX_SOCKET`` is set together with
  ``CLOUD_SQL_INSTANCE_CONNECTION``: connections come from
  ``cloud-sql-python-connector`` with IAM authentication.
* **DATABASE_URL** otherwise.  ``postgres://`` and ``postgresql://`` are
  pinned to the asyncpg dialect; ``sqlite+aiosqlite`` URLs are accepted for
  tooling and run without server pool tuning.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Awaitable, Callable

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model in ``app.models``."""


def utcnow() -> datetime:
    """Client-side timestamp default.

    Set in Python (alongside the ``now()`` server default) so ordering by
    ``created_at`` stays strict within the same second.
    """
    return datetime.now(timezone.utc)


# Server databases only; one worker handles ~25 concurrent requests.
SERVER_POOL: dict[str, Any] = {
    "pool_size": 25,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}

_ASYNCPG_URL = "postgresql+asyncpg://"


def normalise_database_url(url: str) -> str:
    """Pin plain PostgreSQL URLs to the asyncpg dialect."""
    scheme, sep, rest = url.partition("://")
    if sep and scheme in ("postgres", "postgresql"):
        return _ASYNCPG_URL + rest
    return url


def engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {}
    return dict(SERVER_POOL)


def cloud_sql_creator(settings: Settings) -> Callable[[], Awaitable[Any]]:
    """Return an ``async_creator`` that opens IAM-authenticated connections.

    The connector is bound to the event loop of the first connection.
    """
    from google.cloud.sql.connector import Connector

    connector: Connector | None = None

    async def _connect():
        nonlocal connector
        if connector is None:
            connector = Connector(loop=asyncio.get_running_loop())
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    return _connect


def build_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    echo = settings.LOG_LEVEL.upper() == "DEBUG"

    if settings.CLOUD_SQL_USE_UNIX_SOCKET and settings.CLOUD_SQL_INSTANCE_CONNECTION:
        logger.info(
            "Relational store via Cloud SQL Connector (%s)",
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
        )
        return create_async_engine(
            _ASYNCPG_URL,
            async_creator=cloud_sql_creator(settings),
            echo=echo,
            **SERVER_POOL,
        )

    url = normalise_database_url(settings.DATABASE_URL)
    engine = create_async_engine(url, echo=echo, **engine_options(url))
    logger.info("Relational store from DATABASE_URL (%s)", engine.url.drivername)
    return engine


engine = build_engine()

async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: committed when the handler returns, rolled
    back when it raises."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
