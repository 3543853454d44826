"""Deadline wrapper for storage round-trips.

Every awaited call against PostgreSQL or MongoDB goes through ``guarded`` so
that a hung or unreachable backend surfaces as ``StorageUnavailable`` instead
of blocking the request or being mistaken for an empty answer.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog
from pymongo.errors import PyMongoError
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError

from app.config import get_settings
from app.exceptions import StorageUnavailable

logger = structlog.get_logger("tandem.storage")

T = TypeVar("T")

# Connection-level failures only.  IntegrityError is a normal answer
# (constraint hit) and is left to the caller.
_TRANSIENT_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PyMongoError,
)


async def guarded(
    awaitable: Awaitable[T],
    *,
    operation: str,
    timeout: float | None = None,
) -> T:
    """Await ``awaitable`` under a deadline, translating transient failures."""
    if timeout is None:
        timeout = get_settings().STORAGE_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("storage_timeout", operation=operation, timeout=timeout)
        raise StorageUnavailable(f"{operation} timed out after {timeout}s") from exc
    except _TRANSIENT_ERRORS as exc:
        logger.error(
            "storage_error",
            operation=operation,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise StorageUnavailable(f"{operation} failed") from exc
