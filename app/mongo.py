"""
Tandem — MongoDB client lifecycle

The Motor client is created in the application lifespan and shared by every
request; ``get_message_store`` is the FastAPI dependency handing out a
``MessageStore`` bound to the configured collection.
"""

from __future__ import annotations

import structlog
from motor.motor_asyncio import AsyncIOMotorClient

from app.config import get_settings
from app.exceptions import StorageUnavailable
from app.services.message_store import MessageStore

logger = structlog.get_logger("tandem.mongo")

_mongo_client: AsyncIOMotorClient | None = None


async def connect_mongo() -> None:
    global _mongo_client

    settings = get_settings()
    timeout_ms = int(settings.STORAGE_TIMEOUT_SECONDS * 1000)
    _mongo_client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        tz_aware=True,
    )
    # Verify connectivity
    await _mongo_client.admin.command("ping")
    await get_message_store().ensure_indexes()
    logger.info("mongo_connected", database=settings.MONGO_DATABASE)


async def close_mongo() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        logger.info("mongo_closed")


def get_mongo_client() -> AsyncIOMotorClient | None:
    """Return the shared Motor client (for use in health checks, etc.)."""
    return _mongo_client


def get_message_store() -> MessageStore:
    if _mongo_client is None:
        raise StorageUnavailable("MongoDB client not initialised")
    settings = get_settings()
    collection = _mongo_client[settings.MONGO_DATABASE][settings.MONGO_MESSAGES_COLLECTION]
    return MessageStore(collection)
