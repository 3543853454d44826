"""
Tandem — Message Store

Append-only chat log in MongoDB, one document per message::

    {match_id, sender_id, receiver_id, content, created_at}

Identities are stored as UUID strings.  Reads are ordered by ``created_at``
ascending (ties broken by ``_id``).  Authorization is not this module's
concern; callers go through ``ChatService``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING

from app.schemas.chat import MessageResponse
from app.utils.deadline import guarded

logger = structlog.get_logger("tandem.message_store")


class MessageStore:
    """Motor-backed message log."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await guarded(
            self.collection.create_index(
                [("match_id", ASCENDING), ("created_at", ASCENDING)],
                name="ix_messages_match_created",
            ),
            operation="message_index",
        )

    async def append(
        self,
        match_id: uuid.UUID,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        content: str,
    ) -> MessageResponse:
        doc: dict[str, Any] = {
            "match_id": str(match_id),
            "sender_id": str(sender_id),
            "receiver_id": str(receiver_id),
            "content": content,
            "created_at": datetime.now(timezone.utc),
        }
        result = await guarded(self.collection.insert_one(doc), operation="message_insert")
        doc["_id"] = result.inserted_id

        logger.info(
            "message_stored",
            match_id=doc["match_id"],
            message_id=str(result.inserted_id),
        )
        return _to_message(doc)

    async def list_for_match(self, match_id: uuid.UUID) -> list[MessageResponse]:
        cursor = self.collection.find({"match_id": str(match_id)}).sort(
            [("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        docs = await guarded(cursor.to_list(length=None), operation="message_list")
        return [_to_message(d) for d in docs]


def _to_message(doc: dict[str, Any]) -> MessageResponse:
    created_at = doc["created_at"]
    # Mongo hands back naive UTC datetimes unless tz_aware is set
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return MessageResponse(
        id=str(doc["_id"]),
        match_id=uuid.UUID(doc["match_id"]),
        sender_id=uuid.UUID(doc["sender_id"]),
        receiver_id=uuid.UUID(doc["receiver_id"]),
        content=doc["content"],
        created_at=created_at,
    )
