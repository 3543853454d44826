"""
Tandem — Chat Authorization Gate

Every chat operation passes through here before the Message Store is
touched:

* **Send**: the (sender, receiver) pair must canonicalize to an existing
  Match; otherwise ``NoActiveMatch`` and nothing is written.
* **Read**: the requester must be one of the two members of the Match with
  the requested id.  Unknown and foreign match ids are indistinguishable
  (``NotAMatchMember``) so no information about other users leaks.
"""

from __future__ import annotations

import uuid

import structlog

from app.exceptions import InvalidPair, NoActiveMatch, NotAMatchMember
from app.schemas.chat import MessageResponse
from app.services.match_store import MatchStore
from app.services.message_store import MessageStore
from app.utils.pairs import IdentityLike, as_identity

logger = structlog.get_logger("tandem.chat_service")


class ChatService:
    def __init__(self, match_store: MatchStore, message_store: MessageStore) -> None:
        self.match_store = match_store
        self.message_store = message_store

    async def authorize(self, requester: IdentityLike, counterpart: IdentityLike) -> bool:
        """True iff a match exists for the canonical ``(requester, counterpart)``."""
        try:
            return await self.match_store.exists(requester, counterpart)
        except InvalidPair:
            return False

    async def send_message(
        self,
        sender: IdentityLike,
        receiver: IdentityLike,
        content: str,
        match_id: uuid.UUID | None = None,
    ) -> MessageResponse:
        sender_id, receiver_id = as_identity(sender), as_identity(receiver)
        log = logger.bind(sender_id=str(sender_id), receiver_id=str(receiver_id))

        if sender_id == receiver_id:
            log.warning("send_message_denied", reason="self")
            raise NoActiveMatch()

        match = await self.match_store.find(sender_id, receiver_id)
        if match is None or (match_id is not None and match.id != match_id):
            log.warning("send_message_denied", reason="no_active_match")
            raise NoActiveMatch()

        message = await self.message_store.append(
            match_id=match.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
        )
        log.info("message_sent", match_id=str(match.id), message_id=message.id)
        return message

    async def list_messages(
        self,
        requester: IdentityLike,
        match_id: uuid.UUID,
    ) -> list[MessageResponse]:
        requester_id = as_identity(requester)
        log = logger.bind(requester_id=str(requester_id), match_id=str(match_id))

        # Membership first, then the message log.
        match = await self.match_store.get(match_id)
        if match is None or not match.has_member(requester_id):
            log.warning("list_messages_denied")
            raise NotAMatchMember()

        messages = await self.message_store.list_for_match(match.id)
        log.info("list_messages_complete", count=len(messages))
        return messages
