"""
Tandem — Chat API

Send and read messages between matched users.  All authorization happens in
``ChatService``; these handlers only translate HTTP.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status

from app.api.deps import get_chat_service, get_current_user_id
from app.schemas.chat import MessageResponse, SendMessageRequest
from app.services.chat_service import ChatService

router = APIRouter()


@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a chat message",
)
async def send_message(
    payload: SendMessageRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
) -> MessageResponse:
    """Send a message to a matched user (403 without an active match)."""
    return await chat.send_message(
        sender=user_id,
        receiver=payload.receiver_id,
        content=payload.content,
        match_id=payload.match_id,
    )


@router.get(
    "/matches/{match_id}/messages",
    response_model=list[MessageResponse],
    summary="Get chat messages for a match",
)
async def get_messages(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    chat: ChatService = Depends(get_chat_service),
) -> list[MessageResponse]:
    """All messages of a match the caller belongs to, oldest first."""
    return await chat.list_messages(user_id, match_id)
