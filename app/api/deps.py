"""
Tandem — Shared API dependencies

Bearer-token identity and per-request service construction.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.mongo import get_message_store
from app.services.auth_service import InvalidToken, decode_access_token
from app.services.chat_service import ChatService
from app.services.match_store import MatchStore
from app.services.matching_service import MatchingService
from app.services.message_store import MessageStore

logger = structlog.get_logger("tandem.api.deps")

_bearer = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> uuid.UUID:
    """Resolve the authenticated user id from ``Authorization: Bearer``."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return decode_access_token(credentials.credentials)
    except InvalidToken:
        logger.warning("invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_match_store(db: AsyncSession = Depends(get_db)) -> MatchStore:
    return MatchStore(db)


def get_matching_service(
    db: AsyncSession = Depends(get_db),
    match_store: MatchStore = Depends(get_match_store),
) -> MatchingService:
    return MatchingService(db, match_store=match_store)


def get_chat_service(
    match_store: MatchStore = Depends(get_match_store),
    message_store: MessageStore = Depends(get_message_store),
) -> ChatService:
    return ChatService(match_store, message_store)
