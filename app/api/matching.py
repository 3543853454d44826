"""
Tandem — Matches API

Lists the authenticated user's matches together with the other member's
public profile.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, get_match_store
from app.database import get_db
from app.models.user import User
from app.schemas.match import MatchListItem
from app.schemas.user import PublicUserResponse
from app.services.match_store import MatchStore
from app.utils.deadline import guarded

logger = structlog.get_logger("tandem.api.matching")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches — List all matches for the current user
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/matches",
    response_model=list[MatchListItem],
    summary="Get all matches with user details",
)
async def list_matches(
    user_id: uuid.UUID = Depends(get_current_user_id),
    match_store: MatchStore = Depends(get_match_store),
    db: AsyncSession = Depends(get_db),
) -> list[MatchListItem]:
    """Return every match the user belongs to, newest first.

    Each item carries the other member's public profile.  Matches whose
    other member can no longer be loaded are skipped.
    """
    log = logger.bind(user_id=str(user_id))
    log.info("list_matches")

    matches = await match_store.list_for_identity(user_id)
    other_ids = {m.pair.other(user_id) for m in matches}

    users: dict[uuid.UUID, User] = {}
    if other_ids:
        stmt = select(User).where(User.id.in_(other_ids))
        result = await guarded(db.execute(stmt), operation="user_lookup")
        users = {u.id: u for u in result.scalars().all()}

    items: list[MatchListItem] = []
    for m in matches:
        other = users.get(m.pair.other(user_id))
        if other is None:
            log.warning("matched_user_missing", match_id=str(m.id))
            continue
        items.append(MatchListItem(
            id=m.id,
            matched_user=PublicUserResponse.model_validate(other),
            created_at=m.created_at,
        ))

    log.info("list_matches_complete", count=len(items))
    return items
