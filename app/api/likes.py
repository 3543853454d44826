"""
Tandem — Likes & Passes API

Both endpoints feed ``MatchingService.record_decision``.  A like that
completes a mutual pair returns the match in the same response.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_current_user_id, get_matching_service
from app.models.match import Match
from app.models.preference import Decision, Preference
from app.schemas.match import (
    LikeCreate,
    LikeResponse,
    MatchResponse,
    PassCreate,
    PassResponse,
    PreferenceResponse,
)
from app.services.matching_service import MatchingService

logger = structlog.get_logger("tandem.api.likes")

router = APIRouter()


def preference_to_response(preference: Preference) -> PreferenceResponse:
    return PreferenceResponse(
        id=preference.id,
        user_id=preference.actor_id,
        target_user_id=preference.target_id,
        status=preference.decision,
        created_at=preference.created_at,
        updated_at=preference.updated_at,
    )


def match_to_response(match: Match) -> MatchResponse:
    return MatchResponse(
        id=match.id,
        user1_id=match.identity_low,
        user2_id=match.identity_high,
        created_at=match.created_at,
        updated_at=match.updated_at,
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /likes — Like or pass a user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/likes",
    response_model=LikeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a like or pass",
)
async def create_like(
    payload: LikeCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> LikeResponse:
    """Record a like or pass toward ``target_user_id``.

    If both users have liked each other the match is created (once, however
    many requests race) and returned with ``matched: true``.
    """
    log = logger.bind(user_id=str(user_id), target_user_id=str(payload.target_user_id))
    log.info("create_like_start", status=payload.status)

    result = await service.record_decision(user_id, payload.target_user_id, payload.status)

    log.info("create_like_complete", matched=result.matched)
    return LikeResponse(
        like=preference_to_response(result.preference),
        matched=result.matched,
        match=match_to_response(result.match) if result.match is not None else None,
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /passes — Pass a user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/passes",
    response_model=PassResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a pass",
)
async def create_pass(
    payload: PassCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> PassResponse:
    """Record a pass (no interest) toward ``target_user_id``."""
    logger.info(
        "create_pass",
        user_id=str(user_id),
        target_user_id=str(payload.target_user_id),
    )

    result = await service.record_decision(user_id, payload.target_user_id, Decision.PASS)
    return PassResponse(pass_=preference_to_response(result.preference))


# ──────────────────────────────────────────────────────────────────────────────
# POST /likes/{target_user_id}/match — Re-run match detection
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/likes/{target_user_id}/match",
    response_model=LikeResponse,
    summary="Re-check a stored like for a mutual match",
)
async def converge_like(
    target_user_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: MatchingService = Depends(get_matching_service),
) -> LikeResponse:
    """Complete the match for a like whose mutuality check failed earlier.

    A like that answered 503 stays stored, so a retry of ``POST /likes``
    gets 409.  This endpoint repeats only the detection step and returns
    the same match id however often it is called.
    """
    log = logger.bind(user_id=str(user_id), target_user_id=str(target_user_id))

    result = await service.detect_match(user_id, target_user_id)
    if result.preference is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="no decision recorded for this user",
        )

    log.info("converge_like_complete", matched=result.matched, created=result.created)
    return LikeResponse(
        like=preference_to_response(result.preference),
        matched=result.matched,
        match=match_to_response(result.match) if result.match is not None else None,
    )
