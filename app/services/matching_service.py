"""
Tandem — Matching Engine

Turns one user's like / pass decision into durable state:

  1. Reject self-decisions.
  2. Persist the Preference (unique per ordered pair; a repeat is a conflict).
  3. For a like, check the reciprocal like.
  4. If mutual, create-if-absent the Match under the canonical pair key.

The engine holds no state between calls and takes no locks.  Two users
liking each other at the same moment both race into
``MatchStore.create_if_absent``; the database constraint picks the winner.

The reciprocal check returns a tagged ``MutualityResult`` so that "could not
determine" is never collapsed into "not mutual".
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DecisionAlreadyExists,
    InvalidSelfAction,
    StorageUnavailable,
    UnknownIdentity,
)
from app.models.match import Match
from app.models.preference import Decision, Preference
from app.models.user import User
from app.services.match_store import MatchStore
from app.utils.deadline import guarded
from app.utils.pairs import IdentityLike, as_identity

logger = structlog.get_logger("tandem.matching_service")


class Mutuality(str, enum.Enum):
    MUTUAL = "mutual"
    NOT_MUTUAL = "not_mutual"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class MutualityResult:
    status: Mutuality
    error: StorageUnavailable | None = None

    @classmethod
    def indeterminate(cls, error: StorageUnavailable) -> "MutualityResult":
        return cls(Mutuality.INDETERMINATE, error)


@dataclass
class DecisionResult:
    """Outcome of ``record_decision``.

    ``created`` is True only for the call whose insert produced the match.
    """

    preference: Preference | None
    matched: bool = False
    match: Match | None = None
    created: bool = False


class MatchingService:
    """Records decisions and converges mutual likes into a single Match."""

    def __init__(
        self,
        db_session: AsyncSession,
        match_store: MatchStore | None = None,
    ) -> None:
        self.db = db_session
        self.match_store = match_store or MatchStore(db_session)

    # ── Public API ────────────────────────────────────────────────────────

    async def record_decision(
        self,
        actor: IdentityLike,
        target: IdentityLike,
        decision: Decision | str,
    ) -> DecisionResult:
        """Persist ``actor``'s decision toward ``target`` and report matching.

        Raises
        ------
        InvalidSelfAction
            ``actor == target``.
        UnknownIdentity
            ``target`` is not a registered user.
        DecisionAlreadyExists
            ``actor`` already decided on ``target``; nothing is changed.
        StorageUnavailable
            A store failed, including during the mutuality check.
        """
        actor_id, target_id = as_identity(actor), as_identity(target)
        decision = Decision(decision)
        log = logger.bind(
            actor_id=str(actor_id),
            target_id=str(target_id),
            decision=decision.value,
        )

        if actor_id == target_id:
            log.warning("record_decision_self")
            raise InvalidSelfAction()

        preference = await self._persist_preference(actor_id, target_id, decision)
        log.info("preference_recorded", preference_id=str(preference.id))

        if decision is not Decision.LIKE:
            return DecisionResult(preference=preference)

        return await self._match_if_mutual(actor_id, target_id, preference)

    async def detect_match(
        self,
        actor: IdentityLike,
        target: IdentityLike,
    ) -> DecisionResult:
        """Re-run mutuality detection for a pair whose decisions are stored.

        Safe to call repeatedly: every call for the same pair reports the
        same match id.
        """
        actor_id, target_id = as_identity(actor), as_identity(target)
        if actor_id == target_id:
            raise InvalidSelfAction()

        preference = await self._get_preference(actor_id, target_id)
        if preference is None or preference.decision != Decision.LIKE.value:
            return DecisionResult(preference=preference)
        return await self._match_if_mutual(actor_id, target_id, preference)

    async def check_reciprocal_like(
        self,
        actor: IdentityLike,
        target: IdentityLike,
    ) -> MutualityResult:
        """Has ``target`` liked ``actor``?

        Storage failures come back as ``INDETERMINATE`` carrying the error,
        never as ``NOT_MUTUAL``.
        """
        try:
            reciprocal = await self._get_preference(as_identity(target), as_identity(actor))
        except StorageUnavailable as exc:
            return MutualityResult.indeterminate(exc)

        if reciprocal is not None and reciprocal.decision == Decision.LIKE.value:
            return MutualityResult(Mutuality.MUTUAL)
        return MutualityResult(Mutuality.NOT_MUTUAL)

    # ── Private helpers ───────────────────────────────────────────────────

    async def _match_if_mutual(
        self,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        preference: Preference,
    ) -> DecisionResult:
        log = logger.bind(actor_id=str(actor_id), target_id=str(target_id))

        mutuality = await self.check_reciprocal_like(actor_id, target_id)

        if mutuality.status is Mutuality.INDETERMINATE:
            log.error("mutuality_indeterminate", error=str(mutuality.error))
            raise mutuality.error  # type: ignore[misc]

        if mutuality.status is Mutuality.NOT_MUTUAL:
            log.info("mutuality_not_confirmed")
            return DecisionResult(preference=preference)

        match, created = await self.match_store.create_if_absent(actor_id, target_id)
        if not created:
            # The conflict rollback expired every loaded row.
            await guarded(self.db.refresh(preference), operation="preference_lookup")
        log.info("mutual_like_matched", match_id=str(match.id), created=created)
        return DecisionResult(
            preference=preference,
            matched=True,
            match=match,
            created=created,
        )

    async def _persist_preference(
        self,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
        decision: Decision,
    ) -> Preference:
        """Insert and commit the preference so peers can observe it.

        The ``uq_preference_pair`` constraint is the duplicate signal.
        """
        target = await guarded(self.db.get(User, target_id), operation="user_lookup")
        if target is None:
            raise UnknownIdentity(f"User {target_id} not found.")

        preference = Preference(
            actor_id=actor_id,
            target_id=target_id,
            decision=decision.value,
        )
        self.db.add(preference)
        try:
            await guarded(self.db.commit(), operation="preference_insert")
        except IntegrityError as exc:
            await self.db.rollback()
            logger.info(
                "preference_already_exists",
                actor_id=str(actor_id),
                target_id=str(target_id),
            )
            raise DecisionAlreadyExists() from exc
        except StorageUnavailable:
            await self.db.rollback()
            raise
        return preference

    async def _get_preference(
        self,
        actor_id: uuid.UUID,
        target_id: uuid.UUID,
    ) -> Preference | None:
        stmt = select(Preference).where(
            Preference.actor_id == actor_id,
            Preference.target_id == target_id,
        )
        result = await guarded(self.db.execute(stmt), operation="preference_lookup")
        return result.scalar_one_or_none()
