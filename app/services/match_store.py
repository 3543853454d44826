"""
Tandem — Match Store

Persists canonical matches.  The at-most-one-match guarantee is delegated to
the ``uq_match_pair`` unique constraint: ``create_if_absent`` always attempts
the insert and treats ``IntegrityError`` as "another request got there first",
then re-reads the winning row.  There is no check-then-insert path.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import StorageUnavailable
from app.models.match import Match
from app.utils.deadline import guarded
from app.utils.pairs import CanonicalPair, IdentityLike, as_identity, canonicalize

logger = structlog.get_logger("tandem.match_store")


class MatchStore:
    """Match persistence bound to one request's ``AsyncSession``."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db = db_session

    # ── Reads ─────────────────────────────────────────────────────────────

    async def exists(self, a: IdentityLike, b: IdentityLike) -> bool:
        """Return whether a match exists for the unordered pair ``{a, b}``."""
        return await self.find(a, b) is not None

    async def find(self, a: IdentityLike, b: IdentityLike) -> Match | None:
        """Return the match for the unordered pair ``{a, b}``, if any."""
        return await self._get_by_pair(canonicalize(a, b))

    async def get(self, match_id: uuid.UUID) -> Match | None:
        stmt = select(Match).where(Match.id == match_id)
        result = await guarded(self.db.execute(stmt), operation="match_get")
        return result.scalar_one_or_none()

    async def list_for_identity(self, identity: IdentityLike) -> list[Match]:
        """All matches ``identity`` belongs to, newest first."""
        user_id = as_identity(identity)
        stmt = (
            select(Match)
            .where(or_(Match.identity_low == user_id, Match.identity_high == user_id))
            .order_by(Match.created_at.desc(), Match.id)
        )
        result = await guarded(self.db.execute(stmt), operation="match_list")
        return list(result.scalars().all())

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_if_absent(
        self,
        a: IdentityLike,
        b: IdentityLike,
    ) -> tuple[Match, bool]:
        """Insert the match for ``{a, b}`` or return the one already stored.

        Commits the session.  Under concurrent callers for the same pair
        exactly one receives ``created=True``; all others receive the same
        row with ``created=False``.
        """
        pair = canonicalize(a, b)
        log = logger.bind(identity_low=str(pair.low), identity_high=str(pair.high))

        match = Match(identity_low=pair.low, identity_high=pair.high)
        self.db.add(match)
        try:
            await guarded(self.db.commit(), operation="match_insert")
        except IntegrityError:
            await self.db.rollback()
            existing = await self._get_by_pair(pair)
            if existing is None:
                # Conflict reported but the row is not visible: the store is
                # in a state we cannot answer from.
                log.error("match_conflict_without_row")
                raise StorageUnavailable("match_insert conflicted but no row found")
            log.info("match_already_exists", match_id=str(existing.id))
            return existing, False
        except StorageUnavailable:
            await self.db.rollback()
            raise

        log.info("match_created", match_id=str(match.id))
        return match, True

    # ── Private helpers ───────────────────────────────────────────────────

    async def _get_by_pair(self, pair: CanonicalPair) -> Match | None:
        stmt = select(Match).where(
            Match.identity_low == pair.low,
            Match.identity_high == pair.high,
        )
        result = await guarded(self.db.execute(stmt), operation="match_lookup")
        return result.scalar_one_or_none()
