"""
Tandem — Match model.

One row per unordered pair, stored under its canonical key
(see ``app.utils.pairs.canonicalize``).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow
from app.utils.pairs import CanonicalPair


class Match(Base):
    __tablename__ = "matches"
    __table_args__ = (
        UniqueConstraint("identity_low", "identity_high", name="uq_match_pair"),
        CheckConstraint("identity_low < identity_high", name="ck_match_canonical"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    identity_low: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    identity_high: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def pair(self) -> CanonicalPair:
        return CanonicalPair(self.identity_low, self.identity_high)

    def has_member(self, identity: uuid.UUID) -> bool:
        return identity in (self.identity_low, self.identity_high)

    def __repr__(self) -> str:
        return f"<Match {self.identity_low} <-> {self.identity_high} id={self.id}>"
