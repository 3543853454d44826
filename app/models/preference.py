"""
Tandem — Preference model (one user's like / pass toward another).
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class Decision(str, enum.Enum):
    LIKE = "like"
    PASS = "pass"


class Preference(Base):
    __tablename__ = "preferences"
    __table_args__ = (
        UniqueConstraint("actor_id", "target_id", name="uq_preference_pair"),
        CheckConstraint("actor_id <> target_id", name="ck_preference_not_self"),
        CheckConstraint("decision IN ('like', 'pass')", name="ck_preference_decision"),
        # Reciprocal lookups: (target -> actor, like)
        Index("ix_preferences_target_actor", "target_id", "actor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    decision: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="like / pass"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Preference {self.actor_id} -> {self.target_id} {self.decision!r}>"
