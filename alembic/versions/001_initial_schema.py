"""Initial schema — users, preferences, matches.

Chat messages live in MongoDB and are not part of this migration.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "gender",
            sa.String(16),
            nullable=True,
            comment="male / female / other",
        ),
        sa.Column("birth_date", sa.Date, nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("avatar_url", sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── 2. preferences (one decision per ordered pair) ──────────────
    op.create_table(
        "preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "actor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "decision",
            sa.String(10),
            nullable=False,
            comment="like / pass",
        ),
        *_timestamps(),
        sa.UniqueConstraint("actor_id", "target_id", name="uq_preference_pair"),
        sa.CheckConstraint("actor_id <> target_id", name="ck_preference_not_self"),
        sa.CheckConstraint(
            "decision IN ('like', 'pass')", name="ck_preference_decision"
        ),
    )
    op.create_index(
        "ix_preferences_target_actor",
        "preferences",
        ["target_id", "actor_id"],
    )

    # ── 3. matches (one row per unordered pair, canonical order) ────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "identity_low",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "identity_high",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("identity_low", "identity_high", name="uq_match_pair"),
        sa.CheckConstraint(
            "identity_low < identity_high", name="ck_match_canonical"
        ),
    )
    op.create_index("ix_matches_identity_low", "matches", ["identity_low"])
    op.create_index("ix_matches_identity_high", "matches", ["identity_high"])


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("ix_matches_identity_high", table_name="matches")
    op.drop_index("ix_matches_identity_low", table_name="matches")
    op.drop_table("matches")

    op.drop_index("ix_preferences_target_actor", table_name="preferences")
    op.drop_table("preferences")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
