"""Initial schema — score_bands, attempts, compare_tokens.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

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


def upgrade() -> None:
    # ── 1. score_bands (reference table) ────────────────────────────
    op.create_table(
        "score_bands",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("min_score", sa.Integer, nullable=False),
        sa.Column("max_score", sa.Integer, nullable=False),
        sa.Column("order_index", sa.Integer, nullable=True),
        sa.CheckConstraint("id BETWEEN 1 AND 6", name="ck_score_band_id_range"),
        sa.CheckConstraint("min_score <= max_score", name="ck_score_band_bounds"),
    )

    # ── 2. attempts ─────────────────────────────────────────────────
    op.create_table(
        "attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("quiz_id", sa.String, index=True, nullable=False),
        sa.Column("participant_id", sa.String, nullable=True),
        sa.Column("first_name", sa.String, nullable=True),
        sa.Column("last_name", sa.String, nullable=True),
        sa.Column("phone", sa.String, nullable=True),
        sa.Column(
            "status",
            sa.String(16),
            server_default="started",
            nullable=False,
            comment="started | in_progress | completed | abandoned",
        ),
        sa.Column(
            "answers",
            postgresql.JSONB,
            nullable=True,
            comment="12 integers in 0..4",
        ),
        sa.Column("total_score", sa.Integer, nullable=True),
        sa.Column("dimension_scores", postgresql.JSONB, nullable=True),
        sa.Column(
            "score_band_id",
            sa.Integer,
            sa.ForeignKey("score_bands.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "total_score IS NULL OR total_score BETWEEN 0 AND 48",
            name="ck_attempt_total_score_range",
        ),
    )

    # ── 3. compare_tokens ───────────────────────────────────────────
    op.create_table(
        "compare_tokens",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column(
            "subject_attempt_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("attempts.id", ondelete="CASCADE"),
            index=True,
            nullable=False,
        ),
        sa.Column(
            "paired_attempt_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("attempts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "status",
            sa.String(16),
            server_default="pending",
            nullable=False,
            comment="pending | completed | superseded",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'superseded')",
            name="ck_compare_token_status",
        ),
    )
    # At most one pending token per subject attempt
    op.create_index(
        "uq_compare_tokens_one_pending",
        "compare_tokens",
        ["subject_attempt_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    # Drop in reverse order (children / dependents first).
    op.drop_index("uq_compare_tokens_one_pending", table_name="compare_tokens")
    op.drop_table("compare_tokens")
    op.drop_table("attempts")
    op.drop_table("score_bands")
