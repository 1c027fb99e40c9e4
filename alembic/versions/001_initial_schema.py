"""initial schema: score records, profiles, game progress

Revision ID: 001
Revises:
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Score records (append-only) ──
    op.create_table(
        "score_records",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("subject_id", sa.String(), nullable=False),
        sa.Column("category_id", sa.String(), nullable=False),
        sa.Column("category_label", sa.String(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("points >= 0", name="ck_score_records_points_non_negative"),
    )
    op.create_index("ix_score_records_subject_id", "score_records", ["subject_id"])
    op.create_index("ix_score_records_category_id", "score_records", ["category_id"])
    op.create_index("ix_score_records_recorded_at", "score_records", ["recorded_at"])

    # ── Profiles ──
    op.create_table(
        "profiles",
        sa.Column("subject_id", sa.String(), primary_key=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ── Game progress ──
    op.create_table(
        "game_progress",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("subject_id", sa.String(), nullable=False),
        sa.Column("game_id", sa.String(), nullable=False),
        sa.Column("game_name", sa.String(), nullable=False),
        sa.Column("best_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_played_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("subject_id", "game_id", name="uq_game_progress_subject_game"),
    )
    op.create_index("ix_game_progress_subject_id", "game_progress", ["subject_id"])


def downgrade() -> None:
    op.drop_index("ix_game_progress_subject_id", table_name="game_progress")
    op.drop_table("game_progress")
    op.drop_table("profiles")
    op.drop_index("ix_score_records_recorded_at", table_name="score_records")
    op.drop_index("ix_score_records_category_id", table_name="score_records")
    op.drop_index("ix_score_records_subject_id", table_name="score_records")
    op.drop_table("score_records")
