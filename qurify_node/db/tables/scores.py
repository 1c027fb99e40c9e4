"""Score record, profile and game progress tables."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScoreRecordRow(SQLModel, table=True):
    __tablename__ = "score_records"

    id: str = Field(primary_key=True)
    subject_id: str = Field(index=True)
    category_id: str = Field(index=True)
    category_label: str
    points: int = Field(default=0, ge=0)
    recorded_at: datetime = Field(
        default_factory=utc_now, sa_type=DateTime(timezone=True), index=True,
    )


class ProfileRow(SQLModel, table=True):
    __tablename__ = "profiles"

    subject_id: str = Field(primary_key=True)
    display_name: str | None = None

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class GameProgressRow(SQLModel, table=True):
    __tablename__ = "game_progress"
    __table_args__ = (UniqueConstraint("subject_id", "game_id", name="uq_game_progress_subject_game"),)

    id: str = Field(primary_key=True)
    subject_id: str = Field(index=True)
    game_id: str
    game_name: str
    best_score: int = 0
    attempts: int = 0
    completed: bool = False
    last_played_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
