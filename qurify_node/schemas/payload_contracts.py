from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from qurify_node.entities.profile import GameProgress
from qurify_node.entities.score import LeaderboardEntry, LeaderboardPage


class LeaderboardEntryEnvelope(BaseModel):
    subject_id: str
    display_label: str
    total_points: int = Field(ge=0)
    categories_played: int = Field(ge=0)
    rank: int = Field(ge=1)

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> "LeaderboardEntryEnvelope":
        return cls(
            subject_id=entry.subject_id,
            display_label=entry.display_label,
            total_points=entry.total_points,
            categories_played=entry.categories_played,
            rank=entry.rank,
        )


class LeaderboardPageEnvelope(BaseModel):
    """Response of GET /leaderboard. `viewer_entry` may rank outside `entries`."""

    window: Literal["weekly", "monthly", "alltime"]
    category: str
    generated_at: datetime
    total_entries: int = 0
    entries: list[LeaderboardEntryEnvelope] = Field(default_factory=list)
    viewer_entry: LeaderboardEntryEnvelope | None = None
    viewer_rank: int | None = None

    @classmethod
    def from_page(cls, page: LeaderboardPage) -> "LeaderboardPageEnvelope":
        viewer = page.viewer_entry
        return cls(
            window=page.window.value,
            category=page.category_filter,
            generated_at=page.generated_at,
            total_entries=page.total_entries,
            entries=[LeaderboardEntryEnvelope.from_entry(e) for e in page.entries],
            viewer_entry=LeaderboardEntryEnvelope.from_entry(viewer) if viewer else None,
            viewer_rank=page.viewer_rank,
        )


class ScoreSubmissionEnvelope(BaseModel):
    """Body of POST /scores, sent when a game round finishes."""

    subject_id: str = Field(min_length=1)
    game_id: str = Field(min_length=1)
    game_name: str | None = None
    score: int = Field(ge=0)

    model_config = ConfigDict(extra="ignore")


class GameProgressEnvelope(BaseModel):
    game_id: str
    game_name: str
    best_score: int
    attempts: int
    completed: bool
    last_played_at: datetime | None = None

    @classmethod
    def from_progress(cls, progress: GameProgress) -> "GameProgressEnvelope":
        return cls(
            game_id=progress.game_id,
            game_name=progress.game_name,
            best_score=progress.best_score,
            attempts=progress.attempts,
            completed=progress.completed,
            last_played_at=progress.last_played_at,
        )


class SubmissionResultEnvelope(BaseModel):
    submitted: bool
    warning: str | None = None
    progress: GameProgressEnvelope | None = None


class GameEnvelope(BaseModel):
    id: str
    name: str
    icon: str
    max_score: int
