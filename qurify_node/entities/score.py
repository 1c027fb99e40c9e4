from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum

ALL_CATEGORIES = "all"


class LeaderboardWindow(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "alltime"

    @property
    def duration(self) -> timedelta | None:
        if self is LeaderboardWindow.WEEKLY:
            return timedelta(days=7)
        if self is LeaderboardWindow.MONTHLY:
            return timedelta(days=30)
        return None

    def lower_bound(self, now: datetime) -> datetime | None:
        """Inclusive lower bound of the window, None for all-time."""
        duration = self.duration
        return now - duration if duration is not None else None


@dataclass(frozen=True)
class ScoreRecord:
    """One point-earning event. Written once, never updated."""
    id: str
    subject_id: str
    category_id: str                # game id
    category_label: str             # game name, carried for display
    points: int
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class LeaderboardEntry:
    """Aggregated standing of one subject. Recomputed per query."""
    subject_id: str
    display_label: str
    total_points: int
    categories_played: int
    rank: int = 0


@dataclass(frozen=True)
class RequestContext:
    """Who is asking. Replaces any process-wide "current user" state."""
    viewer_id: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return not self.viewer_id


@dataclass
class LeaderboardPage:
    window: LeaderboardWindow
    category_filter: str
    entries: list[LeaderboardEntry]
    total_entries: int
    viewer_entry: LeaderboardEntry | None = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def viewer_rank(self) -> int | None:
        return self.viewer_entry.rank if self.viewer_entry else None


@dataclass
class LeaderboardUpdate:
    """Change event fired after every recomputation attempt.

    Carries entries on success, or an error message and no entries on failure.
    """
    window: LeaderboardWindow
    category_filter: str
    entries: list[LeaderboardEntry] = field(default_factory=list)
    error: str | None = None
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None
