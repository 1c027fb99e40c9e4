from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class GameProgress:
    """Best result and attempt count of one subject in one game."""
    subject_id: str
    game_id: str
    game_name: str
    best_score: int = 0
    attempts: int = 0
    completed: bool = False
    last_played_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record_attempt(self, score: int, completion_threshold: int, played_at: datetime | None = None) -> None:
        self.best_score = max(self.best_score, score)
        self.attempts += 1
        # completion reflects the latest round, not the best one
        self.completed = score >= completion_threshold
        self.last_played_at = played_at or datetime.now(timezone.utc)
        self.updated_at = self.last_played_at
