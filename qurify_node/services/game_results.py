from __future__ import annotations

import logging
from dataclasses import dataclass

from qurify_node.entities.profile import GameProgress
from qurify_node.entities.score import ALL_CATEGORIES, RequestContext
from qurify_node.games import game_name as catalog_game_name
from qurify_node.interfaces.game_progress_repository import GameProgressRepository
from qurify_node.services.leaderboard import ScoreAggregator

DEFAULT_COMPLETION_THRESHOLD = 80


@dataclass
class GameResult:
    submitted: bool
    progress: GameProgress | None = None
    warning: str | None = None


class GameResultService:
    """Records a finished game: one leaderboard score plus the per-game progress row."""

    def __init__(
        self,
        aggregator: ScoreAggregator,
        progress_repository: GameProgressRepository,
        completion_threshold: int = DEFAULT_COMPLETION_THRESHOLD,
    ):
        self.aggregator = aggregator
        self.progress_repository = progress_repository
        self.completion_threshold = completion_threshold

        self.logger = logging.getLogger(__name__)

    def record_result(
        self,
        context: RequestContext,
        game_id: str,
        score: int,
        game_name: str | None = None,
    ) -> GameResult:
        if context.is_anonymous:
            return GameResult(submitted=False, warning="sign in to save your score")

        invalid_score = isinstance(score, bool) or not isinstance(score, int) or score < 0
        if invalid_score or not game_id or game_id == ALL_CATEGORIES:
            return GameResult(submitted=False, warning="invalid game result")

        subject_id = context.viewer_id
        name = game_name or catalog_game_name(game_id)

        submitted = self.aggregator.submit_score(subject_id, game_id, name, score)
        # A failed submission only costs the leaderboard entry; progress is still saved.
        warning = None if submitted else "score could not be submitted to the leaderboard"

        progress = self.progress_repository.get(subject_id, game_id)
        if progress is None:
            progress = GameProgress(subject_id=subject_id, game_id=game_id, game_name=name)
        progress.record_attempt(score, self.completion_threshold)

        try:
            self.progress_repository.save(progress)
        except Exception as exc:
            self.logger.warning("could not save progress subject=%s game=%s: %s", subject_id, game_id, exc)
            rollback = getattr(self.progress_repository, "rollback", None)
            if callable(rollback):
                rollback()
            return GameResult(submitted=submitted, warning=warning or "progress could not be saved")

        return GameResult(submitted=submitted, progress=progress, warning=warning)
