"""Leaderboard service: filter score records by window/game → group → rank."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from qurify_node.entities.score import (
    ALL_CATEGORIES,
    LeaderboardEntry,
    LeaderboardPage,
    LeaderboardWindow,
    RequestContext,
    ScoreRecord,
)
from qurify_node.interfaces.profile_repository import ProfileRepository
from qurify_node.interfaces.score_record_repository import ScoreRecordRepository

DEFAULT_PAGE_SIZE = 20


class FetchFailure(RuntimeError):
    """The record store could not be read (error or timeout)."""


def fallback_label(subject_id: str) -> str:
    return f"Player {subject_id[:6]}"


class ScoreAggregator:
    def __init__(
        self,
        score_repository: ScoreRecordRepository,
        profile_repository: ProfileRepository | None = None,
    ):
        self.score_repository = score_repository
        self.profile_repository = profile_repository

        self.logger = logging.getLogger(__name__)

    # ── read side ──

    def compute_leaderboard(
        self,
        window: LeaderboardWindow | str = LeaderboardWindow.WEEKLY,
        category_filter: str = ALL_CATEGORIES,
    ) -> list[LeaderboardEntry]:
        window = LeaderboardWindow(window)
        now = datetime.now(timezone.utc)
        since = window.lower_bound(now)
        category = None if category_filter == ALL_CATEGORIES else category_filter

        try:
            records = self.score_repository.list_score_records(since=since, category_id=category)
        except Exception as exc:
            self._rollback(self.score_repository)
            raise FetchFailure(f"could not load score records: {exc}") from exc

        entries = self._aggregate(records)
        labels = self._resolve_labels([e.subject_id for e in entries])
        for entry in entries:
            entry.display_label = labels.get(entry.subject_id) or fallback_label(entry.subject_id)

        ranked = self._rank(entries)
        self.logger.debug(
            "leaderboard window=%s category=%s records=%d entries=%d",
            window, category_filter, len(records), len(ranked),
        )
        return ranked

    def _aggregate(self, records: list[ScoreRecord]) -> list[LeaderboardEntry]:
        # dicts keep insertion order: a subject's slot is fixed by its first record
        totals: dict[str, int] = {}
        categories: dict[str, set[str]] = {}
        for record in records:
            totals[record.subject_id] = totals.get(record.subject_id, 0) + record.points
            categories.setdefault(record.subject_id, set()).add(record.category_id)

        return [
            LeaderboardEntry(
                subject_id=subject_id,
                display_label="",
                total_points=total,
                categories_played=len(categories[subject_id]),
            )
            for subject_id, total in totals.items()
        ]

    def _rank(self, entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
        # sorted() is stable, so equal totals keep first-appearance order.
        # Ties are not compressed: equal totals still get consecutive ranks.
        ranked = sorted(entries, key=lambda e: e.total_points, reverse=True)
        for idx, entry in enumerate(ranked, start=1):
            entry.rank = idx
        return ranked

    def _resolve_labels(self, subject_ids: list[str]) -> dict[str, str | None]:
        if not subject_ids or self.profile_repository is None:
            return {}
        try:
            return self.profile_repository.resolve_display_labels(subject_ids)
        except Exception as exc:
            self.logger.warning("display label lookup failed for %d subjects: %s", len(subject_ids), exc)
            self._rollback(self.profile_repository)
            return {}

    # ── write side ──

    def submit_score(self, subject_id: str, category_id: str, category_label: str, points: int) -> bool:
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            self.logger.warning("rejected score submission subject=%s points=%r", subject_id, points)
            return False
        if not subject_id or not category_id or category_id == ALL_CATEGORIES:
            self.logger.warning(
                "rejected score submission subject=%r category=%r", subject_id, category_id,
            )
            return False

        record = ScoreRecord(
            id=f"SCR_{uuid.uuid4().hex}",
            subject_id=subject_id,
            category_id=category_id,
            category_label=category_label or category_id,
            points=points,
        )
        try:
            ok = bool(self.score_repository.append_score_record(record))
        except Exception as exc:
            self.logger.warning("error submitting score subject=%s category=%s: %s", subject_id, category_id, exc)
            self._rollback(self.score_repository)
            return False

        if ok:
            self.logger.info("score submitted subject=%s category=%s points=%d", subject_id, category_id, points)
        else:
            self.logger.warning("score store refused record subject=%s category=%s", subject_id, category_id)
        return ok

    def _rollback(self, repo: Any) -> None:
        rollback = getattr(repo, "rollback", None)
        if callable(rollback):
            try:
                rollback()
            except Exception as exc:
                self.logger.warning("Rollback failed: %s", exc)


def build_page(
    entries: list[LeaderboardEntry],
    context: RequestContext,
    *,
    window: LeaderboardWindow,
    category_filter: str = ALL_CATEGORIES,
    limit: int = DEFAULT_PAGE_SIZE,
) -> LeaderboardPage:
    """Top `limit` entries plus the viewer's own entry, wherever it ranks."""
    viewer_entry = None
    if not context.is_anonymous:
        viewer_entry = next((e for e in entries if e.subject_id == context.viewer_id), None)

    return LeaderboardPage(
        window=window,
        category_filter=category_filter,
        entries=entries[: max(0, limit)],
        total_entries=len(entries),
        viewer_entry=viewer_entry,
    )
