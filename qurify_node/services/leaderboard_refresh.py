"""Keeps one leaderboard feed per window current and republishes every update."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from qurify_node.entities.score import LeaderboardUpdate
from qurify_node.services.leaderboard_feed import LeaderboardFeed

TOP_SUMMARY_SIZE = 3


def summarize_update(update: LeaderboardUpdate, top: int = TOP_SUMMARY_SIZE) -> dict[str, Any]:
    return {
        "window": update.window.value,
        "category": update.category_filter,
        "computed_at": update.computed_at.isoformat(),
        "entries": len(update.entries),
        "top": [
            {
                "rank": e.rank,
                "subject_id": e.subject_id,
                "display_label": e.display_label,
                "total_points": e.total_points,
            }
            for e in update.entries[:top]
        ],
    }


class LeaderboardRefreshService:
    def __init__(
        self,
        feeds: list[LeaderboardFeed],
        refresh_interval_seconds: int,
        publisher: Callable[[dict[str, Any]], None] | None = None,
    ):
        self.feeds = feeds
        self.refresh_interval_seconds = refresh_interval_seconds
        self.publisher = publisher

        self.logger = logging.getLogger(__name__)
        self.stop_event = asyncio.Event()

    async def run(self) -> None:
        self.logger.info("leaderboard refresh service started feeds=%d", len(self.feeds))
        for feed in self.feeds:
            feed.add_listener(self._publish)

        try:
            for feed in self.feeds:
                await feed.start()

            # Insertions drive refreshes; the timer only covers windows sliding past old records.
            while not self.stop_event.is_set():
                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=self.refresh_interval_seconds)
                except asyncio.TimeoutError:
                    await self.refresh_all()
        finally:
            for feed in self.feeds:
                try:
                    await feed.stop()
                except Exception as exc:
                    self.logger.warning("failed to stop feed window=%s: %s", feed.window, exc)

    async def refresh_all(self) -> list[LeaderboardUpdate]:
        return [await feed.refresh() for feed in self.feeds]

    async def shutdown(self) -> None:
        self.stop_event.set()

    async def _publish(self, update: LeaderboardUpdate) -> None:
        if not update.ok:
            self.logger.warning("skipping publish for failed refresh window=%s: %s", update.window, update.error)
            return
        summary = summarize_update(update)
        self.logger.info(
            "leaderboard refreshed window=%s category=%s entries=%d",
            summary["window"], summary["category"], summary["entries"],
        )
        if self.publisher is not None:
            await asyncio.to_thread(self.publisher, summary)
