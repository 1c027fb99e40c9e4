from __future__ import annotations

import asyncio
import functools
import logging
import signal

from qurify_node.config.runtime import RuntimeSettings
from qurify_node.db import (
    DBProfileRepository,
    DBScoreRecordRepository,
    PgInsertionSource,
    create_session,
    notify_json,
)
from qurify_node.entities.score import ALL_CATEGORIES
from qurify_node.services.leaderboard import ScoreAggregator
from qurify_node.services.leaderboard_feed import LeaderboardFeed
from qurify_node.services.leaderboard_refresh import LeaderboardRefreshService


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )


def build_service(settings: RuntimeSettings | None = None) -> LeaderboardRefreshService:
    settings = settings or RuntimeSettings.from_env()

    feeds = []
    for window in settings.leaderboard_windows:
        # One session per feed: refreshes run in worker threads.
        session = create_session()
        aggregator = ScoreAggregator(
            score_repository=DBScoreRecordRepository(session),
            profile_repository=DBProfileRepository(session),
        )
        feeds.append(LeaderboardFeed(
            aggregator=aggregator,
            insertion_source=PgInsertionSource(channel=settings.score_inserted_channel),
            window=window,
            category_filter=ALL_CATEGORIES,
            fetch_timeout_seconds=settings.leaderboard_fetch_timeout_seconds,
        ))

    return LeaderboardRefreshService(
        feeds=feeds,
        refresh_interval_seconds=settings.leaderboard_refresh_seconds,
        publisher=functools.partial(notify_json, settings.leaderboard_refreshed_channel),
    )


async def run() -> None:
    configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("leaderboard worker bootstrap")

    service = build_service()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(service.shutdown()))
        except NotImplementedError:
            pass

    await service.run()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
