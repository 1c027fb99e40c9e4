"""Realtime leaderboard: recompute on every score insertion and fan out the result."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from qurify_node.entities.score import ALL_CATEGORIES, LeaderboardEntry, LeaderboardUpdate, LeaderboardWindow
from qurify_node.interfaces.insertion_source import InsertionSource, SubscriptionHandle
from qurify_node.services.leaderboard import FetchFailure, ScoreAggregator

UpdateListener = Callable[[LeaderboardUpdate], Awaitable[None] | None]


def _discard_result(future: asyncio.Future) -> None:
    # results of abandoned reads are dropped; retrieve errors so they are not reported as unhandled
    if not future.cancelled():
        future.exception()


class LeaderboardFeed:
    def __init__(
        self,
        aggregator: ScoreAggregator,
        insertion_source: InsertionSource | None = None,
        window: LeaderboardWindow | str = LeaderboardWindow.WEEKLY,
        category_filter: str = ALL_CATEGORIES,
        fetch_timeout_seconds: float = 10.0,
    ):
        self.aggregator = aggregator
        self.insertion_source = insertion_source
        self.window = LeaderboardWindow(window)
        self.category_filter = category_filter
        self.fetch_timeout_seconds = fetch_timeout_seconds

        self.latest: LeaderboardUpdate | None = None  # last successful update
        self._listeners: list[UpdateListener] = []
        self._handle: SubscriptionHandle | None = None
        self._refresh_lock = asyncio.Lock()
        self._inflight: asyncio.Future | None = None

        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self._handle is not None

    def add_listener(self, listener: UpdateListener) -> Callable[[], None]:
        """Register a change-event listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def start(self) -> LeaderboardUpdate:
        if self.insertion_source is None:
            raise RuntimeError("LeaderboardFeed.start() needs an insertion source")
        if self._handle is None:
            self._handle = await self.insertion_source.subscribe_to_insertions(self._on_insertion)
            self.logger.info("leaderboard feed started window=%s category=%s", self.window, self.category_filter)
        return await self.refresh()

    async def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.stop()
            self.logger.info("leaderboard feed stopped window=%s category=%s", self.window, self.category_filter)

    async def select(
        self,
        window: LeaderboardWindow | str | None = None,
        category_filter: str | None = None,
    ) -> LeaderboardUpdate:
        if window is not None:
            self.window = LeaderboardWindow(window)
        if category_filter is not None:
            self.category_filter = category_filter
        return await self.refresh()

    async def refresh(self) -> LeaderboardUpdate:
        async with self._refresh_lock:
            window, category = self.window, self.category_filter
            try:
                entries = await self._compute(window, category)
                update = LeaderboardUpdate(window=window, category_filter=category, entries=entries)
                self.latest = update
            except asyncio.TimeoutError:
                self.logger.warning(
                    "leaderboard fetch timed out after %.1fs window=%s", self.fetch_timeout_seconds, window,
                )
                update = LeaderboardUpdate(
                    window=window, category_filter=category,
                    error=str(FetchFailure(f"timed out after {self.fetch_timeout_seconds}s")),
                )
            except FetchFailure as exc:
                self.logger.warning("leaderboard fetch failed window=%s: %s", window, exc)
                update = LeaderboardUpdate(window=window, category_filter=category, error=str(exc))

            await self._emit(update)
            return update

    async def _compute(self, window: LeaderboardWindow, category: str) -> list[LeaderboardEntry]:
        # A timed-out read keeps running in its thread; never start a second one beside it.
        if self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight}, timeout=self.fetch_timeout_seconds)
            if not self._inflight.done():
                raise FetchFailure("previous leaderboard fetch is still running")

        self._inflight = asyncio.ensure_future(
            asyncio.to_thread(self.aggregator.compute_leaderboard, window, category)
        )
        self._inflight.add_done_callback(_discard_result)
        return await asyncio.wait_for(asyncio.shield(self._inflight), timeout=self.fetch_timeout_seconds)

    async def _on_insertion(self, payload: dict[str, Any]) -> None:
        self.logger.debug("score inserted %s, refreshing", payload.get("id", "?"))
        await self.refresh()

    async def _emit(self, update: LeaderboardUpdate) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(update)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.logger.exception("leaderboard listener failed: %s", exc)
