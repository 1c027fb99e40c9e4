from __future__ import annotations

import asyncio
import threading
import time
import unittest
from datetime import datetime, timedelta, timezone

from qurify_node.entities.score import ALL_CATEGORIES, LeaderboardWindow, ScoreRecord
from qurify_node.services.leaderboard import ScoreAggregator
from qurify_node.services.leaderboard_feed import LeaderboardFeed


class InMemoryScoreRecordRepository:
    def __init__(self):
        self.records: list[ScoreRecord] = []
        self.fail = False
        self.delay = 0.0

    def list_score_records(self, since=None, category_id=None):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ConnectionError("store unreachable")
        results = [r for r in self.records if since is None or r.recorded_at >= since]
        if category_id is not None:
            results = [r for r in results if r.category_id == category_id]
        return sorted(results, key=lambda r: (r.recorded_at, r.id))

    def append_score_record(self, record):
        self.records.append(record)
        return True


class FakeInsertionSource:
    """Delivers insertions to subscribers the way the pg listener does."""

    def __init__(self):
        self.callbacks = []
        self.stopped = 0

    async def subscribe_to_insertions(self, callback):
        self.callbacks.append(callback)
        source = self

        class _Handle:
            async def stop(self_inner):
                source.callbacks.remove(callback)
                source.stopped += 1

        return _Handle()

    async def publish(self, payload):
        for callback in list(self.callbacks):
            await callback(payload)


def _record(subject, category, points, age=timedelta(minutes=5), seq=[0]):
    seq[0] += 1
    return ScoreRecord(
        id=f"SCR_{seq[0]:04d}", subject_id=subject, category_id=category,
        category_label=category, points=points,
        recorded_at=datetime.now(timezone.utc) - age,
    )


class TestLeaderboardFeed(unittest.TestCase):
    def setUp(self):
        self.repo = InMemoryScoreRecordRepository()
        self.aggregator = ScoreAggregator(self.repo)
        self.source = FakeInsertionSource()

    def _feed(self, **kwargs):
        return LeaderboardFeed(self.aggregator, self.source, **kwargs)

    def test_refresh_emits_update_to_listeners(self):
        self.repo.records.append(_record("a", "fake-news", 30))
        feed = self._feed(window=LeaderboardWindow.ALL_TIME)
        received = []
        feed.add_listener(received.append)

        update = asyncio.run(feed.refresh())

        self.assertTrue(update.ok)
        self.assertEqual(received, [update])
        self.assertEqual([(e.subject_id, e.total_points, e.rank) for e in update.entries], [("a", 30, 1)])
        self.assertIs(feed.latest, update)

    def test_insertion_triggers_recompute(self):
        feed = self._feed(window=LeaderboardWindow.WEEKLY)
        received = []
        feed.add_listener(received.append)

        async def scenario():
            await feed.start()
            self.repo.records.append(_record("a", "bias", 10))
            await self.source.publish({"id": "SCR_x", "subject_id": "a"})
            self.repo.records.append(_record("b", "bias", 25))
            await self.source.publish({"id": "SCR_y", "subject_id": "b"})
            await feed.stop()

        asyncio.run(scenario())

        self.assertEqual(len(received), 3)  # initial + two insertions
        self.assertEqual(received[0].entries, [])
        self.assertEqual([e.subject_id for e in received[-1].entries], ["b", "a"])

    def test_stop_unsubscribes_and_is_idempotent(self):
        feed = self._feed()

        async def scenario():
            await feed.start()
            self.assertTrue(feed.running)
            await feed.stop()
            await feed.stop()

        asyncio.run(scenario())
        self.assertEqual(self.source.callbacks, [])
        self.assertEqual(self.source.stopped, 1)
        self.assertFalse(feed.running)

    def test_start_twice_subscribes_once(self):
        feed = self._feed()

        async def scenario():
            await feed.start()
            await feed.start()
            self.assertEqual(len(self.source.callbacks), 1)
            await feed.stop()

        asyncio.run(scenario())

    def test_start_without_source_raises(self):
        feed = LeaderboardFeed(self.aggregator)
        with self.assertRaises(RuntimeError):
            asyncio.run(feed.start())

    def test_removed_listener_gets_no_updates(self):
        feed = self._feed()
        received = []
        remove = feed.add_listener(received.append)
        remove()
        remove()

        asyncio.run(feed.refresh())
        self.assertEqual(received, [])

    def test_async_listener_is_awaited(self):
        feed = self._feed()
        received = []

        async def listener(update):
            await asyncio.sleep(0)
            received.append(update)

        feed.add_listener(listener)
        asyncio.run(feed.refresh())
        self.assertEqual(len(received), 1)

    def test_failing_listener_does_not_block_others(self):
        feed = self._feed()
        received = []

        def broken(update):
            raise ValueError("render failed")

        feed.add_listener(broken)
        feed.add_listener(received.append)

        asyncio.run(feed.refresh())
        self.assertEqual(len(received), 1)

    def test_fetch_failure_emits_error_and_keeps_last_good_state(self):
        self.repo.records.append(_record("a", "x", 5))
        feed = self._feed(window=LeaderboardWindow.ALL_TIME)
        received = []
        feed.add_listener(received.append)

        async def scenario():
            good = await feed.refresh()
            self.repo.fail = True
            bad = await feed.refresh()
            return good, bad

        good, bad = asyncio.run(scenario())

        self.assertFalse(bad.ok)
        self.assertEqual(bad.entries, [])
        self.assertIn("store unreachable", bad.error)
        self.assertIs(feed.latest, good)
        self.assertEqual(len(received), 2)

    def test_timeout_counts_as_fetch_failure(self):
        self.repo.delay = 0.3
        feed = self._feed(fetch_timeout_seconds=0.05)

        update = asyncio.run(feed.refresh())

        self.assertFalse(update.ok)
        self.assertIn("timed out", update.error)
        self.assertIsNone(feed.latest)

    def test_select_changes_view_and_recomputes(self):
        self.repo.records.extend([
            _record("a", "fake-news", 20, age=timedelta(days=12)),
            _record("b", "bias", 10, age=timedelta(days=1)),
        ])
        feed = self._feed(window=LeaderboardWindow.WEEKLY)

        async def scenario():
            weekly = await feed.refresh()
            monthly = await feed.select(window="monthly")
            bias_only = await feed.select(category_filter="bias")
            everything = await feed.select(window=LeaderboardWindow.ALL_TIME, category_filter=ALL_CATEGORIES)
            return weekly, monthly, bias_only, everything

        weekly, monthly, bias_only, everything = asyncio.run(scenario())

        self.assertEqual([e.subject_id for e in weekly.entries], ["b"])
        self.assertEqual([e.subject_id for e in monthly.entries], ["a", "b"])
        self.assertEqual(bias_only.window, LeaderboardWindow.MONTHLY)
        self.assertEqual([e.subject_id for e in bias_only.entries], ["b"])
        self.assertEqual(everything.category_filter, ALL_CATEGORIES)
        self.assertEqual(len(everything.entries), 2)

    def test_refreshes_do_not_overlap(self):
        active = []
        overlaps = []
        lock = threading.Lock()
        original = self.aggregator.compute_leaderboard

        def tracking(window, category):
            with lock:
                if active:
                    overlaps.append(window)
                active.append(window)
            time.sleep(0.02)
            with lock:
                active.pop()
            return original(window, category)

        self.aggregator.compute_leaderboard = tracking
        feed = self._feed()

        async def scenario():
            await asyncio.gather(*(feed.refresh() for _ in range(4)))

        asyncio.run(scenario())
        self.assertEqual(overlaps, [])

    def test_timed_out_read_never_overlaps_the_next_one(self):
        active = []
        peak = [0]
        lock = threading.Lock()
        delays = [0.3]
        original = self.repo.list_score_records

        def slow_first_read(since=None, category_id=None):
            with lock:
                active.append(1)
                peak[0] = max(peak[0], len(active))
            try:
                time.sleep(delays.pop() if delays else 0)
                return original(since, category_id)
            finally:
                with lock:
                    active.pop()

        self.repo.list_score_records = slow_first_read
        self.repo.records.append(_record("a", "x", 5))
        feed = self._feed(window=LeaderboardWindow.ALL_TIME, fetch_timeout_seconds=0.1)

        async def scenario():
            first = await feed.refresh()
            second = await feed.refresh()
            await asyncio.sleep(0.2)
            third = await feed.refresh()
            return first, second, third

        first, second, third = asyncio.run(scenario())

        self.assertIn("timed out", first.error)
        self.assertFalse(second.ok)
        self.assertTrue(third.ok)
        self.assertEqual([e.subject_id for e in third.entries], ["a"])
        self.assertEqual(peak[0], 1)


if __name__ == "__main__":
    unittest.main()
