from __future__ import annotations

import unittest

from qurify_node.entities.profile import GameProgress
from qurify_node.entities.score import RequestContext
from qurify_node.games import GAMES, game_name
from qurify_node.services.game_results import GameResultService
from qurify_node.services.leaderboard import ScoreAggregator


class InMemoryScoreRecordRepository:
    def __init__(self, fail=False):
        self.records = []
        self.fail = fail

    def list_score_records(self, since=None, category_id=None):
        return list(self.records)

    def append_score_record(self, record):
        if self.fail:
            raise ConnectionError("insert failed")
        self.records.append(record)
        return True


class InMemoryGameProgressRepository:
    def __init__(self):
        self.rows: dict[tuple[str, str], GameProgress] = {}
        self.fail = False
        self.rollback_calls = 0

    def get(self, subject_id, game_id):
        return self.rows.get((subject_id, game_id))

    def find(self, *, subject_id):
        return [p for (sid, _), p in sorted(self.rows.items()) if sid == subject_id]

    def save(self, progress):
        if self.fail:
            raise ConnectionError("update failed")
        self.rows[(progress.subject_id, progress.game_id)] = progress

    def rollback(self):
        self.rollback_calls += 1


class TestGameResultService(unittest.TestCase):
    def setUp(self):
        self.scores = InMemoryScoreRecordRepository()
        self.progress = InMemoryGameProgressRepository()
        self.service = GameResultService(ScoreAggregator(self.scores), self.progress, completion_threshold=80)

    def test_first_result_creates_progress_and_score(self):
        result = self.service.record_result(RequestContext(viewer_id="u1"), "fake-news", 60)

        self.assertTrue(result.submitted)
        self.assertIsNone(result.warning)
        self.assertEqual(result.progress.best_score, 60)
        self.assertEqual(result.progress.attempts, 1)
        self.assertFalse(result.progress.completed)
        self.assertEqual(result.progress.game_name, "Spot the Fake News")
        self.assertEqual(self.scores.records[0].category_label, "Spot the Fake News")

    def test_best_score_tracks_across_attempts_and_completion_follows_latest(self):
        ctx = RequestContext(viewer_id="u1")
        first = self.service.record_result(ctx, "bias-detector", 85)
        self.assertTrue(first.progress.completed)

        result = self.service.record_result(ctx, "bias-detector", 40)

        self.assertEqual(result.progress.best_score, 85)
        self.assertEqual(result.progress.attempts, 2)
        self.assertFalse(result.progress.completed)
        self.assertEqual(len(self.scores.records), 2)  # every round is a leaderboard record

    def test_explicit_game_name_wins(self):
        result = self.service.record_result(RequestContext(viewer_id="u1"), "custom-quiz", 10, game_name="Custom")
        self.assertEqual(result.progress.game_name, "Custom")

    def test_anonymous_results_are_not_recorded(self):
        result = self.service.record_result(RequestContext(), "fake-news", 90)

        self.assertFalse(result.submitted)
        self.assertIsNotNone(result.warning)
        self.assertEqual(self.scores.records, [])
        self.assertEqual(self.progress.rows, {})

    def test_invalid_score_is_rejected(self):
        result = self.service.record_result(RequestContext(viewer_id="u1"), "fake-news", -5)

        self.assertFalse(result.submitted)
        self.assertIsNone(result.progress)
        self.assertEqual(self.scores.records, [])

    def test_wildcard_game_id_is_rejected(self):
        result = self.service.record_result(RequestContext(viewer_id="u1"), "all", 50)

        self.assertFalse(result.submitted)
        self.assertIsNone(result.progress)
        self.assertEqual(result.warning, "invalid game result")
        self.assertEqual(self.scores.records, [])
        self.assertEqual(self.progress.rows, {})

    def test_failed_submission_is_a_warning(self):
        service = GameResultService(
            ScoreAggregator(InMemoryScoreRecordRepository(fail=True)), self.progress,
        )
        result = service.record_result(RequestContext(viewer_id="u1"), "fake-news", 70)

        self.assertFalse(result.submitted)
        self.assertIn("leaderboard", result.warning)
        self.assertEqual(result.progress.attempts, 1)

    def test_progress_save_failure_rolls_back(self):
        self.progress.fail = True
        result = self.service.record_result(RequestContext(viewer_id="u1"), "fake-news", 70)

        self.assertTrue(result.submitted)
        self.assertIsNone(result.progress)
        self.assertEqual(self.progress.rollback_calls, 1)
        self.assertEqual(result.warning, "progress could not be saved")


class TestGameCatalog(unittest.TestCase):
    def test_catalog_ids_are_unique(self):
        ids = [g.id for g in GAMES]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertNotIn("all", ids)

    def test_lookup(self):
        self.assertEqual(game_name("bias-detector"), "Source Bias Detector")
        self.assertEqual(game_name("emotional-language"), "Emotional Language")
        self.assertEqual(game_name("deep_fake-hunt"), "Deep Fake Hunt")


if __name__ == "__main__":
    unittest.main()
