import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from shared.types import GameState, OverrideMode, QuestionStatus
from streakr.db import InMemoryDbClient
from streakr.errors import NotFoundError, UpstreamError, ValidationError
from streakr.fixtures import FixtureSource
from streakr.locks import LockService, parse_start_time
from streakr.records import QuestionStatusRecord
from streakr.tests.testing_utils import (
    SEASON,
    fake_squiggle,
    game_question_ids,
    seed_rounds,
    squiggle_game,
)

# R1-G1 starts 2026-03-12T19:30:00+11:00, R1-G2 a day later.
G1_START = datetime(2026, 3, 12, 8, 30, tzinfo=timezone.utc)
G2_START = datetime(2026, 3, 13, 8, 40, tzinfo=timezone.utc)


class LockServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.round = seed_rounds(self.db)[1]
        self.fixtures = FixtureSource(self.db, season=SEASON)
        self.g1 = game_question_ids(self.round, "R1-G1")
        self.g2 = game_question_ids(self.round, "R1-G2")

    def _service(self, games):
        return LockService(self.db, self.fixtures, fake_squiggle(games))

    def test_parse_start_time(self):
        self.assertEqual(parse_start_time("2026-03-12T19:30:00+11:00"), G1_START)
        self.assertEqual(parse_start_time("2026-03-12T08:30:00"), G1_START)
        self.assertEqual(parse_start_time("2026-03-12T08:30:00Z"), G1_START)
        self.assertIsNone(parse_start_time("tbc"))

    def test_live_score_hides_scores_before_the_bounce(self):
        service = self._service(
            [squiggle_game(7, 1, 2, unixtime=G1_START.timestamp(), hscore=0, ascore=0)]
        )
        score = service.live_score(season=SEASON, round_number=1, game_id="R1-G1")
        self.assertEqual(score.status, GameState.SCHEDULED)
        self.assertIsNone(score.home_score)
        self.assertEqual(score.home_team, "Carlton")

    def test_live_score_during_game(self):
        service = self._service(
            [squiggle_game(7, 1, 2, unixtime=G1_START.timestamp(), complete=40, hscore=22, ascore=9)]
        )
        score = service.live_score(season=SEASON, round_number=1, game_id="R1-G1")
        self.assertEqual(score.status, GameState.LIVE)
        self.assertEqual((score.home_score, score.away_score), (22, 9))

    def test_live_score_unknown_game(self):
        service = self._service([])
        with self.assertRaises(NotFoundError):
            service.live_score(season=SEASON, round_number=1, game_id="R1-G1")
        with self.assertRaises(ValidationError):
            service.live_score(season=SEASON, round_number=1, game_id=" ")

    def test_resolve_state_from_start_time(self):
        service = self._service([squiggle_game(7, 1, 2, unixtime=G1_START.timestamp())])

        before = service.resolve_state("R1-G1", now=G1_START - timedelta(minutes=5))
        self.assertFalse(before.is_locked)
        self.assertEqual(before.countdown_ms, 5 * 60 * 1000)
        self.assertEqual(before.source, "squiggle")

        after = service.resolve_state("R1-G1", now=G1_START + timedelta(seconds=1))
        self.assertTrue(after.is_locked)
        self.assertEqual(after.countdown_ms, 0)

    def test_manual_override_decides_the_lock(self):
        service = self._service([squiggle_game(7, 1, 2, unixtime=G1_START.timestamp())])
        self.db.save_question_status(
            QuestionStatusRecord(
                1, self.g1[0], QuestionStatus.OPEN, override_mode=OverrideMode.MANUAL
            )
        )
        state = service.resolve_state("R1-G1", now=G1_START + timedelta(hours=1))
        self.assertFalse(state.is_locked)
        self.assertEqual(state.source, "manual")

        self.db.save_question_status(
            QuestionStatusRecord(
                1, self.g1[1], QuestionStatus.PENDING, override_mode=OverrideMode.MANUAL
            )
        )
        state = service.resolve_state("R1-G1", now=G1_START - timedelta(hours=1))
        self.assertTrue(state.is_locked)

    def test_resolve_state_unmatched(self):
        service = self._service([])
        with self.assertRaises(NotFoundError):
            service.resolve_state("R1-G1")
        with self.assertRaises(ValidationError):
            service.resolve_state("")

    def test_auto_sync_locks_started_games_only(self):
        service = self._service(
            [
                squiggle_game(7, 1, 2, unixtime=G1_START.timestamp(), complete=10),
                squiggle_game(8, 3, 4, unixtime=G2_START.timestamp()),
            ]
        )
        self.db.save_question_status(
            QuestionStatusRecord(
                1, self.g1[1], QuestionStatus.OPEN, override_mode=OverrideMode.MANUAL
            )
        )

        result = service.auto_sync(
            season=SEASON, round_number=1, now=G1_START - timedelta(minutes=1)
        )

        self.assertEqual(result.round, f"{SEASON}-1")
        self.assertEqual(result.games_started, ["R1-G1"])
        self.assertEqual(result.locked, 1)
        locked = self.db.get_question_status(1, self.g1[0])
        self.assertEqual(locked.status, QuestionStatus.PENDING)
        self.assertEqual(locked.override_mode, OverrideMode.AUTO)
        self.assertEqual(self.db.get_question_status(1, self.g1[1]).status, QuestionStatus.OPEN)
        self.assertIsNone(self.db.get_question_status(1, self.g2[0]))

    def test_auto_sync_falls_back_to_start_times(self):
        squiggle = MagicMock()
        squiggle.games.side_effect = UpstreamError("Squiggle fetch failed")
        service = LockService(self.db, self.fixtures, squiggle)

        result = service.auto_sync(
            season=SEASON, round_number=1, now=G2_START + timedelta(minutes=1)
        )

        self.assertEqual(result.games_started, ["R1-G1", "R1-G2"])
        self.assertEqual(result.locked, 4)
        again = service.auto_sync(
            season=SEASON, round_number=1, now=G2_START + timedelta(minutes=2)
        )
        self.assertEqual(again.locked, 0)

    def test_auto_sync_validation_and_unknown_round(self):
        service = self._service([])
        with self.assertRaises(ValidationError):
            service.auto_sync(season="2026", round_number=1)
        self.assertEqual(service.auto_sync(season=SEASON, round_number=9).locked, 0)

    def test_set_game_lock(self):
        service = self._service([])
        lock = service.set_game_lock(game_id=" R1-G2 ", round_number=1, is_unlocked_for_picks=False)
        self.assertEqual(lock.game_id, "R1-G2")
        self.assertFalse(self.db.get_game_lock("R1-G2").is_unlocked_for_picks)
        lock = service.set_game_lock(game_id="R1-G2", round_number=-1, is_unlocked_for_picks=True)
        self.assertIsNone(lock.round_number)
        with self.assertRaises(ValidationError):
            service.set_game_lock(game_id="", is_unlocked_for_picks=True)


if __name__ == "__main__":
    unittest.main()
