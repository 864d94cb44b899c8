import unittest

from shared.types import OverrideMode, Outcome, PickResult, PickSide, QuestionStatus
from streakr.db import InMemoryDbClient
from streakr.fixtures import FixtureSource
from streakr.records import FreeKickRecord, PickRecord, QuestionStatusRecord, UserRecord
from streakr.streaks import (
    SettledState,
    StreakService,
    compute_round_streak,
    latest_status_map,
    pick_result,
)
from streakr.tests.testing_utils import SEASON, game_question_ids, seed_rounds


def _final(outcome: Outcome) -> SettledState:
    return SettledState(status=QuestionStatus.FINAL, outcome=outcome)


class PickResultTests(unittest.TestCase):
    def test_unsettled_is_pending(self):
        self.assertEqual(pick_result(PickSide.YES, None), PickResult.PENDING)
        self.assertEqual(
            pick_result(PickSide.YES, SettledState(status=QuestionStatus.PENDING)),
            PickResult.PENDING,
        )

    def test_final_compares_sides(self):
        self.assertEqual(pick_result(PickSide.YES, _final(Outcome.YES)), PickResult.CORRECT)
        self.assertEqual(pick_result(PickSide.NO, _final(Outcome.YES)), PickResult.WRONG)

    def test_void_status_without_outcome_is_void(self):
        state = SettledState(status=QuestionStatus.VOID)
        self.assertEqual(pick_result(PickSide.NO, state), PickResult.VOID)

    def test_latest_status_wins(self):
        records = [
            QuestionStatusRecord(1, "q1", QuestionStatus.FINAL, Outcome.YES, updated_at=10.0),
            QuestionStatusRecord(1, "q1", QuestionStatus.OPEN, None, updated_at=20.0),
        ]
        states = latest_status_map(records)
        self.assertEqual(states["q1"].status, QuestionStatus.OPEN)


class ComputeRoundStreakTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.round = seed_rounds(self.db)[1]
        self.g1 = game_question_ids(self.round, "R1-G1")
        self.g2 = game_question_ids(self.round, "R1-G2")

    def test_clean_sweep_adds_every_correct_pick(self):
        states = {qid: _final(Outcome.YES) for qid in self.g1 + self.g2}
        picks = {qid: PickSide.YES for qid in self.g1 + self.g2}
        result = compute_round_streak(self.round, states, picks)
        self.assertEqual(result.current_streak, 4)
        self.assertEqual(result.longest_streak, 4)
        self.assertEqual(result.games_busted, [])

    def test_one_wrong_pick_busts_the_game(self):
        states = {
            self.g1[0]: _final(Outcome.YES),
            self.g1[1]: _final(Outcome.NO),
            self.g2[0]: _final(Outcome.YES),
        }
        picks = {self.g1[0]: PickSide.YES, self.g1[1]: PickSide.YES, self.g2[0]: PickSide.YES}
        result = compute_round_streak(self.round, states, picks, existing_longest=7)
        self.assertEqual(result.games_busted, ["R1-G1"])
        self.assertEqual(result.current_streak, 1)
        self.assertEqual(result.longest_streak, 7)

    def test_bust_in_later_game_resets_streak(self):
        states = {
            self.g1[0]: _final(Outcome.YES),
            self.g2[0]: _final(Outcome.YES),
        }
        picks = {self.g1[0]: PickSide.YES, self.g2[0]: PickSide.NO}
        result = compute_round_streak(self.round, states, picks)
        self.assertEqual(result.current_streak, 0)
        self.assertEqual(result.longest_streak, 0)

    def test_void_and_pending_do_not_move_the_streak(self):
        states = {
            self.g1[0]: SettledState(status=QuestionStatus.VOID, outcome=Outcome.VOID),
            self.g1[1]: SettledState(status=QuestionStatus.PENDING),
        }
        picks = {self.g1[0]: PickSide.YES, self.g1[1]: PickSide.NO}
        result = compute_round_streak(self.round, states, picks)
        self.assertEqual(result.current_streak, 0)
        self.assertEqual(result.games_busted, [])

    def test_free_kick_protects_a_busted_game(self):
        states = {
            self.g1[0]: _final(Outcome.YES),
            self.g2[0]: _final(Outcome.YES),
            self.g2[1]: _final(Outcome.NO),
        }
        picks = {
            self.g1[0]: PickSide.YES,
            self.g2[0]: PickSide.YES,
            self.g2[1]: PickSide.YES,
        }
        result = compute_round_streak(
            self.round, states, picks, free_kick_game_id="r1-g2"
        )
        self.assertEqual(result.current_streak, 1)
        self.assertEqual(result.games_protected, ["R1-G2"])
        self.assertEqual(result.games_busted, [])


class StreakServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.round = seed_rounds(self.db)[1]
        self.fixtures = FixtureSource(self.db, season=SEASON)
        self.service = StreakService(self.db, self.fixtures)
        self.g1 = game_question_ids(self.round, "R1-G1")

    def _pick(self, uid, qid, side):
        self.db.save_pick(PickRecord(user_id=uid, question_id=qid, pick=side, round_number=1))

    def _settle(self, qid, outcome):
        self.db.save_question_status(
            QuestionStatusRecord(
                round_number=1,
                question_id=qid,
                status=QuestionStatus.FINAL,
                outcome=outcome,
                override_mode=OverrideMode.MANUAL,
            )
        )

    def test_recompute_user_stores_counters(self):
        self.db.save_user(UserRecord(uid="u1", longest_streak=1))
        self._pick("u1", self.g1[0], PickSide.YES)
        self._pick("u1", self.g1[1], PickSide.NO)
        self._settle(self.g1[0], Outcome.YES)
        self._settle(self.g1[1], Outcome.NO)

        result = self.service.recompute_user("u1", 1)

        self.assertEqual(result.current_streak, 2)
        user = self.db.get_user("u1")
        self.assertEqual(user.current_streak, 2)
        self.assertEqual(user.longest_streak, 2)

    def test_recompute_round_covers_every_picker(self):
        self._pick("u1", self.g1[0], PickSide.YES)
        self._pick("u2", self.g1[0], PickSide.NO)
        self._settle(self.g1[0], Outcome.YES)

        self.assertEqual(self.service.recompute_round(1), 2)
        self.assertEqual(self.db.get_user("u1").current_streak, 1)
        self.assertEqual(self.db.get_user("u2").current_streak, 0)

    def test_free_kick_only_applies_to_its_round(self):
        self._pick("u1", self.g1[0], PickSide.NO)
        self._settle(self.g1[0], Outcome.YES)
        self.db.record_free_kick(
            FreeKickRecord(
                user_id="u1", season=SEASON, game_id="R1-G1", round_number=1, game_index=1
            )
        )
        result = self.service.recompute_user("u1", 1)
        self.assertEqual(result.games_protected, ["R1-G1"])

    def test_unknown_round_is_skipped(self):
        self.assertIsNone(self.service.recompute_user("u1", 9))
        self.assertEqual(self.service.recompute_round(9), 0)


if __name__ == "__main__":
    unittest.main()
