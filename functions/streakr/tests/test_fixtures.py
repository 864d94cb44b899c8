import json
import os
import tempfile
import unittest

from shared.question_ids import stable_question_id
from shared.types import QuestionStatus
from streakr.db import InMemoryDbClient
from streakr.fixtures import FixtureSource, build_rounds, load_rows, normalise_row
from streakr.tests.testing_utils import SEASON, schedule_rows


class BuildRoundsTests(unittest.TestCase):
    def test_groups_rows_into_rounds_and_games(self):
        rounds = build_rounds(schedule_rows(), season=SEASON)

        self.assertEqual(sorted(rounds), [0, 1])
        opening = rounds[0]
        self.assertEqual(opening.label, "Opening Round")
        self.assertEqual(opening.round_key, "OR")
        self.assertEqual([g.id for g in opening.games], ["OR-G1"])

        round_one = rounds[1]
        self.assertEqual([g.id for g in round_one.games], ["R1-G1", "R1-G2"])
        self.assertEqual(len(round_one.question_ids()), 4)
        game = round_one.get_game("r1-g1")
        self.assertEqual(game.match, "Carlton vs Richmond")
        self.assertEqual(game.sport, "AFL")
        self.assertEqual([q.quarter for q in game.questions], [1, 2])

    def test_question_ids_are_stable(self):
        first = build_rounds(schedule_rows(), season=SEASON)[1]
        second = build_rounds(schedule_rows(), season=SEASON)[1]
        self.assertEqual(first.question_ids(), second.question_ids())

        question = first.games[0].questions[0]
        self.assertEqual(
            question.id,
            stable_question_id(
                round_number=1,
                game_id="R1-G1",
                quarter=1,
                question="Will Carlton kick 3 or more goals in the first quarter?",
            ),
        )
        self.assertTrue(question.id.startswith("R1-G1-Q1-"))

    def test_incomplete_rows_are_skipped(self):
        rows = [
            {"round": "R2", "game": 1, "match": "A vs B", "question": "", "start_time": "x"},
            {"round": "nope", "game": 1, "match": "A vs B", "question": "Q?", "start_time": "x"},
            {"round": "R2", "game": 1, "match": "A vs B", "question": "Q?", "start_time": "x"},
        ]
        rounds = build_rounds(rows, season=SEASON)
        self.assertEqual(len(rounds[2].question_ids()), 1)

    def test_row_status_is_kept(self):
        rows = [
            {
                "Round": "3",
                "Game": "2",
                "Match": "A vs B",
                "Start Time": "2026-04-01T19:00:00+10:00",
                "Question": "Q?",
                "Status": "Final",
            }
        ]
        question = build_rounds(rows, season=SEASON)[3].games[0].questions[0]
        self.assertEqual(question.status, QuestionStatus.FINAL)

    def test_normalise_row_maps_header_spellings(self):
        row = normalise_row({"Start Time": "t", "start_time": "ignored", "MATCH": "m"})
        self.assertEqual(row, {"start_time": "t", "match": "m"})


class FixtureSourceTests(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"rounds": schedule_rows()}, f)

    def tearDown(self):
        os.remove(self.path)

    def test_load_rows_accepts_wrapped_object(self):
        self.assertEqual(len(load_rows(self.path)), 5)

    def test_falls_back_to_the_schedule_file(self):
        db = InMemoryDbClient()
        source = FixtureSource(db, season=SEASON, fixtures_path=self.path)
        self.assertEqual(len(source.get_round(1).games), 2)
        self.assertIsNone(source.get_round(7))

    def test_stored_round_wins_over_the_file(self):
        db = InMemoryDbClient()
        stored = build_rounds(schedule_rows(), season=SEASON)[1]
        stored.games = stored.games[:1]
        db.save_round(stored)
        source = FixtureSource(db, season=SEASON, fixtures_path=self.path)
        self.assertEqual(len(source.get_round(1).games), 1)


if __name__ == "__main__":
    unittest.main()
