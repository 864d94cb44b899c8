import unittest
from unittest.mock import patch

from shared.types import MemberRole
from streakr.db import InMemoryDbClient
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.leaderboard import LeaderboardService, rank_users
from streakr.leagues import CODE_ALPHABET, LeagueService, normalise_code, unique_code
from streakr.records import SeasonConfig, UserRecord
from streakr.tests.testing_utils import SEASON


class LeagueServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.service = LeagueService(self.db)
        self.db.save_user(UserRecord(uid="boss", first_name="Bea", surname="Boss"))

    def test_create_makes_caller_the_manager(self):
        league = self.service.create("boss", name="  Pub Crew ", description="Fridays")

        self.assertEqual(league.name, "Pub Crew")
        self.assertEqual(len(league.invite_code), 6)
        self.assertTrue(set(league.invite_code) <= set(CODE_ALPHABET))
        self.assertEqual(league.members[0].role, MemberRole.MANAGER)
        self.assertEqual(league.members[0].display_name, "Bea Boss")
        self.assertIn(league.id, self.db.get_user("boss").league_ids)

    def test_short_names_are_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.create("boss", name="ab")

    def test_join_by_code_is_idempotent(self):
        league = self.service.create("boss", name="Pub Crew")
        code = f" {league.invite_code[:3].lower()} {league.invite_code[3:]} "

        self.service.join("u2", code)
        joined = self.service.join("u2", league.invite_code)

        self.assertEqual(joined.member_ids, ["boss", "u2"])
        self.assertEqual([l.id for l in self.service.list_for_user("u2")], [league.id])

    def test_join_errors(self):
        with self.assertRaises(ValidationError):
            self.service.join("u2", "ab")
        with self.assertRaises(NotFoundError):
            self.service.join("u2", "ZZZZZZ")

    def test_leave(self):
        league = self.service.create("boss", name="Pub Crew")
        self.service.join("u2", league.invite_code)

        self.service.leave("u2", league.id)

        self.assertEqual(self.service.get(league.id).member_ids, ["boss"])
        self.assertNotIn(league.id, self.db.get_user("u2").league_ids)
        with self.assertRaises(ConflictError):
            self.service.leave("boss", league.id)

    def test_ladder_ranks_members_by_current_streak(self):
        league = self.service.create("boss", name="Pub Crew")
        self.db.save_user(UserRecord(uid="u2", username="zed", current_streak=4))
        self.db.save_user(UserRecord(uid="u3", username="amy", current_streak=4))
        self.service.join("u2", league.invite_code)
        self.service.join("u3", league.invite_code)

        ladder = self.service.ladder(league.id)

        self.assertEqual([r.uid for r in ladder], ["u3", "u2", "boss"])
        self.assertEqual([r.rank for r in ladder], [1, 2, 3])
        self.assertEqual(ladder[2].ui_role, "admin")
        self.assertEqual(ladder[0].ui_role, "member")

    def test_unknown_league(self):
        with self.assertRaises(NotFoundError):
            self.service.ladder("missing")

    def test_unique_code_appends_digit_when_codes_collide(self):
        code = unique_code(lambda c: True, attempts=2)
        self.assertEqual(len(code), 7)
        self.assertTrue(code[-1].isdigit())

        with patch("streakr.leagues.secrets.randbelow", return_value=9) as randbelow:
            code = unique_code(lambda c: True, attempts=1)
        randbelow.assert_called_once_with(10)
        self.assertEqual(code[-1], "9")
        self.assertEqual(normalise_code(" ab c "), "ABC")


class LeaderboardServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.save_user(UserRecord(uid="a", username="alice", current_streak=2, longest_streak=9))
        self.db.save_user(UserRecord(uid="b", username="Bob", current_streak=5, longest_streak=5))
        self.db.save_user(UserRecord(uid="c", username="carol", current_streak=5, longest_streak=6))
        self.service = LeaderboardService(self.db, season=SEASON, limit=2)

    def test_overall_ranks_by_longest_streak(self):
        board = self.service.leaderboard("overall", "b")
        self.assertEqual([e.uid for e in board.entries], ["a", "c"])
        self.assertEqual(board.user_entry.rank, 3)

    def test_round_scope_ranks_by_current_streak_then_name(self):
        board = self.service.leaderboard("round-1")
        self.assertEqual([e.uid for e in board.entries], ["b", "c"])
        self.assertEqual(board.entries[0].streak, 5)

    def test_leaderboards_reports_your_position(self):
        self.db.save_season_config(SeasonConfig(season=SEASON, current_round_number=3))
        boards = self.service.leaderboards("a")
        self.assertEqual(boards.round, 3)
        self.assertEqual(boards.your_position.round_rank, 3)
        self.assertEqual(boards.your_position.season_rank, 1)
        self.assertEqual(boards.your_position.best_streak, 9)

    def test_rank_users_display_names(self):
        entries = rank_users([UserRecord(uid="x")], use_longest=False)
        self.assertEqual(entries[0].display_name, "Player")


if __name__ == "__main__":
    unittest.main()
