import unittest

from shared.types import (
    JobKind,
    JobStatus,
    Outcome,
    OverrideMode,
    PickSide,
    QuestionStatus,
)
from streakr.db import PostgresDbClient
from streakr.records import (
    BblMatchRecord,
    CommentRecord,
    FreeKickRecord,
    GameLockRecord,
    LeagueMember,
    LeagueRecord,
    PanicRecord,
    PickRecord,
    QuestionStatusRecord,
    SeasonConfig,
    SponsorQuestion,
    UserRecord,
    VenueLeagueRecord,
)
from streakr.fixtures import build_rounds
from streakr.tests.testing_utils import SEASON, schedule_rows


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    @classmethod
    def setUpClass(cls):
        cls.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def test_user_roundtrip(self):
        self.db.save_user(
            UserRecord(uid="u1", username="sam", current_streak=3, active_pick=PickSide.NO)
        )
        user = self.db.get_user("u1")
        self.assertEqual(user.username, "sam")
        self.assertEqual(user.current_streak, 3)
        self.assertEqual(user.active_pick, PickSide.NO)
        self.assertIn("u1", [u.uid for u in self.db.list_users()])

    def test_rounds_and_season_config(self):
        rounds = build_rounds(schedule_rows(), season=SEASON)
        for round_record in rounds.values():
            self.db.save_round(round_record)
        loaded = self.db.get_round(SEASON, 1)
        self.assertEqual(loaded.question_ids(), rounds[1].question_ids())
        self.assertEqual([r.round_number for r in self.db.list_rounds(SEASON)], [0, 1])

        self.db.save_season_config(
            SeasonConfig(
                season=SEASON,
                current_round_number=1,
                sponsor_question=SponsorQuestion(round_number=1, question_id="q1"),
            )
        )
        config = self.db.get_season_config(SEASON)
        self.assertEqual(config.current_round_number, 1)
        self.assertTrue(config.is_sponsor_question(1, "q1"))
        self.assertIsNone(self.db.get_season_config(1999).current_round_number)

    def test_question_status_roundtrip(self):
        self.db.save_question_status(
            QuestionStatusRecord(
                4, "R4-G1-Q1-abc", QuestionStatus.FINAL, Outcome.YES, OverrideMode.MANUAL
            )
        )
        record = self.db.get_question_status(4, "R4-G1-Q1-abc")
        self.assertEqual(record.outcome, Outcome.YES)
        self.assertEqual(record.record_id, "4__R4-G1-Q1-abc")
        self.assertEqual(len(self.db.list_question_statuses(4)), 1)

        self.db.delete_question_status(record.record_id)
        self.assertIsNone(self.db.get_question_status(4, "R4-G1-Q1-abc"))

    def test_picks(self):
        self.db.save_pick(PickRecord(user_id="p1", question_id="qa", pick=PickSide.YES, round_number=2))
        self.db.save_pick(PickRecord(user_id="p2", question_id="qa", pick=PickSide.NO, round_number=2))
        self.assertEqual(len(self.db.list_picks(question_id="qa")), 2)
        self.assertEqual(self.db.get_pick("p1", "qa").pick, PickSide.YES)
        self.assertTrue(self.db.delete_pick("p1", "qa"))
        self.assertFalse(self.db.delete_pick("p1", "qa"))
        self.assertEqual([p.user_id for p in self.db.list_picks(round_number=2)], ["p2"])

    def test_comments(self):
        self.db.save_comment(CommentRecord(id="c1", question_id="qc", uid="u", body="one", created_at=1.0))
        self.db.save_comment(CommentRecord(id="c2", question_id="qc", uid="u", body="two", created_at=2.0))
        self.assertEqual([c.id for c in self.db.list_comments("qc")], ["c2", "c1"])
        self.assertTrue(self.db.set_comment_removed("qc", "c2"))
        self.assertFalse(self.db.set_comment_removed("other", "c1"))
        self.assertEqual(self.db.count_comments(["qc", "qz"]), {"qc": 1, "qz": 0})

    def test_leagues_and_venues(self):
        league = LeagueRecord(
            id="l1",
            name="Crew",
            invite_code="ABC234",
            manager_id="m",
            members=[LeagueMember(uid="m"), LeagueMember(uid="x")],
        )
        self.db.save_league(league)
        self.assertEqual(self.db.find_league_by_code("abc 234").id, "l1")
        self.assertEqual([l.id for l in self.db.list_leagues_for_user("x")], ["l1"])

        venue = VenueLeagueRecord(id="v1", name="Local", code="XYZ789", created_by="admin")
        self.db.save_venue(venue)
        self.assertEqual(self.db.find_venue_by_code("xyz789").name, "Local")
        self.assertIn("v1", [v.id for v in self.db.list_venues()])

    def test_game_locks(self):
        self.db.save_game_lock(GameLockRecord(game_id="R3-G1", round_number=3, is_unlocked_for_picks=False))
        self.assertFalse(self.db.get_game_lock("R3-G1").is_unlocked_for_picks)
        self.assertEqual(len(self.db.list_game_locks(3)), 1)

    def test_power_ups_are_recorded_once(self):
        panic = PanicRecord(
            user_id="pu", season=SEASON, round_number=1, game_id="R1-G1",
            question_id="q", previous_pick=PickSide.YES,
        )
        self.assertTrue(self.db.record_panic(panic))
        self.assertFalse(self.db.record_panic(panic))
        self.assertEqual(self.db.get_panic(SEASON, "pu", 1).previous_pick, PickSide.YES)

        kick = FreeKickRecord(user_id="pu", season=SEASON, game_id="R1-G1", round_number=1, game_index=1)
        self.assertTrue(self.db.record_free_kick(kick))
        self.assertFalse(self.db.record_free_kick(kick))
        self.assertEqual(self.db.get_free_kick(SEASON, "pu").game_id, "R1-G1")

    def test_bbl_matches_sorted_by_start(self):
        self.db.save_bbl_match(BblMatchRecord(id="b2", match="B", venue="", start_time=20.0))
        self.db.save_bbl_match(BblMatchRecord(id="b1", match="A", venue="", start_time=10.0))
        self.assertEqual([m.id for m in self.db.list_bbl_matches()][:2], ["b1", "b2"])

    def test_job_lifecycle(self):
        job = self.db.create_job(JobKind.RECOMPUTE_ROUND, {"round_number": 1})
        self.assertEqual(job.status, JobStatus.WAITING)

        claimed = self.db.claim_job(job.job_id)
        self.assertEqual(claimed.stage, "CLAIMED")
        self.assertIsNone(self.db.claim_job(job.job_id))

        self.db.update_job_progress(
            job.job_id,
            status=JobStatus.SUCCESS,
            stage="DONE",
            progress_percent=1.0,
        )
        updated = self.db.get_job(job.job_id)
        self.assertEqual(updated.status, JobStatus.SUCCESS)
        self.assertEqual(updated.stage, "DONE")
        self.assertEqual(updated.progress_percent, 1.0)
        self.assertEqual(updated.payload, {"round_number": 1})

    def test_stale_running_jobs_are_requeued(self):
        job = self.db.create_job(JobKind.LOCK_SYNC, {"round_number": 2})
        self.db.claim_job(job.job_id)
        self.db.update_job_progress(job.job_id, stage="LOCK_SYNC", progress_percent=0.1)

        requeued = self.db.requeue_stale_locks(lock_timeout_seconds=-1)

        self.assertIn(job.job_id, [j.job_id for j in requeued])
        reloaded = self.db.get_job(job.job_id)
        self.assertEqual(reloaded.status, JobStatus.WAITING)
        self.assertEqual(reloaded.stage, "WAITING")
        self.assertIsNone(reloaded.locked_at)


if __name__ == "__main__":
    unittest.main()
