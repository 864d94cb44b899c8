import json
import os
import tempfile
import unittest

from shared.types import JobKind, JobStatus
from streakr.admin import AdminService
from streakr.db import InMemoryDbClient
from streakr.errors import NotFoundError, ValidationError
from streakr.fixtures import FixtureSource
from streakr.queue import InMemoryJobQueue, QueuedJob
from streakr.records import UserRecord
from streakr.tests.testing_utils import SEASON, schedule_rows


class AdminServiceTests(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".json")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(schedule_rows(), f)
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.fixtures = FixtureSource(self.db, season=SEASON, fixtures_path=self.path)
        self.service = AdminService(self.db, self.fixtures, self.queue)

    def tearDown(self):
        os.remove(self.path)

    def test_import_from_schedule_file(self):
        rounds = self.service.import_rounds()
        self.assertEqual([r.round_number for r in rounds], [0, 1])
        self.assertEqual(len(self.db.list_rounds(SEASON)), 2)
        self.assertFalse(self.db.get_round(SEASON, 1).published)

    def test_reimport_keeps_published_flag(self):
        self.service.import_rounds(schedule_rows())
        self.service.publish(1)
        self.service.import_rounds(schedule_rows())
        self.assertTrue(self.db.get_round(SEASON, 1).published)
        self.assertFalse(self.db.get_round(SEASON, 0).published)

    def test_import_rejects_empty_schedule(self):
        with self.assertRaises(ValidationError):
            self.service.import_rounds([{"round": "R1"}])

    def test_publish_sets_current_round(self):
        self.service.import_rounds()
        self.service.publish(0)
        config = self.db.get_season_config(SEASON)
        self.assertEqual(config.current_round_number, 0)
        self.assertEqual(config.current_round_key, "OR")
        self.assertEqual(config.current_round_label, "Opening Round")

        self.service.unpublish(0)
        self.assertFalse(self.db.get_round(SEASON, 0).published)
        with self.assertRaises(NotFoundError):
            self.service.publish(12)

    def test_sponsor_question(self):
        rounds = self.service.import_rounds()
        qid = rounds[1].question_ids()[2]

        sponsor = self.service.set_sponsor_question(round_number=1, question_id=qid)
        self.assertEqual(sponsor.question_id, qid)
        self.assertTrue(self.db.get_season_config(SEASON).is_sponsor_question(1, qid))

        with self.assertRaises(NotFoundError):
            self.service.set_sponsor_question(round_number=1, question_id="R1-G1-Q1-nope")
        with self.assertRaises(ValidationError):
            self.service.set_sponsor_question(round_number=None, question_id=qid)

        self.service.clear_sponsor_question()
        self.assertIsNone(self.db.get_season_config(SEASON).sponsor_question)

    def test_diagnostics(self):
        self.db.save_user(UserRecord(uid="u1"))
        diagnostics = self.service.diagnostics()
        self.assertEqual(diagnostics.backend, "memory")
        self.assertEqual(diagnostics.user_count, 1)
        self.assertIsNone(diagnostics.current_round_number)

    def test_enqueue_job_defaults_to_current_round(self):
        with self.assertRaises(ValidationError):
            self.service.enqueue_job(JobKind.LOCK_SYNC)

        self.service.import_rounds()
        self.service.publish(1)
        job = self.service.enqueue_job(JobKind.LOCK_SYNC)

        self.assertEqual(job.payload, {"season": SEASON, "round_number": 1})
        self.assertEqual(job.status, JobStatus.WAITING)
        self.assertEqual(self.queue.items, [QueuedJob(job.job_id, JobKind.LOCK_SYNC)])


if __name__ == "__main__":
    unittest.main()
