import unittest
from datetime import datetime, timezone

from streakr.bbl import BblService
from streakr.db import InMemoryDbClient
from streakr.errors import ValidationError
from streakr.tests.testing_utils import AppHarness, ADMIN_HEADERS

START = datetime(2026, 12, 20, 8, 15, tzinfo=timezone.utc).timestamp()


class BblServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.service = BblService(self.db, buffer_hours=8)
        self.service.upsert(
            [
                {"id": "bbl-2", "match": "Stars vs Heat", "venue": "MCG", "start_time": START + 86400},
                {"id": "bbl-1", "match": "Sixers vs Thunder", "venue": "SCG", "start_time": "2026-12-20T19:15:00+11:00"},
            ]
        )

    def test_iso_start_times_are_converted(self):
        self.assertEqual(self.db.bbl_matches["bbl-1"].start_time, START)

    def test_current_match_within_buffer(self):
        self.assertEqual(self.service.current(now=START + 7 * 3600).id, "bbl-1")
        self.assertEqual(self.service.current(now=START + 9 * 3600).id, "bbl-2")
        self.assertIsNone(self.service.current(now=START + 3 * 86400))

    def test_invalid_rows(self):
        with self.assertRaises(ValidationError):
            self.service.upsert([{"id": "", "start_time": START}])
        with self.assertRaises(ValidationError):
            self.service.upsert([{"id": "x", "start_time": "not a date"}])


class BblApiTests(unittest.TestCase):
    def setUp(self):
        self.harness = AppHarness()
        self.addCleanup(self.harness.close)
        self.client = self.harness.client

    def test_no_upcoming_match(self):
        response = self.client.get("/api/bbl/current")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["reason"], "No current/upcoming BBL match found.")

    def test_upsert_then_current(self):
        response = self.client.post(
            "/api/admin/bbl/matches",
            headers=ADMIN_HEADERS,
            json={"matches": [{"id": "bbl-9", "match": "Stars vs Heat", "startTime": "2099-01-01T08:00:00Z"}]},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["saved"], 1)

        current = self.client.get("/api/bbl/current").json()
        self.assertEqual(current["docId"], "bbl-9")
        self.assertEqual(current["match"], "Stars vs Heat")
        self.assertIsNone(current["venue"])
        self.assertTrue(current["startTime"].startswith("2099-01-01T08:00:00"))


if __name__ == "__main__":
    unittest.main()
