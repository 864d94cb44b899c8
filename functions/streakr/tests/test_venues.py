import unittest

from shared.types import SubscriptionStatus
from streakr.db import InMemoryDbClient
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.records import UserRecord
from streakr.venues import VenueService


class VenueServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.service = VenueService(self.db)

    def test_create_defaults_name_from_venue(self):
        venue = self.service.create(created_by="admin", venue_name=" The Local ")
        self.assertEqual(venue.name, "The Local")
        self.assertEqual(venue.venue_name, "The Local")
        self.assertIsNone(venue.location)
        self.assertEqual(venue.subscription_status, SubscriptionStatus.ACTIVE)
        self.assertEqual(len(venue.code), 6)

    def test_update_only_accepts_known_fields(self):
        venue = self.service.create(created_by="admin", name="Local League")
        updated = self.service.update(
            venue.id, {"prizes_headline": "Free pint", "subscription_status": "paused"}
        )
        self.assertEqual(updated.prizes_headline, "Free pint")
        self.assertEqual(updated.subscription_status, SubscriptionStatus.PAUSED)

        with self.assertRaises(ValidationError):
            self.service.update(venue.id, {"code": "HACKED"})
        with self.assertRaises(NotFoundError):
            self.service.update("missing", {"name": "x"})

    def test_join_requires_active_subscription(self):
        venue = self.service.create(created_by="admin", name="Local League")
        self.service.update(venue.id, {"subscription_status": "cancelled"})
        with self.assertRaises(ConflictError):
            self.service.join("u1", venue.code)

    def test_join_and_page(self):
        venue = self.service.create(created_by="admin", name="Local League")
        self.db.save_user(UserRecord(uid="u1", username="ann", current_streak=1))
        self.db.save_user(UserRecord(uid="u2", username="ben", current_streak=3))

        self.service.join("u1", venue.code.lower())
        self.service.join("u2", venue.code)
        self.service.join("u2", venue.code)

        page = self.service.page(venue.id)
        self.assertEqual(page.venue.member_ids, ["u1", "u2"])
        self.assertEqual([e.uid for e in page.ladder], ["u2", "u1"])
        self.assertIn(venue.id, self.db.get_user("u1").venue_ids)

    def test_join_unknown_code(self):
        with self.assertRaises(NotFoundError):
            self.service.join("u1", "NOPE42")

    def test_list_all_newest_first(self):
        first = self.service.create(created_by="admin", name="First")
        second = self.service.create(created_by="admin", name="Second")
        first_record = self.db.get_venue(first.id)
        first_record.created_at = 1.0
        self.db.save_venue(first_record)
        self.assertEqual([v.id for v in self.service.list_all()], [second.id, first.id])


if __name__ == "__main__":
    unittest.main()
