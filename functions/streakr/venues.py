"""
Venue leagues: admin-managed leagues tied to a pub or club.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from shared.types import SubscriptionStatus
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.leaderboard import LadderEntry, rank_users
from streakr.leagues import normalise_code, unique_code
from streakr.records import UserRecord, VenueLeagueRecord

logger = logging.getLogger(__name__)

# Fields an admin may change after creation.
MUTABLE_FIELDS = (
    "name",
    "venue_name",
    "location",
    "description",
    "subscription_status",
    "prizes_headline",
    "prizes_body",
    "voucher_join_enabled",
    "voucher_join_title",
    "voucher_join_description",
    "voucher_milestone_enabled",
    "voucher_milestone_title",
    "voucher_milestone_description",
    "venue_admin_email",
    "venue_admin_uid",
)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@dataclass
class VenuePage:
    venue: VenueLeagueRecord
    ladder: list[LadderEntry]


class VenueService:
    def __init__(self, db):
        self.db = db

    def create(
        self,
        *,
        created_by: str,
        name: str = "",
        venue_name: str = "",
        location: str = "",
        description: str = "",
        subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    ) -> VenueLeagueRecord:
        venue = VenueLeagueRecord(
            id=uuid.uuid4().hex,
            name=_clean(name) or _clean(venue_name) or "Venue League",
            code=unique_code(lambda c: self.db.find_venue_by_code(c) is not None),
            created_by=created_by,
            venue_name=_clean(venue_name),
            location=_clean(location),
            description=_clean(description),
            subscription_status=subscription_status,
            created_at=time.time(),
        )
        self.db.save_venue(venue)
        logger.info("Created venue league %s (%s)", venue.id, venue.code)
        return venue

    def get(self, venue_id: str) -> VenueLeagueRecord:
        venue = self.db.get_venue(venue_id)
        if venue is None:
            raise NotFoundError("Venue league not found")
        return venue

    def update(self, venue_id: str, changes: dict[str, Any]) -> VenueLeagueRecord:
        venue = self.get(venue_id)
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown venue fields", {"fields": sorted(unknown)}
            )
        for key, value in changes.items():
            if key == "subscription_status":
                value = SubscriptionStatus(value)
            elif key == "name":
                value = _clean(value) or venue.name
            setattr(venue, key, value)
        self.db.save_venue(venue)
        return venue

    def list_all(self) -> list[VenueLeagueRecord]:
        return self.db.list_venues()

    def join(self, uid: str, code: str) -> VenueLeagueRecord:
        venue = self.db.find_venue_by_code(normalise_code(code))
        if venue is None:
            raise NotFoundError("No venue league found with that code")
        if venue.subscription_status != SubscriptionStatus.ACTIVE:
            raise ConflictError(
                "This venue league is not accepting new members",
                {"subscriptionStatus": venue.subscription_status.value},
            )
        if uid not in venue.member_ids:
            venue.member_ids.append(uid)
            self.db.save_venue(venue)
        user = self.db.get_user(uid) or UserRecord(uid=uid)
        if venue.id not in user.venue_ids:
            user.venue_ids.append(venue.id)
            self.db.save_user(user)
        return venue

    def page(self, venue_id: str) -> VenuePage:
        venue = self.get(venue_id)
        members = [self.db.get_user(uid) or UserRecord(uid=uid) for uid in venue.member_ids]
        return VenuePage(venue=venue, ladder=rank_users(members, use_longest=False))
