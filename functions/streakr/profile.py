"""
Player profiles: public stats, self-service edits and avatar uploads.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from shared.types import PickResult, PickSide
from streakr.errors import ValidationError
from streakr.fixtures import FixtureSource
from streakr.records import UserRecord
from streakr.storage import StorageClient
from streakr.streaks import latest_status_map, pick_result

logger = logging.getLogger(__name__)

RECENT_PICKS = 5

EDITABLE_FIELDS = (
    "first_name",
    "surname",
    "suburb",
    "state",
    "phone",
    "gender",
    "favourite_team",
    "username",
    "avatar_url",
)

AVATAR_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_SAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class ProfileStats:
    display_name: str = "Player"
    username: str = ""
    favourite_team: str = ""
    suburb: str = ""
    state: str = ""
    current_streak: int = 0
    best_streak: int = 0
    correct_percentage: int = 0
    rounds_played: int = 0


@dataclass
class RecentPick:
    id: str
    round: Optional[int]
    match: str
    question: str
    user_pick: PickSide
    result: PickResult


@dataclass
class Profile:
    stats: ProfileStats
    recent_picks: list[RecentPick] = field(default_factory=list)


@dataclass
class AvatarUpload:
    upload_url: str
    public_url: str
    path: str
    content_type: str
    max_bytes: int


def profile_display_name(user: UserRecord) -> str:
    return user.first_name or user.username or user.email or "Player"


class ProfileService:
    def __init__(self, db, fixtures: FixtureSource):
        self.db = db
        self.fixtures = fixtures

    def get_profile(self, uid: Optional[str]) -> Profile:
        if not uid:
            raise ValidationError("Missing uid")
        user = self.db.get_user(uid)
        if user is None:
            return Profile(stats=ProfileStats())

        picks = sorted(
            self.db.list_picks(user_id=uid), key=lambda p: p.updated_at, reverse=True
        )
        rounds = {p.round_number for p in picks if p.round_number is not None}
        status_maps = {r: latest_status_map(self.db.list_question_statuses(r)) for r in rounds}

        correct = settled = 0
        recent: list[RecentPick] = []
        for pick in picks:
            state = status_maps.get(pick.round_number, {}).get(pick.question_id)
            result = pick_result(pick.pick, state)
            if result in (PickResult.CORRECT, PickResult.WRONG):
                settled += 1
                correct += result == PickResult.CORRECT
            if len(recent) < RECENT_PICKS:
                recent.append(
                    RecentPick(
                        id=pick.key,
                        round=pick.round_number,
                        match=pick.match,
                        question=pick.question,
                        user_pick=pick.pick,
                        result=result,
                    )
                )

        stats = ProfileStats(
            display_name=profile_display_name(user),
            username=user.username,
            favourite_team=user.favourite_team,
            suburb=user.suburb,
            state=user.state,
            current_streak=user.current_streak,
            best_streak=user.longest_streak,
            correct_percentage=round(correct / settled * 100) if settled else 0,
            rounds_played=len(rounds),
        )
        return Profile(stats=stats, recent_picks=recent)

    def update_profile(self, uid: str, changes: dict[str, Any]) -> UserRecord:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError("Unknown profile fields", {"fields": sorted(unknown)})
        user = self.db.get_user(uid) or UserRecord(uid=uid)
        for key, value in changes.items():
            setattr(user, key, str(value or "").strip())
        if "username" in changes:
            user.username = user.username.lower()
        self.db.save_user(user)
        return user

    def avatar_upload(
        self,
        uid: str,
        storage: StorageClient,
        *,
        filename: str,
        content_type: str,
        size_bytes: Optional[int],
        max_bytes: int,
    ) -> AvatarUpload:
        content_type = (content_type or "").strip().lower()
        extension = AVATAR_CONTENT_TYPES.get(content_type)
        if extension is None:
            raise ValidationError("Avatar must be a JPEG, PNG, WebP or GIF image")
        if size_bytes is not None and size_bytes > max_bytes:
            raise ValidationError(
                "Avatar is too large", {"maxBytes": max_bytes}
            )

        stem = _SAFE_FILENAME.sub("-", (filename or "").rsplit(".", 1)[0]).strip("-")
        path = f"avatars/{uid}/{int(time.time())}-{stem or 'avatar'}.{extension}"
        return AvatarUpload(
            upload_url=storage.presign_put(path, content_type=content_type),
            public_url=storage.public_url(path),
            path=path,
            content_type=content_type,
            max_bytes=max_bytes,
        )
