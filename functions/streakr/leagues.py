"""
Private leagues: invite codes, membership and league ladders.
"""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from typing import Callable

from shared.types import MemberRole
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.records import LeagueMember, LeagueRecord, UserRecord

logger = logging.getLogger(__name__)

# Excludes 0, O, 1, I and L.
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6
CODE_ATTEMPTS = 8


def normalise_code(raw: str) -> str:
    return "".join(str(raw or "").split()).upper()


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def unique_code(is_taken: Callable[[str], bool], attempts: int = CODE_ATTEMPTS) -> str:
    for _ in range(attempts):
        code = generate_code()
        if not is_taken(code):
            return code
    # Still colliding: append one digit.
    return f"{generate_code()}{secrets.randbelow(10)}"


@dataclass
class LadderRow:
    uid: str
    name: str
    username: str
    avatar_url: str
    current_streak: int
    ui_role: str
    rank: int = 0


class LeagueService:
    def __init__(self, db):
        self.db = db

    def _user(self, uid: str) -> UserRecord:
        return self.db.get_user(uid) or UserRecord(uid=uid)

    def create(self, uid: str, *, name: str, description: str = "") -> LeagueRecord:
        name = (name or "").strip()
        if len(name) < 3:
            raise ValidationError("League name must be at least 3 characters")
        user = self._user(uid)
        code = unique_code(lambda c: self.db.find_league_by_code(c) is not None)
        now = time.time()
        league = LeagueRecord(
            id=uuid.uuid4().hex,
            name=name,
            description=(description or "").strip(),
            invite_code=code,
            manager_id=uid,
            members=[
                LeagueMember(
                    uid=uid,
                    display_name=user.display_name,
                    role=MemberRole.MANAGER,
                    joined_at=now,
                )
            ],
            created_at=now,
        )
        self.db.save_league(league)
        if league.id not in user.league_ids:
            user.league_ids.append(league.id)
        self.db.save_user(user)
        logger.info("User %s created league %s (%s)", uid, league.id, code)
        return league

    def join(self, uid: str, code: str) -> LeagueRecord:
        invite_code = normalise_code(code)
        if len(invite_code) < 4:
            raise ValidationError("Invite code must be at least 4 characters")
        league = self.db.find_league_by_code(invite_code)
        if league is None:
            raise NotFoundError("No league found with that code")

        user = self._user(uid)
        if league.get_member(uid) is None:
            league.members.append(LeagueMember(uid=uid, display_name=user.display_name))
            self.db.save_league(league)
        if league.id not in user.league_ids:
            user.league_ids.append(league.id)
            self.db.save_user(user)
        return league

    def leave(self, uid: str, league_id: str) -> None:
        league = self.get(league_id)
        if league.manager_id == uid:
            raise ConflictError("Managers cannot leave their own league")
        league.members = [m for m in league.members if m.uid != uid]
        self.db.save_league(league)
        user = self.db.get_user(uid)
        if user and league_id in user.league_ids:
            user.league_ids.remove(league_id)
            self.db.save_user(user)

    def get(self, league_id: str) -> LeagueRecord:
        league = self.db.get_league(league_id)
        if league is None:
            raise NotFoundError("League not found")
        return league

    def list_for_user(self, uid: str) -> list[LeagueRecord]:
        return self.db.list_leagues_for_user(uid)

    def ladder(self, league_id: str) -> list[LadderRow]:
        """Members ranked by current streak; the manager is always listed."""
        league = self.get(league_id)

        members = list(league.members)
        if league.manager_id and league.get_member(league.manager_id) is None:
            members.insert(0, LeagueMember(uid=league.manager_id, role=MemberRole.MANAGER))

        rows = []
        for member in members:
            profile = self.db.get_user(member.uid)
            name = (member.display_name or "").strip()
            if not name or name == "Player":
                name = profile.display_name if profile else "Player"
            rows.append(
                LadderRow(
                    uid=member.uid,
                    name=name,
                    username=profile.username if profile else "",
                    avatar_url=profile.avatar_url if profile else "",
                    current_streak=profile.current_streak if profile else 0,
                    ui_role="admin" if member.uid == league.manager_id else "member",
                )
            )
        rows.sort(key=lambda r: (-r.current_streak, r.name.casefold()))
        for index, row in enumerate(rows):
            row.rank = index + 1
        return rows
