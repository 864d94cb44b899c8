"""
Plain records shared by every DbClient implementation.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from shared.question_ids import pick_key, question_status_key, round_code
from shared.types import (
    JobKind,
    JobStatus,
    MemberRole,
    OverrideMode,
    Outcome,
    PickSide,
    QuestionStatus,
    SubscriptionStatus,
    normalise_outcome,
    normalise_status,
)


def _now() -> float:
    return time.time()


@dataclass
class QuestionRecord:
    id: str
    quarter: int
    question: str
    status: QuestionStatus = QuestionStatus.OPEN
    sport: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "quarter": self.quarter,
            "question": self.question,
            "status": self.status.value,
            "sport": self.sport,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionRecord":
        return cls(
            id=data["id"],
            quarter=int(data.get("quarter") or 1),
            question=data.get("question") or "",
            status=normalise_status(data.get("status")),
            sport=data.get("sport"),
        )


@dataclass
class GameRecord:
    id: str
    match: str
    venue: str
    start_time: str
    sport: str = "AFL"
    questions: list[QuestionRecord] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "match": self.match,
            "venue": self.venue,
            "start_time": self.start_time,
            "sport": self.sport,
            "questions": [q.as_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameRecord":
        return cls(
            id=data["id"],
            match=data.get("match") or "",
            venue=data.get("venue") or "",
            start_time=data.get("start_time") or "",
            sport=data.get("sport") or "AFL",
            questions=[QuestionRecord.from_dict(q) for q in data.get("questions") or []],
        )


@dataclass
class RoundRecord:
    season: int
    round_number: int
    games: list[GameRecord] = field(default_factory=list)
    label: str = ""
    published: bool = False
    updated_at: float = field(default_factory=_now)

    @property
    def round_key(self) -> str:
        return round_code(self.round_number)

    @property
    def round_id(self) -> str:
        return f"{self.season}-{self.round_number}"

    def get_game(self, game_id: str) -> Optional[GameRecord]:
        wanted = str(game_id or "").strip().upper()
        for game in self.games:
            if game.id.upper() == wanted:
                return game
        return None

    def find_question(self, question_id: str) -> Optional[tuple[GameRecord, QuestionRecord]]:
        for game in self.games:
            for question in game.questions:
                if question.id == question_id:
                    return game, question
        return None

    def question_ids(self) -> list[str]:
        return [q.id for game in self.games for q in game.questions]

    def as_dict(self) -> dict:
        return {
            "season": self.season,
            "round_number": self.round_number,
            "round_key": self.round_key,
            "label": self.label,
            "published": self.published,
            "games": [g.as_dict() for g in self.games],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoundRecord":
        return cls(
            season=int(data["season"]),
            round_number=int(data["round_number"]),
            label=data.get("label") or "",
            published=bool(data.get("published")),
            games=[GameRecord.from_dict(g) for g in data.get("games") or []],
            updated_at=float(data.get("updated_at") or 0.0),
        )


@dataclass
class QuestionStatusRecord:
    round_number: int
    question_id: str
    status: QuestionStatus
    outcome: Optional[Outcome] = None
    override_mode: Optional[OverrideMode] = None
    updated_at: float = field(default_factory=_now)
    # Storage id of the record; legacy documents may not use the canonical key.
    record_id: str = ""

    def __post_init__(self):
        if not self.record_id:
            self.record_id = self.key

    @property
    def key(self) -> str:
        return question_status_key(self.round_number, self.question_id)

    def as_dict(self) -> dict:
        return {
            "round_number": self.round_number,
            "question_id": self.question_id,
            "status": self.status.value,
            "outcome": self.outcome.value if self.outcome else None,
            "override_mode": self.override_mode.value if self.override_mode else None,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict, record_id: str = "") -> "QuestionStatusRecord":
        raw_outcome = data.get("outcome")
        if raw_outcome is None:
            raw_outcome = data.get("result")
        override = data.get("override_mode")
        return cls(
            round_number=int(data.get("round_number") or 0),
            question_id=str(data.get("question_id") or ""),
            status=normalise_status(data.get("status")),
            outcome=normalise_outcome(raw_outcome),
            override_mode=OverrideMode(override) if override in ("manual", "auto") else None,
            updated_at=float(data.get("updated_at") or 0.0),
            record_id=record_id,
        )


@dataclass
class PickRecord:
    user_id: str
    question_id: str
    pick: PickSide
    round_number: Optional[int] = None
    game_id: Optional[str] = None
    match: str = ""
    question: str = ""
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    @property
    def key(self) -> str:
        return pick_key(self.user_id, self.question_id)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["pick"] = self.pick.value
        return data


@dataclass
class UserRecord:
    uid: str
    username: str = ""
    first_name: str = ""
    surname: str = ""
    email: str = ""
    suburb: str = ""
    state: str = ""
    phone: str = ""
    gender: str = ""
    favourite_team: str = ""
    avatar_url: str = ""
    current_streak: int = 0
    longest_streak: int = 0
    active_question_id: Optional[str] = None
    active_pick: Optional[PickSide] = None
    last_pick_at: Optional[float] = None
    league_ids: list[str] = field(default_factory=list)
    venue_ids: list[str] = field(default_factory=list)
    updated_at: float = field(default_factory=_now)

    @property
    def display_name(self) -> str:
        """Name shown on ladders: full name, else username, else "Player"."""
        if self.first_name or self.surname:
            return f"{self.first_name} {self.surname}".strip()
        return self.username or "Player"

    def as_dict(self) -> dict:
        data = asdict(self)
        data["active_pick"] = self.active_pick.value if self.active_pick else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "UserRecord":
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known and v is not None}
        values["uid"] = data["uid"]
        active = data.get("active_pick")
        values["active_pick"] = PickSide(active) if active in ("yes", "no") else None
        values["league_ids"] = list(data.get("league_ids") or [])
        values["venue_ids"] = list(data.get("venue_ids") or [])
        for key in ("current_streak", "longest_streak"):
            raw = data.get(key)
            values[key] = raw if isinstance(raw, int) and not isinstance(raw, bool) else 0
        return cls(**values)


@dataclass
class LeagueMember:
    uid: str
    display_name: str = "Player"
    role: MemberRole = MemberRole.MEMBER
    joined_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "uid": self.uid,
            "display_name": self.display_name,
            "role": self.role.value,
            "joined_at": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LeagueMember":
        return cls(
            uid=data["uid"],
            display_name=data.get("display_name") or "Player",
            role=MemberRole(data.get("role") or MemberRole.MEMBER.value),
            joined_at=float(data.get("joined_at") or 0.0),
        )


@dataclass
class LeagueRecord:
    id: str
    name: str
    invite_code: str
    manager_id: str
    description: str = ""
    sport: str = "afl"
    members: list[LeagueMember] = field(default_factory=list)
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    @property
    def member_ids(self) -> list[str]:
        return [m.uid for m in self.members]

    def get_member(self, uid: str) -> Optional[LeagueMember]:
        for member in self.members:
            if member.uid == uid:
                return member
        return None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "invite_code": self.invite_code,
            "manager_id": self.manager_id,
            "description": self.description,
            "sport": self.sport,
            "member_ids": self.member_ids,
            "member_count": len(self.members),
            "members": [m.as_dict() for m in self.members],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LeagueRecord":
        return cls(
            id=data["id"],
            name=data.get("name") or "Unnamed league",
            invite_code=data.get("invite_code") or "",
            manager_id=data.get("manager_id") or "",
            description=data.get("description") or "",
            sport=data.get("sport") or "afl",
            members=[LeagueMember.from_dict(m) for m in data.get("members") or []],
            created_at=float(data.get("created_at") or 0.0),
            updated_at=float(data.get("updated_at") or 0.0),
        )


@dataclass
class VenueLeagueRecord:
    id: str
    name: str
    code: str
    created_by: str
    venue_name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    member_ids: list[str] = field(default_factory=list)
    prizes_headline: Optional[str] = None
    prizes_body: Optional[str] = None
    voucher_join_enabled: bool = False
    voucher_join_title: Optional[str] = None
    voucher_join_description: Optional[str] = None
    voucher_milestone_enabled: bool = False
    voucher_milestone_title: Optional[str] = None
    voucher_milestone_description: Optional[str] = None
    venue_admin_email: Optional[str] = None
    venue_admin_uid: Optional[str] = None
    created_at: float = field(default_factory=_now)

    @property
    def member_count(self) -> int:
        return len(self.member_ids)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["subscription_status"] = self.subscription_status.value
        data["member_count"] = self.member_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VenueLeagueRecord":
        known = {f for f in cls.__dataclass_fields__}
        values = {k: v for k, v in data.items() if k in known}
        values["subscription_status"] = SubscriptionStatus(
            data.get("subscription_status") or SubscriptionStatus.ACTIVE.value
        )
        values["member_ids"] = list(data.get("member_ids") or [])
        return cls(**values)


@dataclass
class CommentRecord:
    id: str
    question_id: str
    uid: str
    body: str
    round_number: Optional[int] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: float = field(default_factory=_now)
    is_removed: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class GameLockRecord:
    game_id: str
    round_number: Optional[int]
    is_unlocked_for_picks: bool
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class PanicRecord:
    user_id: str
    season: int
    round_number: int
    game_id: str
    question_id: str
    previous_pick: PickSide
    created_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["previous_pick"] = self.previous_pick.value
        return data


@dataclass
class FreeKickRecord:
    user_id: str
    season: int
    game_id: str
    round_number: int
    game_index: int
    used_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SponsorQuestion:
    round_number: int
    question_id: str


@dataclass
class SeasonConfig:
    season: int
    current_round_number: Optional[int] = None
    current_round_key: Optional[str] = None
    current_round_label: Optional[str] = None
    sponsor_question: Optional[SponsorQuestion] = None
    updated_at: float = field(default_factory=_now)

    def is_sponsor_question(self, round_number: int, question_id: str) -> bool:
        sponsor = self.sponsor_question
        return bool(
            sponsor
            and sponsor.question_id == question_id
            and sponsor.round_number == round_number
        )

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SeasonConfig":
        sponsor = data.get("sponsor_question")
        return cls(
            season=int(data["season"]),
            current_round_number=data.get("current_round_number"),
            current_round_key=data.get("current_round_key"),
            current_round_label=data.get("current_round_label"),
            sponsor_question=(
                SponsorQuestion(
                    round_number=int(sponsor.get("round_number") or 0),
                    question_id=str(sponsor.get("question_id")),
                )
                if sponsor and sponsor.get("question_id")
                else None
            ),
            updated_at=float(data.get("updated_at") or 0.0),
        )


@dataclass
class BblMatchRecord:
    id: str
    match: str
    venue: str
    start_time: float

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class JobRecord:
    job_id: str
    kind: JobKind
    payload: dict[str, Any]
    status: JobStatus
    stage: str = "WAITING"
    progress_percent: float = 0.0
    error: Optional[str] = None
    locked_at: Optional[float] = None
    created_at: float = field(default_factory=_now)
    updated_at: float = field(default_factory=_now)

    def as_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "kind": self.kind.value,
            "payload": self.payload,
            "status": self.status.name,
            "stage": self.stage,
            "progress_percent": self.progress_percent,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
