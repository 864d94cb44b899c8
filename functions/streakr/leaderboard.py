"""
Ladders built from the streak counters on user records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from streakr.records import UserRecord


@dataclass
class LadderEntry:
    uid: str
    display_name: str
    username: str
    avatar_url: str
    favourite_team: str
    current_streak: int
    best_streak: int
    streak: int
    rank: int = 0


def rank_users(users: Iterable[UserRecord], *, use_longest: bool) -> list[LadderEntry]:
    """Sorts by streak (desc) then display name; ranks are 1-based."""
    entries = [
        LadderEntry(
            uid=user.uid,
            display_name=user.display_name,
            username=user.username,
            avatar_url=user.avatar_url,
            favourite_team=user.favourite_team,
            current_streak=user.current_streak,
            best_streak=user.longest_streak,
            streak=user.longest_streak if use_longest else user.current_streak,
        )
        for user in users
    ]
    entries.sort(key=lambda e: (-e.streak, e.display_name.casefold()))
    for index, entry in enumerate(entries):
        entry.rank = index + 1
    return entries


def find_entry(entries: list[LadderEntry], uid: Optional[str]) -> Optional[LadderEntry]:
    if not uid:
        return None
    for entry in entries:
        if entry.uid == uid:
            return entry
    return None


@dataclass
class Leaderboard:
    entries: list[LadderEntry]
    user_entry: Optional[LadderEntry]


@dataclass
class YourPosition:
    round_rank: Optional[int]
    season_rank: Optional[int]
    current_streak: int
    best_streak: int


@dataclass
class Leaderboards:
    round: int
    season: int
    round_leaderboard: list[LadderEntry]
    season_leaderboard: list[LadderEntry]
    your_position: YourPosition


class LeaderboardService:
    def __init__(self, db, *, season: int, limit: int = 50):
        self.db = db
        self.season = season
        self.limit = limit

    def leaderboard(self, scope: str = "overall", uid: Optional[str] = None) -> Leaderboard:
        """
        "overall" ranks by longest streak; every other scope (round-N,
        opening-round, finals) ranks by the live current streak.
        """
        entries = rank_users(self.db.list_users(), use_longest=(scope or "overall") == "overall")
        return Leaderboard(entries=entries[: self.limit], user_entry=find_entry(entries, uid))

    def leaderboards(self, uid: Optional[str] = None) -> Leaderboards:
        users = self.db.list_users()
        round_entries = rank_users(users, use_longest=False)
        season_entries = rank_users(users, use_longest=True)
        config = self.db.get_season_config(self.season)

        round_mine = find_entry(round_entries, uid)
        season_mine = find_entry(season_entries, uid)
        mine = round_mine or season_mine
        return Leaderboards(
            round=config.current_round_number if config.current_round_number is not None else 1,
            season=self.season,
            round_leaderboard=round_entries[: self.limit],
            season_leaderboard=season_entries[: self.limit],
            your_position=YourPosition(
                round_rank=round_mine.rank if round_mine else None,
                season_rank=season_mine.rank if season_mine else None,
                current_streak=mine.current_streak if mine else 0,
                best_streak=mine.best_streak if mine else 0,
            ),
        )
