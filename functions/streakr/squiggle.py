"""
Client for the Squiggle AFL API (https://api.squiggle.com.au/).

Squiggle asks API users to send a descriptive User-Agent and to avoid
hammering it, so results are cached per (year, round) for a short time.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import requests

from shared.types import GameState
from streakr.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MIN_ROUND = -5
MAX_ROUND = 40


@dataclass
class SquiggleGame:
    squiggle_id: int
    year: int
    round: int
    start_time_utc: str
    home_team: str
    away_team: str
    venue: Optional[str]
    status: GameState
    home_score: Optional[int]
    away_score: Optional[int]
    percent_complete: Optional[float]

    @property
    def start_time(self) -> datetime:
        return datetime.fromisoformat(self.start_time_utc)

    def matches(self, text: str) -> bool:
        """True when both team names appear in the given game id or match text."""
        haystack = (text or "").lower()
        return (
            bool(self.home_team)
            and bool(self.away_team)
            and self.home_team.lower() in haystack
            and self.away_team.lower() in haystack
        )


def game_state(raw: dict) -> GameState:
    is_final = raw.get("is_final")
    if isinstance(is_final, (int, float)) and is_final > 0:
        return GameState.FINAL
    complete = raw.get("complete")
    if isinstance(complete, (int, float)) and 0 < complete < 100:
        return GameState.LIVE
    return GameState.SCHEDULED


def _start_time_utc(raw: dict) -> Optional[str]:
    unixtime = raw.get("unixtime")
    if isinstance(unixtime, (int, float)):
        start = datetime.fromtimestamp(unixtime, tz=timezone.utc)
    else:
        date = raw.get("date")
        if not isinstance(date, str) or not date:
            return None
        try:
            start = datetime.fromisoformat(date.replace(" ", "T") + (raw.get("tz") or ""))
        except ValueError:
            return None
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
    return start.astimezone(timezone.utc).isoformat()


def _int_or_none(value) -> Optional[int]:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def normalise_game(raw: dict, team_names: dict[int, str]) -> Optional[SquiggleGame]:
    if not isinstance(raw.get("id"), int):
        return None
    start = _start_time_utc(raw)
    if start is None:
        return None
    complete = raw.get("complete")
    return SquiggleGame(
        squiggle_id=raw["id"],
        year=int(raw.get("year") or 0),
        round=int(raw.get("round") or 0),
        start_time_utc=start,
        home_team=team_names.get(raw.get("hteam"), str(raw.get("hteam") or "")),
        away_team=team_names.get(raw.get("ateam"), str(raw.get("ateam") or "")),
        venue=raw.get("venue") or None,
        status=game_state(raw),
        home_score=_int_or_none(raw.get("hscore")),
        away_score=_int_or_none(raw.get("ascore")),
        percent_complete=complete if isinstance(complete, (int, float)) else None,
    )


def validate_year_round(year, round_number) -> tuple[int, int]:
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError("year required") from None
    try:
        round_number = int(round_number)
    except (TypeError, ValueError):
        raise ValidationError("round required") from None
    if year < MIN_YEAR:
        raise ValidationError("year required")
    if not MIN_ROUND <= round_number <= MAX_ROUND:
        raise ValidationError("round required")
    return year, round_number


class SquiggleClient:
    def __init__(
        self,
        base_url: str = "https://api.squiggle.com.au/",
        *,
        user_agent: str = "STREAKr/1.0",
        timeout: float = 10.0,
        cache_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.cache_seconds = cache_seconds
        self.session = session or requests.Session()
        self.session.headers.update(
            {"User-Agent": user_agent, "Accept": "application/json"}
        )
        self._cache: dict[tuple[int, int], tuple[float, list[SquiggleGame]]] = {}
        self._lock = threading.Lock()

    def _query(self, query: str) -> dict:
        # Squiggle takes semicolon-separated parameters in a single "q" value.
        url = f"{self.base_url}?q={query};format=json"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Squiggle request failed for %s: %s", query, e)
            raise UpstreamError("Squiggle fetch failed") from e
        if not isinstance(body, dict):
            logger.warning("Squiggle returned %s for %s", type(body).__name__, query)
            raise UpstreamError("Squiggle fetch failed")
        return body

    def games(self, year, round_number) -> tuple[list[SquiggleGame], bool]:
        """Returns (games, served_from_cache) for one round."""
        year, round_number = validate_year_round(year, round_number)
        key = (year, round_number)
        now = time.monotonic()
        with self._lock:
            cached = self._cache.get(key)
            if cached and now - cached[0] < self.cache_seconds:
                return cached[1], True

        games_json = self._query(f"games;year={year};round={round_number}")
        teams_json = self._query(f"teams;year={year}")
        team_names = {
            t["id"]: t.get("name") or str(t["id"])
            for t in teams_json.get("teams") or []
            if isinstance(t, dict) and "id" in t
        }
        games = [
            game
            for game in (
                normalise_game(raw, team_names)
                for raw in games_json.get("games") or []
                if isinstance(raw, dict)
            )
            if game is not None
        ]
        with self._lock:
            self._cache[key] = (now, games)
        return games, False

    def find_game(self, year, round_number, text: str) -> Optional[SquiggleGame]:
        games, _ = self.games(year, round_number)
        for game in games:
            if game.matches(text):
                return game
        return None

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
