"""
Game locking: live scores, resolved lock state, the auto-lock sync and the
admin pick lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from shared.question_ids import round_number_from_game_id
from shared.types import GameState, OverrideMode, QuestionStatus
from streakr.errors import NotFoundError, UpstreamError, ValidationError
from streakr.fixtures import FixtureSource
from streakr.records import GameLockRecord, GameRecord, QuestionStatusRecord
from streakr.squiggle import SquiggleClient, SquiggleGame

logger = logging.getLogger(__name__)


def parse_start_time(value: str) -> Optional[datetime]:
    """Schedule start times are ISO 8601; naive values are read as UTC."""
    try:
        parsed = datetime.fromisoformat(str(value or "").strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LiveScore:
    game_id: str
    status: GameState
    home_team: str
    away_team: str
    home_score: Optional[int]
    away_score: Optional[int]
    updated_at_utc: str


@dataclass
class ResolvedGameState:
    game_id: str
    start_time_utc: str
    now_utc: str
    countdown_ms: int
    is_locked: bool
    status: GameState
    source: str


@dataclass
class AutoSyncResult:
    locked: int
    round: str
    games_started: list[str]


class LockService:
    def __init__(self, db, fixtures: FixtureSource, squiggle: SquiggleClient):
        self.db = db
        self.fixtures = fixtures
        self.squiggle = squiggle

    def _match_text(self, game_id: str, round_number: int) -> str:
        round_record = self.fixtures.get_round(round_number)
        game = round_record.get_game(game_id) if round_record else None
        return f"{game_id} {game.match}" if game else game_id

    def _find(self, season: int, round_number: int, game_id: str) -> Optional[SquiggleGame]:
        return self.squiggle.find_game(
            season, round_number, self._match_text(game_id, round_number)
        )

    def live_score(self, *, season, round_number, game_id) -> LiveScore:
        if not isinstance(game_id, str) or not game_id.strip():
            raise ValidationError("season, roundNumber, gameId required")
        matched = self._find(season, round_number, game_id)
        if matched is None:
            raise NotFoundError("Game not found")
        hidden = matched.status == GameState.SCHEDULED
        return LiveScore(
            game_id=game_id,
            status=matched.status,
            home_team=matched.home_team,
            away_team=matched.away_team,
            home_score=None if hidden else matched.home_score,
            away_score=None if hidden else matched.away_score,
            updated_at_utc=_utc_now().isoformat(),
        )

    def resolve_state(
        self,
        game_id: str,
        *,
        season: Optional[int] = None,
        round_number: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ResolvedGameState:
        """
        A manual override on any of the game's questions decides the lock
        (locked when any question is no longer open); otherwise the game
        locks at its start time or once Squiggle reports it underway.
        """
        game_id = (game_id or "").strip()
        if not game_id:
            raise ValidationError("gameId required")
        season = season if season is not None else self.fixtures.season
        if round_number is None:
            round_number = round_number_from_game_id(game_id)

        matched = self._find(season, round_number, game_id)
        if matched is None:
            raise NotFoundError("Unable to match Squiggle game")

        prefix = f"{game_id.upper()}-"
        records = [
            r
            for r in self.db.list_question_statuses(round_number)
            if r.question_id.upper().startswith(prefix)
        ]
        manual = any(r.override_mode == OverrideMode.MANUAL for r in records)
        any_locked = any(r.status != QuestionStatus.OPEN for r in records)

        now = now or _utc_now()
        start = matched.start_time
        auto_locked = now >= start or matched.status != GameState.SCHEDULED
        return ResolvedGameState(
            game_id=game_id,
            start_time_utc=start.isoformat(),
            now_utc=now.isoformat(),
            countdown_ms=max(0, int((start - now).total_seconds() * 1000)),
            is_locked=any_locked if manual else auto_locked,
            status=matched.status,
            source="manual" if manual else "squiggle",
        )

    def _game_started(
        self, game: GameRecord, squiggle_games: list[SquiggleGame], now: datetime
    ) -> bool:
        text = f"{game.id} {game.match}"
        for candidate in squiggle_games:
            if candidate.matches(text) and candidate.status != GameState.SCHEDULED:
                return True
        start = parse_start_time(game.start_time)
        return start is not None and now >= start

    def auto_sync(
        self, *, season, round_number, now: Optional[datetime] = None
    ) -> AutoSyncResult:
        """
        Moves every still-open question of a started game to pending.

        Questions under a manual override are left alone. Games count as
        started when Squiggle reports them live or final, or once their
        scheduled start time has passed.
        """
        if not isinstance(season, int) or not isinstance(round_number, int):
            raise ValidationError("season and roundNumber required")
        round_record = self.fixtures.get_round(round_number)
        round_id = f"{season}-{round_number}"
        if round_record is None:
            return AutoSyncResult(locked=0, round=round_id, games_started=[])

        try:
            squiggle_games, _ = self.squiggle.games(season, round_number)
        except UpstreamError:
            logger.warning(
                "Squiggle unavailable; auto-lock for round %s uses start times only",
                round_number,
            )
            squiggle_games = []

        now = now or _utc_now()
        statuses = {
            r.question_id: r for r in self.db.list_question_statuses(round_number)
        }
        locked = 0
        started: list[str] = []
        for game in round_record.games:
            if not self._game_started(game, squiggle_games, now):
                continue
            started.append(game.id)
            for question in game.questions:
                existing = statuses.get(question.id)
                if existing is not None and existing.override_mode == OverrideMode.MANUAL:
                    continue
                status = existing.status if existing else question.status
                if status != QuestionStatus.OPEN:
                    continue
                self.db.save_question_status(
                    QuestionStatusRecord(
                        round_number=round_number,
                        question_id=question.id,
                        status=QuestionStatus.PENDING,
                        override_mode=OverrideMode.AUTO,
                        updated_at=time.time(),
                    )
                )
                locked += 1

        if locked:
            logger.info(
                "Auto-locked %d questions in round %s (%s)",
                locked,
                round_number,
                ", ".join(started),
            )
        return AutoSyncResult(locked=locked, round=round_id, games_started=started)

    def set_game_lock(
        self, *, game_id, round_number=None, is_unlocked_for_picks: bool
    ) -> GameLockRecord:
        if not isinstance(game_id, str) or not game_id.strip():
            raise ValidationError("Missing or invalid gameId")
        lock = GameLockRecord(
            game_id=game_id.strip(),
            round_number=(
                round_number
                if isinstance(round_number, int) and round_number >= 0
                else None
            ),
            is_unlocked_for_picks=bool(is_unlocked_for_picks),
            updated_at=time.time(),
        )
        self.db.save_game_lock(lock)
        logger.info(
            "Game %s %s for picks",
            lock.game_id,
            "unlocked" if lock.is_unlocked_for_picks else "locked",
        )
        return lock
