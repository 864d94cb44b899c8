"""
Round boards, player picks and per-question pick stats.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from shared.question_ids import game_id_from_question_id, infer_round_number
from shared.types import (
    SETTLED_STATUSES,
    Outcome,
    PickSide,
    QuestionStatus,
    normalise_pick,
)
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.fixtures import FixtureSource
from streakr.records import PickRecord, RoundRecord, UserRecord

logger = logging.getLogger(__name__)


@dataclass
class BoardQuestion:
    id: str
    quarter: int
    question: str
    status: QuestionStatus
    sport: Optional[str]
    is_sponsor_question: bool
    user_pick: Optional[PickSide]
    yes_percent: int
    no_percent: int
    comment_count: int
    outcome: Optional[Outcome] = None


@dataclass
class BoardGame:
    id: str
    match: str
    sport: str
    venue: str
    start_time: str
    is_unlocked_for_picks: bool
    questions: list[BoardQuestion] = field(default_factory=list)


@dataclass
class RoundBoard:
    round_number: int
    games: list[BoardGame] = field(default_factory=list)


@dataclass
class QuestionStats:
    total: int
    yes: int
    no: int

    @property
    def yes_pct(self) -> int:
        return _percent(self.yes, self.total)

    @property
    def no_pct(self) -> int:
        return _percent(self.no, self.total)


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


class PicksService:
    def __init__(self, db, fixtures: FixtureSource):
        self.db = db
        self.fixtures = fixtures

    @property
    def season(self) -> int:
        return self.fixtures.season

    def current_round_number(self) -> int:
        config = self.db.get_season_config(self.season)
        if config.current_round_number is not None:
            return config.current_round_number
        return 1

    def round_board(
        self, round_number: Optional[int], uid: Optional[str] = None
    ) -> RoundBoard:
        if round_number is None or round_number < 0:
            round_number = self.current_round_number()
        round_record = self.fixtures.get_round(round_number)
        if round_record is None:
            return RoundBoard(round_number=round_number)

        question_ids = round_record.question_ids()
        statuses = {
            r.question_id: r for r in self.db.list_question_statuses(round_number)
        }
        config = self.db.get_season_config(self.season)
        comment_counts = self.db.count_comments(question_ids)
        locks = {l.game_id: l for l in self.db.list_game_locks()}

        tallies: dict[str, Counter] = {}
        user_picks: dict[str, PickSide] = {}
        wanted = set(question_ids)
        for pick in self.db.list_picks(round_number=round_number):
            if pick.question_id not in wanted:
                continue
            tallies.setdefault(pick.question_id, Counter())[pick.pick] += 1
            if uid and pick.user_id == uid:
                user_picks[pick.question_id] = pick.pick

        board = RoundBoard(round_number=round_number)
        for game in round_record.games:
            lock = locks.get(game.id)
            board_game = BoardGame(
                id=game.id,
                match=game.match,
                sport=game.sport,
                venue=game.venue,
                start_time=game.start_time,
                is_unlocked_for_picks=lock.is_unlocked_for_picks if lock else True,
            )
            for question in game.questions:
                counts = tallies.get(question.id, Counter())
                total = counts[PickSide.YES] + counts[PickSide.NO]
                status_record = statuses.get(question.id)
                status = status_record.status if status_record else question.status
                board_game.questions.append(
                    BoardQuestion(
                        id=question.id,
                        quarter=question.quarter,
                        question=question.question,
                        status=status,
                        sport=question.sport or game.sport,
                        is_sponsor_question=config.is_sponsor_question(
                            round_number, question.id
                        ),
                        user_pick=user_picks.get(question.id),
                        yes_percent=_percent(counts[PickSide.YES], total),
                        no_percent=_percent(counts[PickSide.NO], total),
                        comment_count=comment_counts.get(question.id, 0),
                        outcome=(
                            status_record.outcome
                            if status_record and status in SETTLED_STATUSES
                            else None
                        ),
                    )
                )
            board.games.append(board_game)
        return board

    def active_pick(self, uid: str) -> tuple[Optional[str], Optional[PickSide]]:
        """
        The user's active pick, falling back to their most recently updated
        pick (which is then stored as the active one).
        """
        user = self.db.get_user(uid)
        if user and user.active_question_id and user.active_pick:
            return user.active_question_id, user.active_pick

        picks = self.db.list_picks(user_id=uid)
        if not picks:
            return None, None
        latest = max(picks, key=lambda p: p.updated_at)
        user = user or UserRecord(uid=uid)
        user.active_question_id = latest.question_id
        user.active_pick = latest.pick
        user.last_pick_at = latest.updated_at
        self.db.save_user(user)
        return latest.question_id, latest.pick

    def _locate(
        self, question_id: str, round_number: Optional[int]
    ) -> tuple[int, Optional[RoundRecord]]:
        inferred = infer_round_number(question_id)
        if inferred is not None:
            round_number = inferred
        if round_number is None:
            raise ValidationError("roundNumber is required for this question")
        return round_number, self.fixtures.get_round(round_number)

    def save_pick(
        self,
        uid: str,
        *,
        question_id: Optional[str],
        outcome,
        round_number: Optional[int] = None,
        game_id: Optional[str] = None,
    ) -> PickRecord:
        side = normalise_pick(outcome)
        question_id = str(question_id or "").strip()
        if not question_id or side is None:
            raise ValidationError("Missing or invalid questionId/outcome")

        round_number, round_record = self._locate(question_id, round_number)
        match_text = ""
        question_text = ""
        schedule_status = QuestionStatus.OPEN
        if round_record is not None:
            found = round_record.find_question(question_id)
            if found is None:
                raise NotFoundError("Unknown question", {"questionId": question_id})
            game, question = found
            game_id = game.id
            match_text = game.match
            question_text = question.question
            schedule_status = question.status
        game_id = game_id or game_id_from_question_id(question_id)

        status_record = self.db.get_question_status(round_number, question_id)
        status = status_record.status if status_record else schedule_status
        if status != QuestionStatus.OPEN:
            raise ConflictError(
                "Question is not open for picks", {"status": status.value}
            )
        if game_id:
            lock = self.db.get_game_lock(game_id)
            if lock is not None and not lock.is_unlocked_for_picks:
                raise ConflictError("Game is locked for picks", {"gameId": game_id})

        now = time.time()
        existing = self.db.get_pick(uid, question_id)
        pick = PickRecord(
            user_id=uid,
            question_id=question_id,
            pick=side,
            round_number=round_number,
            game_id=game_id,
            match=match_text,
            question=question_text,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.db.save_pick(pick)

        user = self.db.get_user(uid) or UserRecord(uid=uid)
        user.active_question_id = question_id
        user.active_pick = side
        user.last_pick_at = now
        self.db.save_user(user)
        return pick

    def clear_pick(self, uid: str, question_id: Optional[str]) -> None:
        """Removes the pick and the active pick; streaks are left alone."""
        question_id = str(question_id or "").strip()
        if not question_id:
            raise ValidationError("Missing questionId for clear")
        user = self.db.get_user(uid) or UserRecord(uid=uid)
        user.active_question_id = None
        user.active_pick = None
        user.last_pick_at = time.time()
        self.db.save_user(user)
        self.db.delete_pick(uid, question_id)

    def question_stats(self, question_id: str) -> QuestionStats:
        counts = Counter(p.pick for p in self.db.list_picks(question_id=question_id))
        yes = counts[PickSide.YES]
        no = counts[PickSide.NO]
        return QuestionStats(total=yes + no, yes=yes, no=no)
