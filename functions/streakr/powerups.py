"""
Power-ups: the Panic Button (one per round) and the Golden Free Kick (one
per season).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from shared.question_ids import make_game_id, parse_game_id
from shared.types import PickResult
from streakr.errors import ConflictError, NotFoundError, ValidationError
from streakr.fixtures import FixtureSource
from streakr.records import FreeKickRecord, PanicRecord
from streakr.streaks import StreakService, latest_status_map, pick_result, settled_outcome

logger = logging.getLogger(__name__)


@dataclass
class PanicResult:
    question_id: str
    round_number: int


@dataclass
class FreeKickResult:
    season: int
    game_id: str
    round_number: int
    current_streak: Optional[int]


class PowerUpService:
    def __init__(self, db, fixtures: FixtureSource, streaks: StreakService):
        self.db = db
        self.fixtures = fixtures
        self.streaks = streaks

    @property
    def season(self) -> int:
        return self.fixtures.season

    def panic(self, uid: str, *, round_number, game_id, question_id) -> PanicResult:
        """
        Voids the user's pick on one question. Allowed once per round, only
        on an answered question, and never on the sponsor question.
        """
        if not isinstance(round_number, int) or round_number < 0:
            raise ValidationError("roundNumber is required")
        game_id = str(game_id or "").strip()
        question_id = str(question_id or "").strip()
        if not game_id:
            raise ValidationError("gameId is required")
        if not question_id:
            raise ValidationError("questionId is required")

        config = self.db.get_season_config(self.season)
        if config.sponsor_question and config.sponsor_question.question_id == question_id:
            raise ConflictError(
                "Panic is not allowed on the sponsor question.", {"usedQuestionId": None}
            )

        used = self.db.get_panic(self.season, uid, round_number)
        if used is not None:
            raise ConflictError(
                "Panic already used for this round.",
                {"usedQuestionId": used.question_id or None},
            )

        pick = self.db.get_pick(uid, question_id)
        if pick is None:
            raise ConflictError(
                "Panic requires a question already answered.", {"usedQuestionId": None}
            )

        record = PanicRecord(
            user_id=uid,
            season=self.season,
            round_number=round_number,
            game_id=game_id,
            question_id=question_id,
            previous_pick=pick.pick,
        )
        if not self.db.record_panic(record):
            winner = self.db.get_panic(self.season, uid, round_number)
            raise ConflictError(
                "Panic already used for this round.",
                {"usedQuestionId": winner.question_id if winner else None},
            )

        self.db.delete_pick(uid, question_id)
        user = self.db.get_user(uid)
        if user is not None and user.active_question_id == question_id:
            user.active_question_id = None
            user.active_pick = None
            self.db.save_user(user)
        logger.info("User %s used panic on %s (round %s)", uid, question_id, round_number)
        return PanicResult(question_id=question_id, round_number=round_number)

    def free_kick(self, uid: str, *, game_id) -> FreeKickResult:
        """
        Protects the streak from one busted game per season.

        Every question the user picked in the game must be settled and at
        least one pick must be wrong.
        """
        parsed = parse_game_id(str(game_id or ""))
        if parsed is None:
            raise ValidationError("Invalid gameId")
        round_number, game_index = parsed
        canonical_id = make_game_id(round_number, game_index)

        if self.db.get_free_kick(self.season, uid) is not None:
            raise ConflictError("Free kick already used this season")

        round_record = self.fixtures.get_round(round_number)
        game = round_record.get_game(canonical_id) if round_record else None
        if game is None:
            raise NotFoundError("Round/game not found")
        if not game.questions:
            raise ValidationError("No questions for this game")

        game_qids = {q.id for q in game.questions}
        user_picks = {
            p.question_id: p.pick
            for p in self.db.list_picks(user_id=uid)
            if p.question_id in game_qids
        }
        if not user_picks:
            raise ValidationError("No picks submitted for this game")

        status_map = latest_status_map(
            r for r in self.db.list_question_statuses(round_number) if r.question_id in game_qids
        )
        if any(settled_outcome(status_map.get(qid)) is None for qid in user_picks):
            raise ConflictError("Game not settled yet")
        if not any(
            pick_result(pick, status_map.get(qid)) == PickResult.WRONG
            for qid, pick in user_picks.items()
        ):
            raise ConflictError("Free kick can only be used after a loss")

        record = FreeKickRecord(
            user_id=uid,
            season=self.season,
            game_id=canonical_id,
            round_number=round_number,
            game_index=game_index,
            used_at=time.time(),
        )
        if not self.db.record_free_kick(record):
            raise ConflictError("Free kick already used this season")

        result = self.streaks.recompute_user(uid, round_number)
        logger.info("User %s used the free kick on %s", uid, canonical_id)
        return FreeKickResult(
            season=self.season,
            game_id=canonical_id,
            round_number=round_number,
            current_streak=result.current_streak if result else None,
        )
