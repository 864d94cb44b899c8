"""
Streak engine.

Scoring is a clean sweep per game, running across the games of a round:

* games are walked in schedule order; a game the user made no pick in does
  not touch the streak;
* only questions settled as final or void count; void outcomes and
  unsettled picks neither add nor bust;
* one wrong settled pick busts the game: the streak drops to zero and none
  of that game's correct picks count;
* a Golden Free Kick on a game turns a bust into "no change": the streak
  keeps its pre-game value, still without that game's correct picks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from shared.types import (
    SETTLED_STATUSES,
    Outcome,
    PickResult,
    PickSide,
    QuestionStatus,
)
from streakr.records import PickRecord, QuestionStatusRecord, RoundRecord, UserRecord

logger = logging.getLogger(__name__)


@dataclass
class SettledState:
    status: QuestionStatus
    outcome: Optional[Outcome] = None


@dataclass
class StreakResult:
    current_streak: int
    longest_streak: int
    games_busted: list[str]
    games_protected: list[str]


def latest_status_map(
    records: Iterable[QuestionStatusRecord],
) -> dict[str, SettledState]:
    """
    Collapses status records to the newest one per question.

    Legacy data can hold several records for one question; the greatest
    updated_at wins and later records win ties.
    """
    newest: dict[str, QuestionStatusRecord] = {}
    for record in records:
        if not record.question_id:
            continue
        existing = newest.get(record.question_id)
        if existing is None or record.updated_at >= existing.updated_at:
            newest[record.question_id] = record
    return {
        qid: SettledState(status=r.status, outcome=r.outcome)
        for qid, r in newest.items()
    }


def settled_outcome(state: Optional[SettledState]) -> Optional[Outcome]:
    if state is None or state.status not in SETTLED_STATUSES:
        return None
    if state.status == QuestionStatus.VOID:
        return state.outcome or Outcome.VOID
    return state.outcome


def pick_result(pick: PickSide, state: Optional[SettledState]) -> PickResult:
    outcome = settled_outcome(state)
    if outcome is None:
        return PickResult.PENDING
    if outcome == Outcome.VOID:
        return PickResult.VOID
    return PickResult.CORRECT if pick.value == outcome.value else PickResult.WRONG


def picks_by_question(picks: Iterable[PickRecord]) -> dict[str, PickSide]:
    """Latest pick per question for one user."""
    chosen: dict[str, PickRecord] = {}
    for pick in picks:
        existing = chosen.get(pick.question_id)
        if existing is None or pick.updated_at >= existing.updated_at:
            chosen[pick.question_id] = pick
    return {qid: p.pick for qid, p in chosen.items()}


def compute_round_streak(
    round_record: RoundRecord,
    status_map: Mapping[str, SettledState],
    user_picks: Mapping[str, PickSide],
    *,
    free_kick_game_id: Optional[str] = None,
    existing_longest: int = 0,
) -> StreakResult:
    rolling = 0
    busted: list[str] = []
    protected: list[str] = []
    free_kick_game = (free_kick_game_id or "").upper()

    for game in round_record.games:
        picked = [q.id for q in game.questions if q.id in user_picks]
        if not picked:
            continue

        game_busted = False
        game_add = 0
        for qid in picked:
            result = pick_result(user_picks[qid], status_map.get(qid))
            if result == PickResult.WRONG:
                game_busted = True
                break
            if result == PickResult.CORRECT:
                game_add += 1

        if game_busted:
            if free_kick_game and game.id.upper() == free_kick_game:
                protected.append(game.id)
                continue
            busted.append(game.id)
            rolling = 0
            continue

        rolling += game_add

    return StreakResult(
        current_streak=rolling,
        longest_streak=max(existing_longest, rolling),
        games_busted=busted,
        games_protected=protected,
    )


class StreakService:
    """Recomputes and stores user streaks for a round."""

    def __init__(self, db, fixtures):
        self.db = db
        self.fixtures = fixtures

    def recompute_user(
        self,
        uid: str,
        round_number: int,
        *,
        round_record: Optional[RoundRecord] = None,
        status_map: Optional[Mapping[str, SettledState]] = None,
    ) -> Optional[StreakResult]:
        round_record = round_record or self.fixtures.get_round(round_number)
        if round_record is None:
            logger.warning("Cannot recompute %s: round %s has no schedule", uid, round_number)
            return None
        if status_map is None:
            status_map = latest_status_map(self.db.list_question_statuses(round_number))

        round_qids = set(round_record.question_ids())
        user_picks = picks_by_question(
            p for p in self.db.list_picks(user_id=uid) if p.question_id in round_qids
        )

        free_kick = self.db.get_free_kick(self.fixtures.season, uid)
        free_kick_game_id = (
            free_kick.game_id
            if free_kick and free_kick.round_number == round_number
            else None
        )

        user = self.db.get_user(uid)
        if user is None:
            user = UserRecord(uid=uid)
        result = compute_round_streak(
            round_record,
            status_map,
            user_picks,
            free_kick_game_id=free_kick_game_id,
            existing_longest=user.longest_streak,
        )
        user.current_streak = result.current_streak
        user.longest_streak = result.longest_streak
        self.db.save_user(user)
        return result

    def recompute_users(self, uids: Iterable[str], round_number: int) -> int:
        round_record = self.fixtures.get_round(round_number)
        if round_record is None:
            logger.warning("Round %s has no schedule; skipping recompute", round_number)
            return 0
        status_map = latest_status_map(self.db.list_question_statuses(round_number))
        count = 0
        for uid in sorted(set(uids)):
            self.recompute_user(
                uid, round_number, round_record=round_record, status_map=status_map
            )
            count += 1
        return count

    def recompute_round(self, round_number: int) -> int:
        """Recomputes every user with a pick on any question of the round."""
        round_record = self.fixtures.get_round(round_number)
        if round_record is None:
            return 0
        round_qids = set(round_record.question_ids())
        uids = {p.user_id for p in self.db.list_picks() if p.question_id in round_qids}
        count = self.recompute_users(uids, round_number)
        logger.info("Recomputed streaks for %d users in round %s", count, round_number)
        return count
