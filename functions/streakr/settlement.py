"""
Admin settlement of questions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from shared.question_ids import infer_round_number
from shared.types import (
    SETTLED_STATUSES,
    Outcome,
    OverrideMode,
    QuestionStatus,
    SettlementAction,
)
from streakr.errors import ConflictError, ValidationError
from streakr.records import QuestionStatusRecord
from streakr.streaks import StreakService

logger = logging.getLogger(__name__)

ACTIONS: dict[SettlementAction, tuple[QuestionStatus, Optional[Outcome]]] = {
    SettlementAction.LOCK: (QuestionStatus.PENDING, None),
    SettlementAction.REOPEN: (QuestionStatus.OPEN, None),
    SettlementAction.FINAL_YES: (QuestionStatus.FINAL, Outcome.YES),
    SettlementAction.FINAL_NO: (QuestionStatus.FINAL, Outcome.NO),
    SettlementAction.FINAL_VOID: (QuestionStatus.VOID, Outcome.VOID),
    SettlementAction.VOID: (QuestionStatus.VOID, Outcome.VOID),
}


def resolve_action(action: str) -> tuple[QuestionStatus, Optional[Outcome]]:
    try:
        return ACTIONS[SettlementAction(str(action).strip().lower())]
    except ValueError:
        raise ValidationError("Invalid action") from None


@dataclass
class SettlementResult:
    round_number_used: int
    round_number_from_body: int
    round_number_inferred: Optional[int]
    status: QuestionStatus
    outcome: Optional[Outcome]
    users_recomputed: int


class SettlementService:
    def __init__(self, db, streaks: StreakService):
        self.db = db
        self.streaks = streaks

    def settle(
        self,
        *,
        round_number: Optional[int],
        question_id: Optional[str],
        action: Optional[str],
    ) -> SettlementResult:
        """
        Writes the question's status record and recomputes the streak of
        everyone who picked it.

        The round inferred from the question id wins over the one sent by the
        console, so a mis-selected round cannot desync the ladders.
        """
        if round_number is None:
            raise ValidationError("roundNumber is required")
        question_id = str(question_id or "").strip()
        if not question_id or not action:
            raise ValidationError("questionId and action are required")

        status, outcome = resolve_action(action)
        inferred = infer_round_number(question_id)
        used_round = inferred if inferred is not None else round_number

        existing = self.db.get_question_status(used_round, question_id)
        if (
            status == QuestionStatus.PENDING
            and existing is not None
            and existing.status in SETTLED_STATUSES
        ):
            raise ConflictError(
                "Question is already settled; reopen it before locking",
                {"status": existing.status.value},
            )

        self.db.save_question_status(
            QuestionStatusRecord(
                round_number=used_round,
                question_id=question_id,
                status=status,
                outcome=outcome,
                override_mode=OverrideMode.MANUAL,
                updated_at=time.time(),
            )
        )

        affected = {p.user_id for p in self.db.list_picks(question_id=question_id)}
        recomputed = self.streaks.recompute_users(affected, used_round) if affected else 0
        logger.info(
            "Settled %s (round %s) as %s/%s; recomputed %d users",
            question_id,
            used_round,
            status.value,
            outcome.value if outcome else None,
            recomputed,
        )
        return SettlementResult(
            round_number_used=used_round,
            round_number_from_body=round_number,
            round_number_inferred=inferred,
            status=status,
            outcome=outcome,
            users_recomputed=recomputed,
        )
