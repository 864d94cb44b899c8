"""
Repair of question status records written under legacy sequential ids.

Early seeds numbered questions per game ("R1-G1-Q3" is the third question
of R1-G1). Those ids no longer match the stable ids on the board, so the
settled status never reached the players who picked the question.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Optional

from shared.question_ids import is_sequential_question_id
from streakr.fixtures import FixtureSource
from streakr.records import QuestionStatusRecord

logger = logging.getLogger(__name__)

_SEQUENTIAL_PARTS = re.compile(r"^((?:OR|R\d+)-G\d+)-Q(\d+)$")
MAX_EXAMPLES = 25


@dataclass
class RepairItem:
    record_id: str
    round_number: int
    from_question_id: str
    to_question_id: Optional[str]
    status: str
    outcome: Optional[str]


@dataclass
class RepairReport:
    dry_run: bool
    scanned: int = 0
    bad_found: int = 0
    migrated: int = 0
    deleted: int = 0
    unmapped: int = 0
    examples: list[RepairItem] = field(default_factory=list)


class StatusRepairService:
    def __init__(self, db, fixtures: FixtureSource):
        self.db = db
        self.fixtures = fixtures

    def _stable_id(self, round_number: int, sequential_id: str) -> Optional[str]:
        match = _SEQUENTIAL_PARTS.match(sequential_id.upper())
        if not match:
            return None
        round_record = self.fixtures.get_round(round_number)
        game = round_record.get_game(match.group(1)) if round_record else None
        ordinal = int(match.group(2))
        if game is None or not 1 <= ordinal <= len(game.questions):
            return None
        return game.questions[ordinal - 1].id

    def repair(self, *, round_number: Optional[int] = None, dry_run: bool = False) -> RepairReport:
        report = RepairReport(dry_run=dry_run)
        records = self.db.list_question_statuses(round_number)
        report.scanned = len(records)

        for record in records:
            if not is_sequential_question_id(record.question_id):
                continue
            report.bad_found += 1
            target_id = self._stable_id(record.round_number, record.question_id)
            if len(report.examples) < MAX_EXAMPLES:
                report.examples.append(
                    RepairItem(
                        record_id=record.record_id,
                        round_number=record.round_number,
                        from_question_id=record.question_id,
                        to_question_id=target_id,
                        status=record.status.value,
                        outcome=record.outcome.value if record.outcome else None,
                    )
                )
            if target_id is None:
                report.unmapped += 1
                continue
            if dry_run:
                continue

            current = self.db.get_question_status(record.round_number, target_id)
            if current is None or current.updated_at <= record.updated_at:
                self.db.save_question_status(
                    QuestionStatusRecord(
                        round_number=record.round_number,
                        question_id=target_id,
                        status=record.status,
                        outcome=record.outcome,
                        override_mode=record.override_mode,
                        updated_at=time.time(),
                    )
                )
                report.migrated += 1
            self.db.delete_question_status(record.record_id)
            report.deleted += 1

        logger.info(
            "Status repair%s: scanned %d, legacy %d, migrated %d, deleted %d, unmapped %d",
            " (dry run)" if dry_run else "",
            report.scanned,
            report.bad_found,
            report.migrated,
            report.deleted,
            report.unmapped,
        )
        return report
