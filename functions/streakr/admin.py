"""
Admin console operations: schedule import, publishing, the sponsor
question, diagnostics and background job requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from shared.types import JobKind
from streakr.errors import NotFoundError, ValidationError
from streakr.fixtures import FixtureSource, build_rounds, load_rows
from streakr.queue import JobQueue
from streakr.records import JobRecord, RoundRecord, SponsorQuestion

logger = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    backend: str
    user_count: int
    season: int
    current_round_number: Optional[int]


class AdminService:
    def __init__(self, db, fixtures: FixtureSource, queue: JobQueue):
        self.db = db
        self.fixtures = fixtures
        self.queue = queue

    @property
    def season(self) -> int:
        return self.fixtures.season

    # Rounds

    def import_rounds(self, rows: Optional[Iterable[dict]] = None) -> list[RoundRecord]:
        """
        Builds rounds from schedule rows (the bundled schedule file when no
        rows are given) and stores them, keeping each round's published flag.
        """
        if rows is None:
            if not self.fixtures.fixtures_path:
                raise ValidationError("No schedule rows supplied")
            rows = load_rows(self.fixtures.fixtures_path)
        rounds = build_rounds(rows, season=self.season)
        if not rounds:
            raise ValidationError("No valid schedule rows found")

        for round_number, round_record in sorted(rounds.items()):
            existing = self.db.get_round(self.season, round_number)
            round_record.published = bool(existing and existing.published)
            self.db.save_round(round_record)
        logger.info(
            "Imported %d rounds (%d questions) for season %s",
            len(rounds),
            sum(len(r.question_ids()) for r in rounds.values()),
            self.season,
        )
        return [rounds[n] for n in sorted(rounds)]

    def list_rounds(self) -> list[RoundRecord]:
        return self.db.list_rounds(self.season)

    def _round(self, round_number: int) -> RoundRecord:
        round_record = self.fixtures.get_round(round_number)
        if round_record is None:
            raise NotFoundError("Round not found", {"roundNumber": round_number})
        return round_record

    def publish(self, round_number: int) -> RoundRecord:
        """Publishes the round and makes it the season's current round."""
        round_record = self._round(round_number)
        round_record.published = True
        self.db.save_round(round_record)

        config = self.db.get_season_config(self.season)
        config.current_round_number = round_record.round_number
        config.current_round_key = round_record.round_key
        config.current_round_label = round_record.label
        self.db.save_season_config(config)
        logger.info("Published %s %s", self.season, round_record.label)
        return round_record

    def unpublish(self, round_number: int) -> RoundRecord:
        round_record = self._round(round_number)
        round_record.published = False
        self.db.save_round(round_record)
        logger.info("Unpublished %s %s", self.season, round_record.label)
        return round_record

    # Sponsor question

    def set_sponsor_question(self, *, round_number, question_id) -> SponsorQuestion:
        question_id = str(question_id or "").strip()
        if not isinstance(round_number, int) or round_number < 0 or not question_id:
            raise ValidationError("roundNumber and questionId are required")
        if self._round(round_number).find_question(question_id) is None:
            raise NotFoundError("Unknown question", {"questionId": question_id})

        config = self.db.get_season_config(self.season)
        config.sponsor_question = SponsorQuestion(
            round_number=round_number, question_id=question_id
        )
        self.db.save_season_config(config)
        return config.sponsor_question

    def clear_sponsor_question(self) -> None:
        config = self.db.get_season_config(self.season)
        config.sponsor_question = None
        self.db.save_season_config(config)

    # Diagnostics and jobs

    def diagnostics(self) -> Diagnostics:
        config = self.db.get_season_config(self.season)
        return Diagnostics(
            backend=self.db.backend_name,
            user_count=len(self.db.list_users()),
            season=self.season,
            current_round_number=config.current_round_number,
        )

    def enqueue_job(self, kind: JobKind, round_number: Optional[int] = None) -> JobRecord:
        if round_number is None:
            round_number = self.db.get_season_config(self.season).current_round_number
        if not isinstance(round_number, int) or round_number < 0:
            raise ValidationError("roundNumber is required")
        job = self.db.create_job(
            kind, {"season": self.season, "round_number": round_number}
        )
        self.queue.enqueue(job)
        logger.info("Queued %s job %s for round %s", kind.value, job.job_id, round_number)
        return job
