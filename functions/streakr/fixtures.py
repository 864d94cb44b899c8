"""
Season schedule rows -> Round records.

Schedules arrive as flat spreadsheet-style rows (one row per question).
Games keep the order they are first seen in; questions keep row order
within their game so question ids match between every reader.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterable, Optional

from shared.question_ids import (
    make_game_id,
    round_number_from_label,
    stable_question_id,
)
from shared.types import QuestionStatus
from streakr.records import GameRecord, QuestionRecord, RoundRecord

logger = logging.getLogger(__name__)

_HEADER_ALIASES = {
    "round": "round",
    "game": "game",
    "match": "match",
    "venue": "venue",
    "starttime": "start_time",
    "question": "question",
    "quarter": "quarter",
    "status": "status",
    "sport": "sport",
}

_ROW_STATUSES = {
    "final": QuestionStatus.FINAL,
    "pending": QuestionStatus.PENDING,
    "void": QuestionStatus.VOID,
}


def _normalise_header(header: str) -> str:
    return re.sub(r"[\s_.]", "", str(header or "")).lower()


def normalise_row(raw: dict) -> dict:
    """Maps arbitrary header spellings ("Start Time", "start_time") to field names."""
    row: dict = {}
    for key, value in raw.items():
        name = _HEADER_ALIASES.get(_normalise_header(key))
        if name and name not in row:
            row[name] = value
    return row


def _as_int(value, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(float(str(value).strip()))
    except ValueError:
        return default


def build_rounds(
    rows: Iterable[dict], *, season: int, sport: str = "AFL"
) -> dict[int, RoundRecord]:
    """
    Groups schedule rows into rounds keyed by round number.

    Rows missing a round, game, match, question or start time are skipped.
    """
    rounds: dict[int, RoundRecord] = {}
    skipped = 0
    for raw in rows:
        row = normalise_row(raw)
        round_number = round_number_from_label(row.get("round"))
        game_number = _as_int(row.get("game"))
        match = str(row.get("match") or "").strip()
        question_text = str(row.get("question") or "").strip()
        start_time = str(row.get("start_time") or "").strip()
        if (
            round_number is None
            or not game_number
            or not match
            or not question_text
            or not start_time
        ):
            skipped += 1
            continue

        round_record = rounds.get(round_number)
        if round_record is None:
            round_record = RoundRecord(
                season=season,
                round_number=round_number,
                label=_round_label(round_number),
            )
            rounds[round_number] = round_record

        game_id = make_game_id(round_number, game_number)
        game = round_record.get_game(game_id)
        if game is None:
            game = GameRecord(
                id=game_id,
                match=match,
                venue=str(row.get("venue") or "").strip(),
                start_time=start_time,
                sport=str(row.get("sport") or sport).upper(),
            )
            round_record.games.append(game)

        quarter = _as_int(row.get("quarter"), 1) or 1
        status = _ROW_STATUSES.get(
            str(row.get("status") or "").strip().lower(), QuestionStatus.OPEN
        )
        game.questions.append(
            QuestionRecord(
                id=stable_question_id(
                    round_number=round_number,
                    game_id=game_id,
                    quarter=quarter,
                    question=question_text,
                ),
                quarter=quarter,
                question=question_text,
                status=status,
                sport=game.sport,
            )
        )

    if skipped:
        logger.info("Skipped %d incomplete schedule rows", skipped)
    return rounds


def _round_label(round_number: int) -> str:
    if round_number == 0:
        return "Opening Round"
    return f"Round {round_number}"


def load_rows(path: str | Path) -> list[dict]:
    """Reads schedule rows from a JSON array or a {"rounds": [...]} object."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("rounds") or []
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of schedule rows")
    return [row for row in data if isinstance(row, dict)]


class FixtureSource:
    """
    Resolves rounds from the database, falling back to the bundled schedule
    file for rounds that were never imported.
    """

    def __init__(self, db, *, season: int, fixtures_path: Optional[str] = None):
        self.db = db
        self.season = season
        self.fixtures_path = fixtures_path
        self._file_rounds: Optional[dict[int, RoundRecord]] = None

    def _load_file_rounds(self) -> dict[int, RoundRecord]:
        if self._file_rounds is None:
            self._file_rounds = {}
            if self.fixtures_path and Path(self.fixtures_path).exists():
                rows = load_rows(self.fixtures_path)
                self._file_rounds = build_rounds(rows, season=self.season)
        return self._file_rounds

    def get_round(self, round_number: int) -> Optional[RoundRecord]:
        stored = self.db.get_round(self.season, round_number)
        if stored is not None:
            return stored
        return self._load_file_rounds().get(round_number)
