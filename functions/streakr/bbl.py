"""
BBL match schedule used by the BBL hub.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from streakr.errors import ValidationError
from streakr.records import BblMatchRecord

HOUR = 3600


def _timestamp(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("Invalid startTime", {"startTime": value}) from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    raise ValidationError("startTime is required")


class BblService:
    def __init__(self, db, *, buffer_hours: float = 8.0):
        self.db = db
        self.buffer_hours = buffer_hours

    def upsert(self, matches: Iterable[dict]) -> list[BblMatchRecord]:
        saved = []
        for raw in matches:
            match_id = str(raw.get("id") or "").strip()
            if not match_id:
                raise ValidationError("Every BBL match needs an id")
            record = BblMatchRecord(
                id=match_id,
                match=str(raw.get("match") or "").strip(),
                venue=str(raw.get("venue") or "").strip(),
                start_time=_timestamp(raw.get("start_time")),
            )
            self.db.save_bbl_match(record)
            saved.append(record)
        return saved

    def current(self, now: Optional[float] = None) -> Optional[BblMatchRecord]:
        """
        The match in progress or the next one: the earliest match that
        started no more than buffer_hours ago.
        """
        now = time.time() if now is None else now
        cutoff = now - self.buffer_hours * HOUR
        for match in self.db.list_bbl_matches():
            if match.start_time >= cutoff:
                return match
        return None
