# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Cloud functions for STREAKr - streak recomputation on settlement.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from typing import Optional

# Third-party library imports
from firebase_admin import initialize_app, firestore
from firebase_functions import logger, options
from firebase_functions.firestore_fn import (
    on_document_written,
    Event,
    Change,
    DocumentSnapshot,
)

# Local application imports
from shared.firebase_constants import QUESTION_STATUS_COLLECTION
from shared.question_ids import infer_round_number
from shared.types import SETTLED_STATUSES
from streakr.config import get_settings
from streakr.firestore_db import FirestoreDbClient, snapshot_data
from streakr.fixtures import FixtureSource
from streakr.records import QuestionStatusRecord
from streakr.streaks import StreakService

RECOMPUTE_FUNCTION_TIMEOUT = 300

initialize_app()


def _status_record(
    snapshot: Optional[DocumentSnapshot], status_id: str
) -> Optional[QuestionStatusRecord]:
    if snapshot is None or not snapshot.exists:
        return None
    data = snapshot_data(snapshot)
    return QuestionStatusRecord.from_dict(data, record_id=status_id)


def _settled_state(record: Optional[QuestionStatusRecord]):
    """(status, outcome) when the record is settled, else None."""
    if record is None or record.status not in SETTLED_STATUSES:
        return None
    return record.status, record.outcome


def needs_recompute(
    before: Optional[QuestionStatusRecord], after: Optional[QuestionStatusRecord]
) -> bool:
    """
    True when the write moved the question into or out of a settled state,
    or changed the outcome of a settled question.
    """
    return _settled_state(before) != _settled_state(after)


def round_number_for(
    record: Optional[QuestionStatusRecord], status_id: str
) -> Optional[int]:
    if record is not None:
        inferred = infer_round_number(record.question_id)
        if inferred is not None:
            return inferred
        if record.round_number:
            return record.round_number
    # Status ids are "{roundNumber}__{questionId}".
    prefix = status_id.split("__", 1)[0]
    return int(prefix) if prefix.isdigit() else None


def recompute_round(round_number: int) -> int:
    settings = get_settings()
    db = FirestoreDbClient(firestore.client())
    fixtures = FixtureSource(
        db, season=settings.season, fixtures_path=settings.fixtures_path
    )
    return StreakService(db, fixtures).recompute_round(round_number)


def handle_status_write(
    status_id: str,
    before_snapshot: Optional[DocumentSnapshot],
    after_snapshot: Optional[DocumentSnapshot],
) -> Optional[int]:
    """
    Recomputes the round's streaks when a question is settled, re-settled or
    reopened. Returns the number of users recomputed, or None when skipped.
    """
    before = _status_record(before_snapshot, status_id)
    after = _status_record(after_snapshot, status_id)

    if not needs_recompute(before, after):
        return None

    round_number = round_number_for(after or before, status_id)
    if round_number is None:
        logger.warn(f"Could not work out the round for status {status_id}")
        return None

    recomputed = recompute_round(round_number)
    logger.info(
        f"Status {status_id} changed; recomputed {recomputed} users in round {round_number}"
    )
    return recomputed


@on_document_written(
    timeout_sec=RECOMPUTE_FUNCTION_TIMEOUT,
    memory=options.MemoryOption.MB_512,
    document=QUESTION_STATUS_COLLECTION + "/{statusId}",
)
def on_question_status_written(event: Event[Change[DocumentSnapshot]]) -> None:
    handle_status_write(event.params["statusId"], event.data.before, event.data.after)
