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
# Standard library imports
import unittest
from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

# Local application imports
# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    from main import (
        needs_recompute,
        handle_status_write,
        round_number_for,
    )
from shared.types import Outcome, QuestionStatus
from streakr.records import QuestionStatusRecord

QID = "R3-G2-Q4-1x2y3z"
STATUS_ID = f"3__{QID}"


def _snapshot(data):
    snapshot = MagicMock()
    snapshot.exists = data is not None
    snapshot.to_dict.return_value = data
    return snapshot


def _write(before, after, status_id=STATUS_ID):
    return handle_status_write(status_id, _snapshot(before), _snapshot(after))


class TestNeedsRecompute(unittest.TestCase):

    def test_settling_and_reopening_trigger(self):
        open_record = QuestionStatusRecord(3, QID, QuestionStatus.OPEN)
        final_yes = QuestionStatusRecord(3, QID, QuestionStatus.FINAL, Outcome.YES)
        final_no = QuestionStatusRecord(3, QID, QuestionStatus.FINAL, Outcome.NO)

        self.assertTrue(needs_recompute(open_record, final_yes))
        self.assertTrue(needs_recompute(final_yes, final_no))
        self.assertTrue(needs_recompute(final_yes, open_record))
        self.assertTrue(needs_recompute(final_yes, None))

    def test_unsettled_changes_are_ignored(self):
        open_record = QuestionStatusRecord(3, QID, QuestionStatus.OPEN)
        pending = QuestionStatusRecord(3, QID, QuestionStatus.PENDING)
        final_yes = QuestionStatusRecord(3, QID, QuestionStatus.FINAL, Outcome.YES)

        self.assertFalse(needs_recompute(open_record, pending))
        self.assertFalse(needs_recompute(None, pending))
        self.assertFalse(needs_recompute(final_yes, final_yes))

    def test_round_number(self):
        record = QuestionStatusRecord(0, QID, QuestionStatus.FINAL)
        self.assertEqual(round_number_for(record, STATUS_ID), 3)
        legacy = QuestionStatusRecord(7, "q-legacy", QuestionStatus.FINAL)
        self.assertEqual(round_number_for(legacy, "7__q-legacy"), 7)
        self.assertEqual(round_number_for(None, "5__q"), 5)
        self.assertIsNone(round_number_for(None, "nope"))


class TestHandleStatusWrite(unittest.TestCase):

    @patch("main.recompute_round")
    def test_settlement_recomputes_round(self, mock_recompute):
        mock_recompute.return_value = 4
        result = _write(
            {"roundNumber": 3, "questionId": QID, "status": "pending"},
            {"roundNumber": 3, "questionId": QID, "status": "final", "outcome": "yes"},
        )
        self.assertEqual(result, 4)
        mock_recompute.assert_called_once_with(3)

    @patch("main.recompute_round")
    def test_legacy_result_field_is_read(self, mock_recompute):
        _write(
            {"roundNumber": 3, "questionId": QID, "status": "final", "result": "yes"},
            {"roundNumber": 3, "questionId": QID, "status": "final", "result": "no"},
        )
        mock_recompute.assert_called_once_with(3)

    @patch("main.recompute_round")
    def test_lock_does_not_recompute(self, mock_recompute):
        result = _write(
            {"roundNumber": 3, "questionId": QID, "status": "open"},
            {"roundNumber": 3, "questionId": QID, "status": "pending"},
        )
        self.assertIsNone(result)
        mock_recompute.assert_not_called()

    @patch("main.recompute_round")
    def test_deleted_settled_status_recomputes(self, mock_recompute):
        _write(
            {"roundNumber": 3, "questionId": QID, "status": "void", "outcome": "void"},
            None,
        )
        mock_recompute.assert_called_once_with(3)

    @patch("main.recompute_round")
    def test_server_timestamps_are_accepted(self, mock_recompute):
        now = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)
        _write(
            {"roundNumber": 3, "questionId": QID, "status": "open", "updatedAt": now},
            {
                "roundNumber": 3,
                "questionId": QID,
                "status": "final",
                "outcome": "yes",
                "updatedAt": now,
            },
        )
        mock_recompute.assert_called_once_with(3)


if __name__ == "__main__":
    unittest.main()
