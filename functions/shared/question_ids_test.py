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


import unittest

from shared import question_ids


class QuestionIdsTest(unittest.TestCase):

    def test_round_code(self):
        self.assertEqual(question_ids.round_code(0), "OR")
        self.assertEqual(question_ids.round_code(12), "R12")
        self.assertEqual(question_ids.make_game_id(4, 6), "R4-G6")

    def test_round_number_from_label(self):
        self.assertEqual(question_ids.round_number_from_label("Opening Round"), 0)
        self.assertEqual(question_ids.round_number_from_label("r3"), 3)
        self.assertEqual(question_ids.round_number_from_label(7), 7)
        self.assertIsNone(question_ids.round_number_from_label("Finals"))
        self.assertIsNone(question_ids.round_number_from_label(None))

    def test_parse_game_id(self):
        self.assertEqual(question_ids.parse_game_id("OR-G1"), (0, 1))
        self.assertEqual(question_ids.parse_game_id("r4-g6"), (4, 6))
        self.assertIsNone(question_ids.parse_game_id("R4-G0"))
        self.assertIsNone(question_ids.parse_game_id("game-1"))

    def test_infer_round_number(self):
        self.assertEqual(question_ids.infer_round_number("OR-G1-Q1-abc"), 0)
        self.assertEqual(question_ids.infer_round_number("R12-G3-Q2-abc"), 12)
        self.assertIsNone(question_ids.infer_round_number("legacy-question"))
        self.assertIsNone(question_ids.infer_round_number(""))
        self.assertEqual(question_ids.game_id_from_question_id("r2-g5-q1-x"), "R2-G5")

    def test_fnv1a_base36(self):
        # Offset basis for the empty string; the published FNV-1a vector for "a".
        self.assertEqual(question_ids.fnv1a_base36(""), "ztntfp")
        self.assertEqual(question_ids.fnv1a_base36("a"), "1r9wi7g")

    def test_stable_question_id(self):
        qid = question_ids.stable_question_id(
            round_number=1, game_id="R1-G2", quarter=3, question="  Will Carlton win?  "
        )
        same = question_ids.stable_question_id(
            round_number=1, game_id="R1-G2", quarter=3, question="will carlton win?"
        )
        other = question_ids.stable_question_id(
            round_number=1, game_id="R1-G2", quarter=3, question="Will Carlton lose?"
        )
        self.assertTrue(qid.startswith("R1-G2-Q3-"))
        self.assertEqual(qid, same)
        self.assertNotEqual(qid, other)
        self.assertFalse(question_ids.is_sequential_question_id(qid))
        self.assertTrue(question_ids.is_sequential_question_id("R1-G2-Q3"))

    def test_keys(self):
        self.assertEqual(question_ids.question_status_key(3, "q"), "3__q")
        self.assertEqual(question_ids.pick_key("u1", "q"), "u1_q")


if __name__ == "__main__":
    unittest.main()
