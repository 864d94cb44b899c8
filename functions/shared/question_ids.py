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

import re
from typing import Optional

OPENING_ROUND_CODE = "OR"

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

GAME_ID_PATTERN = re.compile(r"^(OR|R(\d+))-G(\d+)$")
SEQUENTIAL_QUESTION_ID_PATTERN = re.compile(r"^(OR|R\d+)-G\d+-Q\d+$")
_ROUND_PREFIX_PATTERN = re.compile(r"^R(\d+)-")


def round_code(round_number: int) -> str:
    """Round 0 is the Opening Round ("OR"); every other round is "R{n}"."""
    if round_number == 0:
        return OPENING_ROUND_CODE
    return f"R{round_number}"


def round_number_from_label(label) -> Optional[int]:
    """
    Parses a schedule round label such as "OR", "Opening Round", "R3" or "3".

    Returns None when the label cannot be read as a round.
    """
    s = str(label if label is not None else "").strip().upper()
    if not s:
        return None
    if s in ("OR", "OPENING", "OPENING ROUND"):
        return 0
    if s.startswith("R"):
        s = s[1:]
    try:
        value = int(s)
    except ValueError:
        return None
    return value if value >= 0 else None


def make_game_id(round_number: int, game_number: int) -> str:
    return f"{round_code(round_number)}-G{game_number}"


def parse_game_id(game_id: str) -> Optional[tuple[int, int]]:
    """Parses "OR-G1" / "r4-g6" into (round_number, game_index)."""
    s = str(game_id or "").strip().upper()
    match = GAME_ID_PATTERN.match(s)
    if not match:
        return None
    round_number = 0 if match.group(1) == OPENING_ROUND_CODE else int(match.group(2))
    game_index = int(match.group(3))
    if game_index < 1:
        return None
    return round_number, game_index


def round_number_from_game_id(game_id: str) -> int:
    parsed = parse_game_id(game_id)
    if parsed:
        return parsed[0]
    s = str(game_id or "").strip().upper()
    if s.startswith("R"):
        prefix = s.split("-", 1)[0][1:]
        if prefix.isdigit():
            return int(prefix)
    return 0


def infer_round_number(question_id: str) -> Optional[int]:
    """
    Infers the round from a question id ("OR-G1-Q1-xxxx" -> 0,
    "R12-G3-Q2-xxxx" -> 12). Returns None when there is no round prefix.
    """
    q = str(question_id or "").strip().upper()
    if not q:
        return None
    if q.startswith("OR-"):
        return 0
    match = _ROUND_PREFIX_PATTERN.match(q)
    if match:
        return int(match.group(1))
    return None


def game_id_from_question_id(question_id: str) -> Optional[str]:
    match = re.match(r"^((?:OR|R\d+)-G\d+)-", str(question_id or "").strip().upper())
    return match.group(1) if match else None


def question_status_key(round_number: int, question_id: str) -> str:
    """One status record per (round, question)."""
    return f"{round_number}__{question_id}"


def pick_key(uid: str, question_id: str) -> str:
    return f"{uid}_{question_id}"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def fnv1a_base36(text: str) -> str:
    """32-bit FNV-1a over UTF-16 code units, rendered in base 36."""
    h = FNV_OFFSET_BASIS
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h ^= data[i] | (data[i + 1] << 8)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return _to_base36(h)


def stable_question_id(
    *, round_number: int, game_id: str, quarter: int, question: str
) -> str:
    """
    Builds the id every reader and writer of picks/status records agrees on.

    The same (round, game, quarter, question text) always yields the same id,
    so editing question spelling produces a new id while re-imports do not.
    """
    base = f"{round_number}|{game_id}|Q{quarter}|{str(question or '').strip().lower()}"
    return f"{game_id}-Q{quarter}-{fnv1a_base36(base)}"


def is_sequential_question_id(question_id: str) -> bool:
    return bool(SEQUENTIAL_QUESTION_ID_PATTERN.match(str(question_id or "")))
