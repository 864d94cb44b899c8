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

from enum import StrEnum
from typing import Optional


class QuestionStatus(StrEnum):
    OPEN = "open"
    PENDING = "pending"
    FINAL = "final"
    VOID = "void"


class Outcome(StrEnum):
    YES = "yes"
    NO = "no"
    VOID = "void"


class PickSide(StrEnum):
    YES = "yes"
    NO = "no"


class PickResult(StrEnum):
    CORRECT = "correct"
    WRONG = "wrong"
    PENDING = "pending"
    VOID = "void"


class OverrideMode(StrEnum):
    MANUAL = "manual"
    AUTO = "auto"


class SettlementAction(StrEnum):
    LOCK = "lock"
    REOPEN = "reopen"
    FINAL_YES = "final_yes"
    FINAL_NO = "final_no"
    FINAL_VOID = "final_void"
    VOID = "void"


class GameState(StrEnum):
    """Live state of a game as reported by Squiggle."""

    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"


class SubscriptionStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class MemberRole(StrEnum):
    MANAGER = "manager"
    MEMBER = "member"


class JobKind(StrEnum):
    LOCK_SYNC = "lock_sync"
    RECOMPUTE_ROUND = "recompute_round"


class JobStatus(StrEnum):
    WAITING = "WAITING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


SETTLED_STATUSES = (QuestionStatus.FINAL, QuestionStatus.VOID)

_YES_WORDS = {"yes", "y", "correct", "win", "winner"}
_NO_WORDS = {"no", "n", "wrong", "loss", "loser"}
_VOID_WORDS = {"void", "cancelled", "canceled"}


def normalise_outcome(value) -> Optional[Outcome]:
    """Maps the many spellings admins have used for an outcome to an Outcome."""
    if not isinstance(value, str):
        return None
    s = value.strip().lower()
    if s in _YES_WORDS:
        return Outcome.YES
    if s in _NO_WORDS:
        return Outcome.NO
    if s in _VOID_WORDS:
        return Outcome.VOID
    return None


def normalise_status(value) -> QuestionStatus:
    """
    Maps a stored status value to a QuestionStatus.

    Exact matches win, then substring matches ("pend" -> pending), and
    anything unrecognised is treated as open.
    """
    s = str(value if value is not None else "open").strip().lower()
    for status in QuestionStatus:
        if s == status.value:
            return status
    if "open" in s:
        return QuestionStatus.OPEN
    if "final" in s:
        return QuestionStatus.FINAL
    if "pend" in s:
        return QuestionStatus.PENDING
    if "void" in s:
        return QuestionStatus.VOID
    return QuestionStatus.OPEN


def normalise_pick(value) -> Optional[PickSide]:
    if not isinstance(value, str):
        return None
    s = value.strip().lower()
    if s == "yes":
        return PickSide.YES
    if s == "no":
        return PickSide.NO
    return None
