"""
Firestore-backed DbClient.

Documents are stored camelCase, the way the web client reads and writes
them; records are converted at the boundary with convert_keys.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Optional

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from shared.firebase_constants import (
    BBL_MATCHES_COLLECTION,
    COMMENT_ITEMS_COLLECTION,
    COMMENTS_COLLECTION,
    CONFIG_COLLECTION,
    FREE_KICK_USES_COLLECTION,
    GAME_LOCKS_COLLECTION,
    JOBS_COLLECTION,
    LEAGUE_MEMBERS_COLLECTION,
    LEAGUES_COLLECTION,
    LEGACY_PICKS_COLLECTION,
    PANIC_COLLECTION,
    PICKS_COLLECTION,
    QUESTION_STATUS_COLLECTION,
    ROUNDS_COLLECTION,
    USERS_COLLECTION,
    VENUE_LEAGUES_COLLECTION,
    season_config_doc_id,
)
from shared.json_utils import convert_keys
from shared.question_ids import infer_round_number, pick_key
from shared.types import JobKind, JobStatus, PickSide, normalise_pick
from streakr.records import (
    BblMatchRecord,
    CommentRecord,
    FreeKickRecord,
    GameLockRecord,
    JobRecord,
    LeagueRecord,
    PanicRecord,
    PickRecord,
    QuestionStatusRecord,
    RoundRecord,
    SeasonConfig,
    UserRecord,
    VenueLeagueRecord,
)

logger = logging.getLogger(__name__)


def _to_doc(data: dict) -> dict:
    return convert_keys(data, "snake_to_camel")


def snapshot_data(snapshot) -> dict:
    data = convert_keys(snapshot.to_dict() or {}, "camel_to_snake")
    # Documents written by the web client carry server timestamps.
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.timestamp()
    return data


def _user_from_doc(uid: str, data: dict) -> UserRecord:
    # The web client stores the favourite team as "team".
    team = data.pop("team", None)
    if team and not data.get("favourite_team"):
        data["favourite_team"] = team
    data["uid"] = uid
    return UserRecord.from_dict(data)


def _where(query, field: str, op: str, value):
    return query.where(filter=FieldFilter(field, op, value))


def _known(record_cls, data: dict) -> dict:
    """Drops fields the web client wrote that the record does not model."""
    return {k: v for k, v in data.items() if k in record_cls.__dataclass_fields__}


class FirestoreDbClient:
    """DbClient over the production Firestore collections."""

    backend_name = "firestore"

    def __init__(self, client=None):
        self.client = client or firestore.client()

    def _col(self, name: str):
        return self.client.collection(name)

    # Users

    def get_user(self, uid: str) -> Optional[UserRecord]:
        snap = self._col(USERS_COLLECTION).document(uid).get()
        if not snap.exists:
            return None
        return _user_from_doc(uid, snapshot_data(snap))

    def save_user(self, user: UserRecord) -> None:
        user.updated_at = time.time()
        doc = _to_doc(user.as_dict())
        doc["team"] = doc.pop("favouriteTeam")
        self._col(USERS_COLLECTION).document(user.uid).set(doc, merge=True)

    def list_users(self) -> list[UserRecord]:
        return [
            _user_from_doc(snap.id, snapshot_data(snap))
            for snap in self._col(USERS_COLLECTION).stream()
        ]

    # Rounds and season config

    def save_round(self, round_record: RoundRecord) -> None:
        round_record.updated_at = time.time()
        self._col(ROUNDS_COLLECTION).document(round_record.round_id).set(
            _to_doc(round_record.as_dict())
        )

    def get_round(self, season: int, round_number: int) -> Optional[RoundRecord]:
        snap = self._col(ROUNDS_COLLECTION).document(f"{season}-{round_number}").get()
        if not snap.exists:
            return None
        return RoundRecord.from_dict(snapshot_data(snap))

    def list_rounds(self, season: int) -> list[RoundRecord]:
        query = _where(self._col(ROUNDS_COLLECTION), "season", "==", season)
        rounds = [RoundRecord.from_dict(snapshot_data(snap)) for snap in query.stream()]
        return sorted(rounds, key=lambda r: r.round_number)

    def get_season_config(self, season: int) -> SeasonConfig:
        snap = self._col(CONFIG_COLLECTION).document(season_config_doc_id(season)).get()
        if not snap.exists:
            return SeasonConfig(season=season)
        data = snapshot_data(snap)
        data["season"] = season
        return SeasonConfig.from_dict(data)

    def save_season_config(self, config: SeasonConfig) -> None:
        config.updated_at = time.time()
        self._col(CONFIG_COLLECTION).document(season_config_doc_id(config.season)).set(
            _to_doc(config.as_dict())
        )

    # Question statuses

    def _status_from_snapshot(self, snap) -> QuestionStatusRecord:
        data = snapshot_data(snap)
        record = QuestionStatusRecord.from_dict(data, record_id=snap.id)
        if not data.get("round_number") and record.question_id:
            inferred = infer_round_number(record.question_id)
            if inferred is not None:
                record.round_number = inferred
        return record

    def get_question_status(
        self, round_number: int, question_id: str
    ) -> Optional[QuestionStatusRecord]:
        snap = (
            self._col(QUESTION_STATUS_COLLECTION)
            .document(f"{round_number}__{question_id}")
            .get()
        )
        return self._status_from_snapshot(snap) if snap.exists else None

    def list_question_statuses(
        self, round_number: Optional[int] = None
    ) -> list[QuestionStatusRecord]:
        query = self._col(QUESTION_STATUS_COLLECTION)
        if round_number is not None:
            query = _where(query, "roundNumber", "==", round_number)
        return [self._status_from_snapshot(snap) for snap in query.stream()]

    def save_question_status(self, record: QuestionStatusRecord) -> None:
        record.record_id = record.key
        data = _to_doc(record.as_dict())
        if record.outcome is None:
            data["outcome"] = firestore.DELETE_FIELD
        self._col(QUESTION_STATUS_COLLECTION).document(record.key).set(data, merge=True)

    def delete_question_status(self, record_id: str) -> None:
        self._col(QUESTION_STATUS_COLLECTION).document(record_id).delete()

    # Picks

    def _pick_from_doc(self, data: dict, legacy: bool = False) -> Optional[PickRecord]:
        side = normalise_pick(data.get("outcome") if legacy else data.get("pick"))
        if side is None:
            side = normalise_pick(data.get("pick") or data.get("outcome"))
        user_id = data.get("user_id")
        question_id = data.get("question_id")
        if side is None or not user_id or not question_id:
            return None
        round_number = data.get("round_number")
        return PickRecord(
            user_id=user_id,
            question_id=question_id,
            pick=side,
            round_number=round_number if isinstance(round_number, int) else None,
            game_id=data.get("game_id"),
            match=data.get("match") or "",
            question=data.get("question") or "",
            created_at=float(data.get("created_at") or 0.0),
            updated_at=float(data.get("updated_at") or 0.0),
        )

    def get_pick(self, user_id: str, question_id: str) -> Optional[PickRecord]:
        snap = self._col(PICKS_COLLECTION).document(pick_key(user_id, question_id)).get()
        if not snap.exists:
            return None
        return self._pick_from_doc(snapshot_data(snap))

    def save_pick(self, pick: PickRecord) -> None:
        ref = self._col(PICKS_COLLECTION).document(pick.key)
        data = _to_doc(pick.as_dict())
        if ref.get().exists:
            data.pop("createdAt", None)
        ref.set(data, merge=True)

    def delete_pick(self, user_id: str, question_id: str) -> bool:
        ref = self._col(PICKS_COLLECTION).document(pick_key(user_id, question_id))
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def list_picks(
        self,
        *,
        user_id: Optional[str] = None,
        question_id: Optional[str] = None,
        round_number: Optional[int] = None,
    ) -> list[PickRecord]:
        """
        Returns current picks merged with legacy userPicks documents.

        A legacy pick is only returned when no current pick exists for the
        same user and question.
        """
        filters = []
        if user_id is not None:
            filters.append(("userId", user_id))
        if question_id is not None:
            filters.append(("questionId", question_id))

        def _query(collection: str, include_round: bool):
            query = self._col(collection)
            for field, value in filters:
                query = _where(query, field, "==", value)
            if include_round and round_number is not None:
                query = _where(query, "roundNumber", "==", round_number)
            return query

        picks: dict[str, PickRecord] = {}
        for snap in _query(PICKS_COLLECTION, True).stream():
            pick = self._pick_from_doc(snapshot_data(snap))
            if pick:
                picks[pick.key] = pick
        for snap in _query(LEGACY_PICKS_COLLECTION, False).stream():
            pick = self._pick_from_doc(snapshot_data(snap), legacy=True)
            if not pick or pick.key in picks:
                continue
            if round_number is not None:
                inferred = pick.round_number
                if inferred is None:
                    inferred = infer_round_number(pick.question_id)
                if inferred != round_number:
                    continue
            picks[pick.key] = pick
        return list(picks.values())

    # Comments

    def _comments(self, question_id: str):
        return (
            self._col(COMMENTS_COLLECTION)
            .document(question_id)
            .collection(COMMENT_ITEMS_COLLECTION)
        )

    def save_comment(self, comment: CommentRecord) -> None:
        self._comments(comment.question_id).document(comment.id).set(
            _to_doc(comment.as_dict())
        )

    def list_comments(self, question_id: str, limit: int = 20) -> list[CommentRecord]:
        query = self._comments(question_id).order_by(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        results = []
        # Removed comments are filtered client-side so no composite index is needed.
        for snap in query.limit(limit * 2).stream():
            data = snapshot_data(snap)
            if data.get("is_removed"):
                continue
            data["id"] = snap.id
            data["question_id"] = question_id
            results.append(CommentRecord(**_known(CommentRecord, data)))
            if len(results) >= limit:
                break
        return results

    def set_comment_removed(
        self, question_id: str, comment_id: str, removed: bool = True
    ) -> bool:
        ref = self._comments(question_id).document(comment_id)
        if not ref.get().exists:
            return False
        ref.update({"isRemoved": removed})
        return True

    def count_comments(self, question_ids: list[str]) -> dict[str, int]:
        counts = {}
        for qid in question_ids:
            query = _where(self._comments(qid), "isRemoved", "==", False)
            result = query.count().get()
            counts[qid] = int(result[0][0].value) if result else 0
        return counts

    # Leagues

    def _members(self, league_id: str):
        return (
            self._col(LEAGUES_COLLECTION)
            .document(league_id)
            .collection(LEAGUE_MEMBERS_COLLECTION)
        )

    def _league_from_snap(self, snap) -> LeagueRecord:
        data = snapshot_data(snap)
        data["id"] = snap.id
        members = []
        for member_snap in self._members(snap.id).stream():
            member = snapshot_data(member_snap)
            member.setdefault("uid", member_snap.id)
            members.append(member)
        if members:
            data["members"] = sorted(members, key=lambda m: m.get("joined_at") or 0.0)
        return LeagueRecord.from_dict(data)

    def get_league(self, league_id: str) -> Optional[LeagueRecord]:
        snap = self._col(LEAGUES_COLLECTION).document(league_id).get()
        if not snap.exists:
            return None
        return self._league_from_snap(snap)

    def find_league_by_code(self, invite_code: str) -> Optional[LeagueRecord]:
        code = "".join(str(invite_code or "").split()).upper()
        query = _where(self._col(LEAGUES_COLLECTION), "inviteCode", "==", code)
        for snap in query.limit(1).stream():
            return self._league_from_snap(snap)
        return None

    def save_league(self, league: LeagueRecord) -> None:
        """Writes the league document and syncs its members subcollection."""
        league.updated_at = time.time()
        doc = _to_doc(league.as_dict())
        doc.pop("members")
        self._col(LEAGUES_COLLECTION).document(league.id).set(doc, merge=True)

        members = self._members(league.id)
        current = set(league.member_ids)
        for snap in members.stream():
            if snap.id not in current:
                members.document(snap.id).delete()
        for member in league.members:
            members.document(member.uid).set(_to_doc(member.as_dict()), merge=True)

    def list_leagues_for_user(self, uid: str) -> list[LeagueRecord]:
        query = _where(self._col(LEAGUES_COLLECTION), "memberIds", "array_contains", uid)
        leagues = [self._league_from_snap(snap) for snap in query.stream()]
        return sorted(leagues, key=lambda l: l.created_at)

    # Venue leagues

    def get_venue(self, venue_id: str) -> Optional[VenueLeagueRecord]:
        snap = self._col(VENUE_LEAGUES_COLLECTION).document(venue_id).get()
        if not snap.exists:
            return None
        data = snapshot_data(snap)
        data["id"] = snap.id
        return VenueLeagueRecord.from_dict(data)

    def find_venue_by_code(self, code: str) -> Optional[VenueLeagueRecord]:
        wanted = "".join(str(code or "").split()).upper()
        query = _where(self._col(VENUE_LEAGUES_COLLECTION), "code", "==", wanted)
        for snap in query.limit(1).stream():
            data = snapshot_data(snap)
            data["id"] = snap.id
            return VenueLeagueRecord.from_dict(data)
        return None

    def save_venue(self, venue: VenueLeagueRecord) -> None:
        self._col(VENUE_LEAGUES_COLLECTION).document(venue.id).set(
            _to_doc(venue.as_dict())
        )

    def list_venues(self) -> list[VenueLeagueRecord]:
        venues = []
        for snap in self._col(VENUE_LEAGUES_COLLECTION).stream():
            data = snapshot_data(snap)
            data["id"] = snap.id
            venues.append(VenueLeagueRecord.from_dict(data))
        return sorted(venues, key=lambda v: v.created_at, reverse=True)

    # Game locks

    def get_game_lock(self, game_id: str) -> Optional[GameLockRecord]:
        snap = self._col(GAME_LOCKS_COLLECTION).document(game_id).get()
        if not snap.exists:
            return None
        data = snapshot_data(snap)
        data["game_id"] = game_id
        return GameLockRecord(**_known(GameLockRecord, data))

    def save_game_lock(self, lock: GameLockRecord) -> None:
        lock.updated_at = time.time()
        self._col(GAME_LOCKS_COLLECTION).document(lock.game_id).set(
            _to_doc(lock.as_dict()), merge=True
        )

    def list_game_locks(self, round_number: Optional[int] = None) -> list[GameLockRecord]:
        query = self._col(GAME_LOCKS_COLLECTION)
        if round_number is not None:
            query = _where(query, "roundNumber", "==", round_number)
        locks = []
        for snap in query.stream():
            data = snapshot_data(snap)
            data["game_id"] = snap.id
            locks.append(GameLockRecord(**_known(GameLockRecord, data)))
        return locks

    # Power-ups

    def get_panic(self, season: int, user_id: str, round_number: int) -> Optional[PanicRecord]:
        doc_id = f"{season}_{user_id}_{round_number}"
        snap = self._col(PANIC_COLLECTION).document(doc_id).get()
        if not snap.exists:
            return None
        data = snapshot_data(snap)
        data["previous_pick"] = PickSide(data["previous_pick"])
        return PanicRecord(**_known(PanicRecord, data))

    def record_panic(self, record: PanicRecord) -> bool:
        doc_id = f"{record.season}_{record.user_id}_{record.round_number}"
        try:
            self._col(PANIC_COLLECTION).document(doc_id).create(_to_doc(record.as_dict()))
        except exceptions.AlreadyExists:
            return False
        return True

    def get_free_kick(self, season: int, user_id: str) -> Optional[FreeKickRecord]:
        snap = self._col(FREE_KICK_USES_COLLECTION).document(f"{season}_{user_id}").get()
        if not snap.exists:
            return None
        return FreeKickRecord(**_known(FreeKickRecord, snapshot_data(snap)))

    def record_free_kick(self, record: FreeKickRecord) -> bool:
        doc_id = f"{record.season}_{record.user_id}"
        try:
            self._col(FREE_KICK_USES_COLLECTION).document(doc_id).create(
                _to_doc(record.as_dict())
            )
        except exceptions.AlreadyExists:
            return False
        return True

    # BBL schedule

    def save_bbl_match(self, match: BblMatchRecord) -> None:
        self._col(BBL_MATCHES_COLLECTION).document(match.id).set(_to_doc(match.as_dict()))

    def list_bbl_matches(self) -> list[BblMatchRecord]:
        query = self._col(BBL_MATCHES_COLLECTION).order_by("startTime")
        matches = []
        for snap in query.stream():
            data = snapshot_data(snap)
            data["id"] = snap.id
            matches.append(BblMatchRecord(**_known(BblMatchRecord, data)))
        return matches

    # Jobs

    def _job_from_doc(self, job_id: str, data: dict) -> JobRecord:
        return JobRecord(
            job_id=job_id,
            kind=JobKind(data["kind"]),
            payload=dict(data.get("payload") or {}),
            status=JobStatus(data["status"]),
            stage=data.get("stage") or "WAITING",
            progress_percent=float(data.get("progress_percent") or 0.0),
            error=data.get("error"),
            locked_at=data.get("locked_at"),
            created_at=float(data.get("created_at") or 0.0),
            updated_at=float(data.get("updated_at") or 0.0),
        )

    def create_job(self, kind: JobKind, payload: dict) -> JobRecord:
        record = JobRecord(
            job_id=uuid.uuid4().hex,
            kind=kind,
            payload=dict(payload),
            status=JobStatus.WAITING,
        )
        data = record.as_dict()
        data["status"] = record.status.value
        data["locked_at"] = None
        # Payload keys are written as given; only top-level fields are camelCased.
        doc = _to_doc({k: v for k, v in data.items() if k != "payload"})
        doc["payload"] = record.payload
        self._col(JOBS_COLLECTION).document(record.job_id).set(doc)
        return record

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        snap = self._col(JOBS_COLLECTION).document(job_id).get()
        if not snap.exists:
            return None
        raw = snap.to_dict() or {}
        data = convert_keys({k: v for k, v in raw.items() if k != "payload"}, "camel_to_snake")
        data["payload"] = raw.get("payload") or {}
        return self._job_from_doc(job_id, data)

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        ref = self._col(JOBS_COLLECTION).document(job_id)
        transaction = self.client.transaction()

        @firestore.transactional
        def _claim(txn) -> bool:
            snap = ref.get(transaction=txn)
            if not snap.exists or (snap.to_dict() or {}).get("status") != JobStatus.WAITING.value:
                return False
            now = time.time()
            txn.update(
                ref,
                {
                    "status": JobStatus.RUNNING.value,
                    "stage": "CLAIMED",
                    "lockedAt": now,
                    "updatedAt": now,
                },
            )
            return True

        if not _claim(transaction):
            return None
        return self.get_job(job_id)

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        query = (
            _where(self._col(JOBS_COLLECTION), "status", "==", JobStatus.WAITING.value)
            .order_by("createdAt")
            .limit(5)
        )
        for snap in query.stream():
            claimed = self.claim_job(snap.id)
            if claimed:
                return claimed
        return None

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        updates: dict = {"updatedAt": time.time()}
        if status:
            updates["status"] = status.value
        if stage:
            updates["stage"] = stage
        if progress_percent is not None:
            updates["progressPercent"] = progress_percent
        if error is not None:
            updates["error"] = error
        try:
            self._col(JOBS_COLLECTION).document(job_id).update(updates)
        except exceptions.NotFound:
            logger.warning("Job %s vanished before progress update", job_id)

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> list[JobRecord]:
        cutoff = time.time() - lock_timeout_seconds
        query = _where(self._col(JOBS_COLLECTION), "status", "==", JobStatus.RUNNING.value)
        requeued = []
        for snap in query.stream():
            data = snap.to_dict() or {}
            locked_at = data.get("lockedAt")
            if not locked_at or locked_at >= cutoff:
                continue
            snap.reference.update(
                {
                    "status": JobStatus.WAITING.value,
                    "stage": "WAITING",
                    "progressPercent": 0.0,
                    "lockedAt": None,
                    "updatedAt": time.time(),
                }
            )
            requeued.append(self.get_job(snap.id))
        return requeued
