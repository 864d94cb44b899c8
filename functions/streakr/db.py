"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import threading
import time
import uuid
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    create_engine,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.types import JobKind, JobStatus, Outcome, OverrideMode, PickSide, QuestionStatus
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


class DbClient(Protocol):
    """Interface for database access."""

    backend_name: str

    # Users
    def get_user(self, uid: str) -> Optional[UserRecord]:
        ...

    def save_user(self, user: UserRecord) -> None:
        ...

    def list_users(self) -> list[UserRecord]:
        ...

    # Rounds and season config
    def save_round(self, round_record: RoundRecord) -> None:
        ...

    def get_round(self, season: int, round_number: int) -> Optional[RoundRecord]:
        ...

    def list_rounds(self, season: int) -> list[RoundRecord]:
        ...

    def get_season_config(self, season: int) -> SeasonConfig:
        ...

    def save_season_config(self, config: SeasonConfig) -> None:
        ...

    # Question statuses
    def get_question_status(
        self, round_number: int, question_id: str
    ) -> Optional[QuestionStatusRecord]:
        ...

    def list_question_statuses(
        self, round_number: Optional[int] = None
    ) -> list[QuestionStatusRecord]:
        ...

    def save_question_status(self, record: QuestionStatusRecord) -> None:
        ...

    def delete_question_status(self, record_id: str) -> None:
        ...

    # Picks
    def get_pick(self, user_id: str, question_id: str) -> Optional[PickRecord]:
        ...

    def save_pick(self, pick: PickRecord) -> None:
        ...

    def delete_pick(self, user_id: str, question_id: str) -> bool:
        ...

    def list_picks(
        self,
        *,
        user_id: Optional[str] = None,
        question_id: Optional[str] = None,
        round_number: Optional[int] = None,
    ) -> list[PickRecord]:
        ...

    # Comments
    def save_comment(self, comment: CommentRecord) -> None:
        ...

    def list_comments(self, question_id: str, limit: int = 20) -> list[CommentRecord]:
        ...

    def set_comment_removed(
        self, question_id: str, comment_id: str, removed: bool = True
    ) -> bool:
        ...

    def count_comments(self, question_ids: list[str]) -> dict[str, int]:
        ...

    # Leagues
    def get_league(self, league_id: str) -> Optional[LeagueRecord]:
        ...

    def find_league_by_code(self, invite_code: str) -> Optional[LeagueRecord]:
        ...

    def save_league(self, league: LeagueRecord) -> None:
        ...

    def list_leagues_for_user(self, uid: str) -> list[LeagueRecord]:
        ...

    # Venue leagues
    def get_venue(self, venue_id: str) -> Optional[VenueLeagueRecord]:
        ...

    def find_venue_by_code(self, code: str) -> Optional[VenueLeagueRecord]:
        ...

    def save_venue(self, venue: VenueLeagueRecord) -> None:
        ...

    def list_venues(self) -> list[VenueLeagueRecord]:
        ...

    # Game locks
    def get_game_lock(self, game_id: str) -> Optional[GameLockRecord]:
        ...

    def save_game_lock(self, lock: GameLockRecord) -> None:
        ...

    def list_game_locks(self, round_number: Optional[int] = None) -> list[GameLockRecord]:
        ...

    # Power-ups
    def get_panic(self, season: int, user_id: str, round_number: int) -> Optional[PanicRecord]:
        ...

    def record_panic(self, record: PanicRecord) -> bool:
        """Stores the record unless one exists for the user and round."""
        ...

    def get_free_kick(self, season: int, user_id: str) -> Optional[FreeKickRecord]:
        ...

    def record_free_kick(self, record: FreeKickRecord) -> bool:
        """Stores the record unless the user already used it this season."""
        ...

    # BBL schedule
    def save_bbl_match(self, match: BblMatchRecord) -> None:
        ...

    def list_bbl_matches(self) -> list[BblMatchRecord]:
        ...

    # Jobs
    def create_job(self, kind: JobKind, payload: dict) -> JobRecord:
        ...

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        ...

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        ...

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        ...

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        ...

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> list[JobRecord]:
        ...


def _panic_key(season: int, user_id: str, round_number: int) -> str:
    return f"{season}_{user_id}_{round_number}"


def _free_kick_key(season: int, user_id: str) -> str:
    return f"{season}_{user_id}"


def _normalise_code(code: str) -> str:
    return "".join(str(code or "").split()).upper()


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    backend_name = "memory"

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.rounds: Dict[tuple[int, int], RoundRecord] = {}
        self.season_configs: Dict[int, SeasonConfig] = {}
        self.question_statuses: Dict[str, QuestionStatusRecord] = {}
        self.picks: Dict[str, PickRecord] = {}
        self.comments: Dict[str, CommentRecord] = {}
        self.leagues: Dict[str, LeagueRecord] = {}
        self.venues: Dict[str, VenueLeagueRecord] = {}
        self.game_locks: Dict[str, GameLockRecord] = {}
        self.panics: Dict[str, PanicRecord] = {}
        self.free_kicks: Dict[str, FreeKickRecord] = {}
        self.bbl_matches: Dict[str, BblMatchRecord] = {}
        self.jobs: Dict[str, JobRecord] = {}
        self.locked: set[str] = set()
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.rounds.clear()
        self.season_configs.clear()
        self.question_statuses.clear()
        self.picks.clear()
        self.comments.clear()
        self.leagues.clear()
        self.venues.clear()
        self.game_locks.clear()
        self.panics.clear()
        self.free_kicks.clear()
        self.bbl_matches.clear()
        self.jobs.clear()
        self.locked.clear()

    # Users

    def get_user(self, uid: str) -> Optional[UserRecord]:
        return copy.deepcopy(self.users.get(uid))

    def save_user(self, user: UserRecord) -> None:
        user.updated_at = time.time()
        self.users[user.uid] = copy.deepcopy(user)

    def list_users(self) -> list[UserRecord]:
        return [copy.deepcopy(u) for u in self.users.values()]

    # Rounds and season config

    def save_round(self, round_record: RoundRecord) -> None:
        round_record.updated_at = time.time()
        key = (round_record.season, round_record.round_number)
        self.rounds[key] = copy.deepcopy(round_record)

    def get_round(self, season: int, round_number: int) -> Optional[RoundRecord]:
        return copy.deepcopy(self.rounds.get((season, round_number)))

    def list_rounds(self, season: int) -> list[RoundRecord]:
        rounds = [r for (s, _), r in self.rounds.items() if s == season]
        return [copy.deepcopy(r) for r in sorted(rounds, key=lambda r: r.round_number)]

    def get_season_config(self, season: int) -> SeasonConfig:
        config = self.season_configs.get(season)
        return copy.deepcopy(config) if config else SeasonConfig(season=season)

    def save_season_config(self, config: SeasonConfig) -> None:
        config.updated_at = time.time()
        self.season_configs[config.season] = copy.deepcopy(config)

    # Question statuses

    def get_question_status(
        self, round_number: int, question_id: str
    ) -> Optional[QuestionStatusRecord]:
        lookup = QuestionStatusRecord(
            round_number=round_number, question_id=question_id, status=QuestionStatus.OPEN
        )
        return copy.deepcopy(self.question_statuses.get(lookup.key))

    def list_question_statuses(
        self, round_number: Optional[int] = None
    ) -> list[QuestionStatusRecord]:
        return [
            copy.deepcopy(r)
            for r in self.question_statuses.values()
            if round_number is None or r.round_number == round_number
        ]

    def save_question_status(self, record: QuestionStatusRecord) -> None:
        record.record_id = record.key
        self.question_statuses[record.key] = copy.deepcopy(record)

    def delete_question_status(self, record_id: str) -> None:
        self.question_statuses.pop(record_id, None)

    # Picks

    def get_pick(self, user_id: str, question_id: str) -> Optional[PickRecord]:
        return copy.deepcopy(self.picks.get(f"{user_id}_{question_id}"))

    def save_pick(self, pick: PickRecord) -> None:
        self.picks[pick.key] = copy.deepcopy(pick)

    def delete_pick(self, user_id: str, question_id: str) -> bool:
        return self.picks.pop(f"{user_id}_{question_id}", None) is not None

    def list_picks(
        self,
        *,
        user_id: Optional[str] = None,
        question_id: Optional[str] = None,
        round_number: Optional[int] = None,
    ) -> list[PickRecord]:
        results = []
        for pick in self.picks.values():
            if user_id is not None and pick.user_id != user_id:
                continue
            if question_id is not None and pick.question_id != question_id:
                continue
            if round_number is not None and pick.round_number != round_number:
                continue
            results.append(copy.deepcopy(pick))
        return results

    # Comments

    def save_comment(self, comment: CommentRecord) -> None:
        self.comments[comment.id] = copy.deepcopy(comment)

    def list_comments(self, question_id: str, limit: int = 20) -> list[CommentRecord]:
        items = [
            c
            for c in self.comments.values()
            if c.question_id == question_id and not c.is_removed
        ]
        items.sort(key=lambda c: c.created_at, reverse=True)
        return [copy.deepcopy(c) for c in items[:limit]]

    def set_comment_removed(
        self, question_id: str, comment_id: str, removed: bool = True
    ) -> bool:
        comment = self.comments.get(comment_id)
        if not comment or comment.question_id != question_id:
            return False
        comment.is_removed = removed
        return True

    def count_comments(self, question_ids: list[str]) -> dict[str, int]:
        wanted = set(question_ids)
        counts = {qid: 0 for qid in question_ids}
        for comment in self.comments.values():
            if comment.question_id in wanted and not comment.is_removed:
                counts[comment.question_id] += 1
        return counts

    # Leagues

    def get_league(self, league_id: str) -> Optional[LeagueRecord]:
        return copy.deepcopy(self.leagues.get(league_id))

    def find_league_by_code(self, invite_code: str) -> Optional[LeagueRecord]:
        code = _normalise_code(invite_code)
        for league in self.leagues.values():
            if league.invite_code == code:
                return copy.deepcopy(league)
        return None

    def save_league(self, league: LeagueRecord) -> None:
        league.updated_at = time.time()
        self.leagues[league.id] = copy.deepcopy(league)

    def list_leagues_for_user(self, uid: str) -> list[LeagueRecord]:
        items = [l for l in self.leagues.values() if uid in l.member_ids]
        items.sort(key=lambda l: l.created_at)
        return [copy.deepcopy(l) for l in items]

    # Venue leagues

    def get_venue(self, venue_id: str) -> Optional[VenueLeagueRecord]:
        return copy.deepcopy(self.venues.get(venue_id))

    def find_venue_by_code(self, code: str) -> Optional[VenueLeagueRecord]:
        wanted = _normalise_code(code)
        for venue in self.venues.values():
            if venue.code == wanted:
                return copy.deepcopy(venue)
        return None

    def save_venue(self, venue: VenueLeagueRecord) -> None:
        self.venues[venue.id] = copy.deepcopy(venue)

    def list_venues(self) -> list[VenueLeagueRecord]:
        items = sorted(self.venues.values(), key=lambda v: v.created_at, reverse=True)
        return [copy.deepcopy(v) for v in items]

    # Game locks

    def get_game_lock(self, game_id: str) -> Optional[GameLockRecord]:
        return copy.deepcopy(self.game_locks.get(game_id))

    def save_game_lock(self, lock: GameLockRecord) -> None:
        lock.updated_at = time.time()
        self.game_locks[lock.game_id] = copy.deepcopy(lock)

    def list_game_locks(self, round_number: Optional[int] = None) -> list[GameLockRecord]:
        return [
            copy.deepcopy(l)
            for l in self.game_locks.values()
            if round_number is None or l.round_number == round_number
        ]

    # Power-ups

    def get_panic(self, season: int, user_id: str, round_number: int) -> Optional[PanicRecord]:
        return copy.deepcopy(self.panics.get(_panic_key(season, user_id, round_number)))

    def record_panic(self, record: PanicRecord) -> bool:
        key = _panic_key(record.season, record.user_id, record.round_number)
        with self._lock:
            if key in self.panics:
                return False
            self.panics[key] = copy.deepcopy(record)
            return True

    def get_free_kick(self, season: int, user_id: str) -> Optional[FreeKickRecord]:
        return copy.deepcopy(self.free_kicks.get(_free_kick_key(season, user_id)))

    def record_free_kick(self, record: FreeKickRecord) -> bool:
        key = _free_kick_key(record.season, record.user_id)
        with self._lock:
            if key in self.free_kicks:
                return False
            self.free_kicks[key] = copy.deepcopy(record)
            return True

    # BBL schedule

    def save_bbl_match(self, match: BblMatchRecord) -> None:
        self.bbl_matches[match.id] = copy.deepcopy(match)

    def list_bbl_matches(self) -> list[BblMatchRecord]:
        items = sorted(self.bbl_matches.values(), key=lambda m: m.start_time)
        return [copy.deepcopy(m) for m in items]

    # Jobs

    def create_job(self, kind: JobKind, payload: dict) -> JobRecord:
        job_id = uuid.uuid4().hex
        record = JobRecord(
            job_id=job_id,
            kind=kind,
            payload=dict(payload),
            status=JobStatus.WAITING,
        )
        self.jobs[job_id] = record
        return copy.deepcopy(record)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        return copy.deepcopy(self.jobs.get(job_id))

    def _claim(self, job: JobRecord) -> JobRecord:
        job.status = JobStatus.RUNNING
        job.stage = "CLAIMED"
        job.locked_at = time.time()
        job.updated_at = job.locked_at
        self.locked.add(job.job_id)
        return copy.deepcopy(job)

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            job = self.jobs.get(job_id)
            if not job or job.status != JobStatus.WAITING:
                return None
            return self._claim(job)

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        with self._lock:
            for job in sorted(self.jobs.values(), key=lambda j: j.created_at):
                if job.status == JobStatus.WAITING and job.job_id not in self.locked:
                    return self._claim(job)
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
        job = self.jobs.get(job_id)
        if not job:
            return
        if status:
            job.status = status
            if status != JobStatus.RUNNING:
                self.locked.discard(job_id)
        if stage:
            job.stage = stage
        if progress_percent is not None:
            job.progress_percent = progress_percent
        if error is not None:
            job.error = error
        job.updated_at = time.time()

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> list[JobRecord]:
        now = time.time()
        requeued = []
        for job in self.jobs.values():
            if (
                job.status == JobStatus.RUNNING
                and job.locked_at
                and now - job.locked_at > lock_timeout_seconds
            ):
                job.status = JobStatus.WAITING
                job.stage = "WAITING"
                job.progress_percent = 0.0
                job.locked_at = None
                job.updated_at = now
                self.locked.discard(job.job_id)
                requeued.append(copy.deepcopy(job))
        return requeued


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    backend_name = "sql"

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    # Users

    def get_user(self, uid: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, uid)
            return UserRecord.from_dict(row.data) if row else None

    def save_user(self, user: UserRecord) -> None:
        user.updated_at = time.time()
        with self.Session() as session:
            row = session.get(UserRow, user.uid)
            if row:
                row.data = user.as_dict()
            else:
                session.add(UserRow(uid=user.uid, data=user.as_dict()))
            session.commit()

    def list_users(self) -> list[UserRecord]:
        with self.Session() as session:
            rows = session.execute(select(UserRow)).scalars().all()
            return [UserRecord.from_dict(row.data) for row in rows]

    # Rounds and season config

    def save_round(self, round_record: RoundRecord) -> None:
        round_record.updated_at = time.time()
        key = (round_record.season, round_record.round_number)
        with self.Session() as session:
            row = session.get(RoundRow, key)
            if row:
                row.data = round_record.as_dict()
                row.published = round_record.published
            else:
                session.add(
                    RoundRow(
                        season=round_record.season,
                        round_number=round_record.round_number,
                        published=round_record.published,
                        data=round_record.as_dict(),
                    )
                )
            session.commit()

    def get_round(self, season: int, round_number: int) -> Optional[RoundRecord]:
        with self.Session() as session:
            row = session.get(RoundRow, (season, round_number))
            return RoundRecord.from_dict(row.data) if row else None

    def list_rounds(self, season: int) -> list[RoundRecord]:
        with self.Session() as session:
            stmt = (
                select(RoundRow)
                .where(RoundRow.season == season)
                .order_by(RoundRow.round_number.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [RoundRecord.from_dict(row.data) for row in rows]

    def get_season_config(self, season: int) -> SeasonConfig:
        with self.Session() as session:
            row = session.get(SeasonConfigRow, season)
            if not row:
                return SeasonConfig(season=season)
            return SeasonConfig.from_dict(row.data)

    def save_season_config(self, config: SeasonConfig) -> None:
        config.updated_at = time.time()
        with self.Session() as session:
            row = session.get(SeasonConfigRow, config.season)
            if row:
                row.data = config.as_dict()
            else:
                session.add(SeasonConfigRow(season=config.season, data=config.as_dict()))
            session.commit()

    # Question statuses

    def _to_status_record(self, row: "QuestionStatusRow") -> QuestionStatusRecord:
        return QuestionStatusRecord(
            round_number=row.round_number,
            question_id=row.question_id,
            status=QuestionStatus(row.status),
            outcome=Outcome(row.outcome) if row.outcome else None,
            override_mode=OverrideMode(row.override_mode) if row.override_mode else None,
            updated_at=row.updated_at,
            record_id=row.key,
        )

    def get_question_status(
        self, round_number: int, question_id: str
    ) -> Optional[QuestionStatusRecord]:
        key = f"{round_number}__{question_id}"
        with self.Session() as session:
            row = session.get(QuestionStatusRow, key)
            return self._to_status_record(row) if row else None

    def list_question_statuses(
        self, round_number: Optional[int] = None
    ) -> list[QuestionStatusRecord]:
        with self.Session() as session:
            stmt = select(QuestionStatusRow)
            if round_number is not None:
                stmt = stmt.where(QuestionStatusRow.round_number == round_number)
            rows = session.execute(stmt).scalars().all()
            return [self._to_status_record(row) for row in rows]

    def save_question_status(self, record: QuestionStatusRecord) -> None:
        record.record_id = record.key
        with self.Session() as session:
            row = session.get(QuestionStatusRow, record.key)
            if not row:
                row = QuestionStatusRow(key=record.key)
                session.add(row)
            row.round_number = record.round_number
            row.question_id = record.question_id
            row.status = record.status.value
            row.outcome = record.outcome.value if record.outcome else None
            row.override_mode = record.override_mode.value if record.override_mode else None
            row.updated_at = record.updated_at
            session.commit()

    def delete_question_status(self, record_id: str) -> None:
        with self.Session() as session:
            row = session.get(QuestionStatusRow, record_id)
            if row:
                session.delete(row)
                session.commit()

    # Picks

    def _to_pick_record(self, row: "PickRow") -> PickRecord:
        return PickRecord(
            user_id=row.user_id,
            question_id=row.question_id,
            pick=PickSide(row.pick),
            round_number=row.round_number,
            game_id=row.game_id,
            match=row.match or "",
            question=row.question or "",
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def get_pick(self, user_id: str, question_id: str) -> Optional[PickRecord]:
        with self.Session() as session:
            row = session.get(PickRow, f"{user_id}_{question_id}")
            return self._to_pick_record(row) if row else None

    def save_pick(self, pick: PickRecord) -> None:
        with self.Session() as session:
            row = session.get(PickRow, pick.key)
            if not row:
                row = PickRow(key=pick.key, created_at=pick.created_at)
                session.add(row)
            row.user_id = pick.user_id
            row.question_id = pick.question_id
            row.pick = pick.pick.value
            row.round_number = pick.round_number
            row.game_id = pick.game_id
            row.match = pick.match
            row.question = pick.question
            row.updated_at = pick.updated_at
            session.commit()

    def delete_pick(self, user_id: str, question_id: str) -> bool:
        with self.Session() as session:
            row = session.get(PickRow, f"{user_id}_{question_id}")
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def list_picks(
        self,
        *,
        user_id: Optional[str] = None,
        question_id: Optional[str] = None,
        round_number: Optional[int] = None,
    ) -> list[PickRecord]:
        with self.Session() as session:
            stmt = select(PickRow)
            if user_id is not None:
                stmt = stmt.where(PickRow.user_id == user_id)
            if question_id is not None:
                stmt = stmt.where(PickRow.question_id == question_id)
            if round_number is not None:
                stmt = stmt.where(PickRow.round_number == round_number)
            rows = session.execute(stmt).scalars().all()
            return [self._to_pick_record(row) for row in rows]

    # Comments

    def _to_comment_record(self, row: "CommentRow") -> CommentRecord:
        return CommentRecord(
            id=row.id,
            question_id=row.question_id,
            uid=row.uid,
            body=row.body,
            round_number=row.round_number,
            display_name=row.display_name,
            photo_url=row.photo_url,
            created_at=row.created_at,
            is_removed=row.is_removed,
        )

    def save_comment(self, comment: CommentRecord) -> None:
        with self.Session() as session:
            row = session.get(CommentRow, comment.id)
            if not row:
                row = CommentRow(id=comment.id)
                session.add(row)
            row.question_id = comment.question_id
            row.uid = comment.uid
            row.body = comment.body
            row.round_number = comment.round_number
            row.display_name = comment.display_name
            row.photo_url = comment.photo_url
            row.created_at = comment.created_at
            row.is_removed = comment.is_removed
            session.commit()

    def list_comments(self, question_id: str, limit: int = 20) -> list[CommentRecord]:
        with self.Session() as session:
            stmt = (
                select(CommentRow)
                .where(
                    CommentRow.question_id == question_id,
                    CommentRow.is_removed == False,  # noqa: E712
                )
                .order_by(CommentRow.created_at.desc())
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_comment_record(row) for row in rows]

    def set_comment_removed(
        self, question_id: str, comment_id: str, removed: bool = True
    ) -> bool:
        with self.Session() as session:
            row = session.get(CommentRow, comment_id)
            if not row or row.question_id != question_id:
                return False
            row.is_removed = removed
            session.commit()
            return True

    def count_comments(self, question_ids: list[str]) -> dict[str, int]:
        counts = {qid: 0 for qid in question_ids}
        if not question_ids:
            return counts
        with self.Session() as session:
            stmt = select(CommentRow.question_id).where(
                CommentRow.question_id.in_(question_ids),
                CommentRow.is_removed == False,  # noqa: E712
            )
            for qid in session.execute(stmt).scalars():
                counts[qid] += 1
        return counts

    # Leagues

    def get_league(self, league_id: str) -> Optional[LeagueRecord]:
        with self.Session() as session:
            row = session.get(LeagueRow, league_id)
            return LeagueRecord.from_dict(row.data) if row else None

    def find_league_by_code(self, invite_code: str) -> Optional[LeagueRecord]:
        with self.Session() as session:
            stmt = select(LeagueRow).where(
                LeagueRow.invite_code == _normalise_code(invite_code)
            )
            row = session.execute(stmt).scalars().first()
            return LeagueRecord.from_dict(row.data) if row else None

    def save_league(self, league: LeagueRecord) -> None:
        league.updated_at = time.time()
        with self.Session() as session:
            row = session.get(LeagueRow, league.id)
            if row:
                row.invite_code = league.invite_code
                row.data = league.as_dict()
            else:
                session.add(
                    LeagueRow(
                        id=league.id,
                        invite_code=league.invite_code,
                        created_at=league.created_at,
                        data=league.as_dict(),
                    )
                )
            session.commit()

    def list_leagues_for_user(self, uid: str) -> list[LeagueRecord]:
        with self.Session() as session:
            stmt = select(LeagueRow).order_by(LeagueRow.created_at.asc())
            rows = session.execute(stmt).scalars().all()
            leagues = [LeagueRecord.from_dict(row.data) for row in rows]
        return [league for league in leagues if uid in league.member_ids]

    # Venue leagues

    def get_venue(self, venue_id: str) -> Optional[VenueLeagueRecord]:
        with self.Session() as session:
            row = session.get(VenueRow, venue_id)
            return VenueLeagueRecord.from_dict(row.data) if row else None

    def find_venue_by_code(self, code: str) -> Optional[VenueLeagueRecord]:
        with self.Session() as session:
            stmt = select(VenueRow).where(VenueRow.code == _normalise_code(code))
            row = session.execute(stmt).scalars().first()
            return VenueLeagueRecord.from_dict(row.data) if row else None

    def save_venue(self, venue: VenueLeagueRecord) -> None:
        with self.Session() as session:
            row = session.get(VenueRow, venue.id)
            if row:
                row.code = venue.code
                row.data = venue.as_dict()
            else:
                session.add(
                    VenueRow(
                        id=venue.id,
                        code=venue.code,
                        created_at=venue.created_at,
                        data=venue.as_dict(),
                    )
                )
            session.commit()

    def list_venues(self) -> list[VenueLeagueRecord]:
        with self.Session() as session:
            stmt = select(VenueRow).order_by(VenueRow.created_at.desc())
            rows = session.execute(stmt).scalars().all()
            return [VenueLeagueRecord.from_dict(row.data) for row in rows]

    # Game locks

    def _to_lock_record(self, row: "GameLockRow") -> GameLockRecord:
        return GameLockRecord(
            game_id=row.game_id,
            round_number=row.round_number,
            is_unlocked_for_picks=row.is_unlocked_for_picks,
            updated_at=row.updated_at,
        )

    def get_game_lock(self, game_id: str) -> Optional[GameLockRecord]:
        with self.Session() as session:
            row = session.get(GameLockRow, game_id)
            return self._to_lock_record(row) if row else None

    def save_game_lock(self, lock: GameLockRecord) -> None:
        lock.updated_at = time.time()
        with self.Session() as session:
            row = session.get(GameLockRow, lock.game_id)
            if not row:
                row = GameLockRow(game_id=lock.game_id)
                session.add(row)
            row.round_number = lock.round_number
            row.is_unlocked_for_picks = lock.is_unlocked_for_picks
            row.updated_at = lock.updated_at
            session.commit()

    def list_game_locks(self, round_number: Optional[int] = None) -> list[GameLockRecord]:
        with self.Session() as session:
            stmt = select(GameLockRow)
            if round_number is not None:
                stmt = stmt.where(GameLockRow.round_number == round_number)
            rows = session.execute(stmt).scalars().all()
            return [self._to_lock_record(row) for row in rows]

    # Power-ups

    def get_panic(self, season: int, user_id: str, round_number: int) -> Optional[PanicRecord]:
        with self.Session() as session:
            row = session.get(PowerUpRow, ("panic", _panic_key(season, user_id, round_number)))
            if not row:
                return None
            data = dict(row.data)
            data["previous_pick"] = PickSide(data["previous_pick"])
            return PanicRecord(**data)

    def get_free_kick(self, season: int, user_id: str) -> Optional[FreeKickRecord]:
        with self.Session() as session:
            row = session.get(PowerUpRow, ("free_kick", _free_kick_key(season, user_id)))
            return FreeKickRecord(**row.data) if row else None

    def _insert_power_up(self, kind: str, key: str, data: dict) -> bool:
        with self.Session() as session:
            session.add(PowerUpRow(kind=kind, key=key, data=data))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def record_panic(self, record: PanicRecord) -> bool:
        key = _panic_key(record.season, record.user_id, record.round_number)
        return self._insert_power_up("panic", key, record.as_dict())

    def record_free_kick(self, record: FreeKickRecord) -> bool:
        key = _free_kick_key(record.season, record.user_id)
        return self._insert_power_up("free_kick", key, record.as_dict())

    # BBL schedule

    def save_bbl_match(self, match: BblMatchRecord) -> None:
        with self.Session() as session:
            row = session.get(BblMatchRow, match.id)
            if not row:
                row = BblMatchRow(id=match.id)
                session.add(row)
            row.match = match.match
            row.venue = match.venue
            row.start_time = match.start_time
            session.commit()

    def list_bbl_matches(self) -> list[BblMatchRecord]:
        with self.Session() as session:
            stmt = select(BblMatchRow).order_by(BblMatchRow.start_time.asc())
            rows = session.execute(stmt).scalars().all()
            return [
                BblMatchRecord(
                    id=row.id, match=row.match, venue=row.venue, start_time=row.start_time
                )
                for row in rows
            ]

    # Jobs

    def _to_job_record(self, job: "JobRow") -> JobRecord:
        return JobRecord(
            job_id=job.job_id,
            kind=JobKind(job.kind),
            payload=dict(job.payload or {}),
            status=JobStatus(job.status),
            stage=job.stage,
            progress_percent=job.progress_percent,
            error=job.error,
            locked_at=job.locked_at,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    def create_job(self, kind: JobKind, payload: dict) -> JobRecord:
        now = time.time()
        job_id = uuid.uuid4().hex
        with self.Session() as session:
            job = JobRow(
                job_id=job_id,
                kind=kind.value,
                payload=dict(payload),
                status=JobStatus.WAITING.value,
                stage="WAITING",
                progress_percent=0.0,
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            session.commit()
            session.refresh(job)
            return self._to_job_record(job)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self.Session() as session:
            job = session.get(JobRow, job_id)
            if not job:
                return None
            return self._to_job_record(job)

    def _claim(self, session: Session, job: "JobRow") -> JobRecord:
        now = time.time()
        job.status = JobStatus.RUNNING.value
        job.stage = "CLAIMED"
        job.locked_at = now
        job.updated_at = now
        session.commit()
        session.refresh(job)
        return self._to_job_record(job)

    def claim_job(self, job_id: str) -> Optional[JobRecord]:
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(
                    JobRow.job_id == job_id,
                    JobRow.status == JobStatus.WAITING.value,
                )
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim(session, job)

    def claim_next_waiting_job(self) -> Optional[JobRecord]:
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(JobRow.status == JobStatus.WAITING.value)
                .order_by(JobRow.created_at.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            job = session.execute(stmt).scalar_one_or_none()
            if not job:
                return None
            return self._claim(session, job)

    def requeue_stale_locks(self, lock_timeout_seconds: float = 600) -> list[JobRecord]:
        cutoff = time.time() - lock_timeout_seconds
        with self.Session() as session:
            stmt = (
                select(JobRow)
                .where(
                    JobRow.status == JobStatus.RUNNING.value,
                    JobRow.locked_at != None,  # noqa: E711
                    JobRow.locked_at < cutoff,
                )
                .with_for_update(skip_locked=True)
            )
            jobs = session.execute(stmt).scalars().all()
            now = time.time()
            for job in jobs:
                job.status = JobStatus.WAITING.value
                job.stage = "WAITING"
                job.progress_percent = 0.0
                job.locked_at = None
                job.updated_at = now
            session.commit()
            return [self._to_job_record(job) for job in jobs]

    def update_job_progress(
        self,
        job_id: str,
        *,
        status: Optional[JobStatus] = None,
        stage: Optional[str] = None,
        progress_percent: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        with self.Session() as session:
            job = session.get(JobRow, job_id)
            if not job:
                return
            if status:
                job.status = status.value
            if stage:
                job.stage = stage
            if progress_percent is not None:
                job.progress_percent = progress_percent
            if error is not None:
                job.error = error
            job.updated_at = time.time()
            session.commit()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    uid = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class RoundRow(Base):
    __tablename__ = "rounds"

    season = Column(Integer, primary_key=True)
    round_number = Column(Integer, primary_key=True)
    published = Column(Boolean, nullable=False, default=False)
    data = Column(JSON, nullable=False)


class SeasonConfigRow(Base):
    __tablename__ = "season_config"

    season = Column(Integer, primary_key=True)
    data = Column(JSON, nullable=False)


class QuestionStatusRow(Base):
    __tablename__ = "question_status"

    key = Column(String, primary_key=True)
    round_number = Column(Integer, nullable=False, index=True)
    question_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    outcome = Column(String, nullable=True)
    override_mode = Column(String, nullable=True)
    updated_at = Column(Float, nullable=False)


class PickRow(Base):
    __tablename__ = "picks"

    key = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    question_id = Column(String, nullable=False, index=True)
    round_number = Column(Integer, nullable=True, index=True)
    game_id = Column(String, nullable=True)
    pick = Column(String, nullable=False)
    match = Column(String, nullable=True)
    question = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class CommentRow(Base):
    __tablename__ = "comments"

    id = Column(String, primary_key=True)
    question_id = Column(String, nullable=False, index=True)
    uid = Column(String, nullable=False)
    body = Column(String, nullable=False)
    round_number = Column(Integer, nullable=True)
    display_name = Column(String, nullable=True)
    photo_url = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    is_removed = Column(Boolean, nullable=False, default=False)


class LeagueRow(Base):
    __tablename__ = "leagues"

    id = Column(String, primary_key=True)
    invite_code = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    data = Column(JSON, nullable=False)


class VenueRow(Base):
    __tablename__ = "venue_leagues"

    id = Column(String, primary_key=True)
    code = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)
    data = Column(JSON, nullable=False)


class GameLockRow(Base):
    __tablename__ = "game_locks"

    game_id = Column(String, primary_key=True)
    round_number = Column(Integer, nullable=True, index=True)
    is_unlocked_for_picks = Column(Boolean, nullable=False, default=False)
    updated_at = Column(Float, nullable=False)


class PowerUpRow(Base):
    __tablename__ = "power_up_uses"

    kind = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)


class BblMatchRow(Base):
    __tablename__ = "bbl_matches"

    id = Column(String, primary_key=True)
    match = Column(String, nullable=False)
    venue = Column(String, nullable=False)
    start_time = Column(Float, nullable=False, index=True)


class JobRow(Base):
    __tablename__ = "jobs"

    job_id = Column(String, primary_key=True)
    kind = Column(String, nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(String, nullable=False, index=True)
    stage = Column(String, nullable=False, default="WAITING")
    progress_percent = Column(Float, nullable=False, default=0.0)
    error = Column(String, nullable=True)
    locked_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)
