"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends
from firebase_admin import firestore

from streakr.admin import AdminService
from streakr.auth import ensure_firebase_app
from streakr.bbl import BblService
from streakr.comments import CommentService
from streakr.config import Settings, get_settings
from streakr.db import DbClient, InMemoryDbClient, PostgresDbClient
from streakr.firestore_db import FirestoreDbClient
from streakr.fixtures import FixtureSource
from streakr.leaderboard import LeaderboardService
from streakr.leagues import LeagueService
from streakr.locks import LockService
from streakr.maintenance import StatusRepairService
from streakr.picks import PicksService
from streakr.powerups import PowerUpService
from streakr.profile import ProfileService
from streakr.queue import InMemoryJobQueue, JobQueue, RedisJobQueue
from streakr.settlement import SettlementService
from streakr.squiggle import SquiggleClient
from streakr.storage import CosStorageClient, InMemoryStorageClient, StorageClient
from streakr.streaks import StreakService
from streakr.venues import VenueService

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_queue_client: JobQueue | None = None
_fixture_source: FixtureSource | None = None
_squiggle_client: SquiggleClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.database_url:
        _db_client = PostgresDbClient(settings.database_url)
    elif settings.firestore_project_id:
        app = ensure_firebase_app(settings.firestore_project_id)
        _db_client = FirestoreDbClient(firestore.client(app))
    else:
        _db_client = InMemoryDbClient()
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.cos_public_base_url,
        )
    return _storage_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_fixture_source() -> FixtureSource:
    global _fixture_source
    if _fixture_source:
        return _fixture_source

    settings = get_settings()
    _fixture_source = FixtureSource(
        get_db_client(), season=settings.season, fixtures_path=settings.fixtures_path
    )
    return _fixture_source


def get_squiggle_client() -> SquiggleClient:
    global _squiggle_client
    if _squiggle_client:
        return _squiggle_client

    settings = get_settings()
    _squiggle_client = SquiggleClient(
        settings.squiggle_base_url,
        user_agent=settings.squiggle_user_agent,
        timeout=settings.squiggle_timeout_seconds,
        cache_seconds=settings.squiggle_cache_seconds,
    )
    return _squiggle_client


def reset_clients() -> None:
    """Drops the cached clients so the next request rebuilds them from settings."""
    global _db_client, _storage_client, _queue_client, _fixture_source, _squiggle_client
    _db_client = None
    _storage_client = None
    _queue_client = None
    _fixture_source = None
    _squiggle_client = None


# Services are cheap to build; each request gets its own.


def get_streak_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
) -> StreakService:
    return StreakService(db, fixtures)


def get_picks_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
) -> PicksService:
    return PicksService(db, fixtures)


def get_settlement_service(
    db: DbClient = Depends(get_db_client),
    streaks: StreakService = Depends(get_streak_service),
) -> SettlementService:
    return SettlementService(db, streaks)


def get_leaderboard_service(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> LeaderboardService:
    return LeaderboardService(db, season=settings.season, limit=settings.leaderboard_limit)


def get_league_service(db: DbClient = Depends(get_db_client)) -> LeagueService:
    return LeagueService(db)


def get_venue_service(db: DbClient = Depends(get_db_client)) -> VenueService:
    return VenueService(db)


def get_profile_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
) -> ProfileService:
    return ProfileService(db, fixtures)


def get_lock_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
    squiggle: SquiggleClient = Depends(get_squiggle_client),
) -> LockService:
    return LockService(db, fixtures, squiggle)


def get_power_up_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
    streaks: StreakService = Depends(get_streak_service),
) -> PowerUpService:
    return PowerUpService(db, fixtures, streaks)


def get_comment_service(db: DbClient = Depends(get_db_client)) -> CommentService:
    return CommentService(db)


def get_admin_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
    queue: JobQueue = Depends(get_queue_client),
) -> AdminService:
    return AdminService(db, fixtures, queue)


def get_repair_service(
    db: DbClient = Depends(get_db_client),
    fixtures: FixtureSource = Depends(get_fixture_source),
) -> StatusRepairService:
    return StatusRepairService(db, fixtures)


def get_bbl_service(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> BblService:
    return BblService(db, buffer_hours=settings.bbl_buffer_hours)
