"""
Shared fixtures for the STREAKr tests: a small two-round schedule, a fake
Squiggle session and a TestClient wired to in-memory backends.
"""

from __future__ import annotations

from typing import Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from streakr.app import create_app
from streakr.auth import StaticTokenVerifier, get_token_verifier
from streakr.config import Settings, get_settings
from streakr.db import InMemoryDbClient
from streakr.dependencies import (
    get_db_client,
    get_fixture_source,
    get_queue_client,
    get_squiggle_client,
    get_storage_client,
    reset_clients,
)
from streakr.fixtures import FixtureSource, build_rounds
from streakr.queue import InMemoryJobQueue
from streakr.records import RoundRecord
from streakr.squiggle import SquiggleClient
from streakr.storage import InMemoryStorageClient

SEASON = 2026
ADMIN_TOKEN = "test-admin-token"
ADMIN_HEADERS = {"X-Admin-Token": ADMIN_TOKEN}

# Squiggle team ids used by the fake responses.
TEAMS = {1: "Carlton", 2: "Richmond", 3: "Collingwood", 4: "Sydney"}


def schedule_rows() -> list[dict]:
    """Opening Round with one game, Round 1 with two games of two questions."""
    return [
        {
            "Round": "OR",
            "Game": 1,
            "Match": "Sydney vs Carlton",
            "Venue": "SCG",
            "StartTime": "2026-03-05T19:30:00+11:00",
            "Question": "Will Sydney win the game?",
            "Quarter": 4,
        },
        {
            "Round": "R1",
            "Game": 1,
            "Match": "Carlton vs Richmond",
            "Venue": "MCG",
            "StartTime": "2026-03-12T19:30:00+11:00",
            "Question": "Will Carlton kick 3 or more goals in the first quarter?",
            "Quarter": 1,
        },
        {
            "Round": "R1",
            "Game": 1,
            "Match": "Carlton vs Richmond",
            "Venue": "MCG",
            "StartTime": "2026-03-12T19:30:00+11:00",
            "Question": "Will Richmond win the second quarter?",
            "Quarter": 2,
        },
        {
            "Round": "R1",
            "Game": 2,
            "Match": "Collingwood vs Sydney",
            "Venue": "MCG",
            "StartTime": "2026-03-13T19:40:00+11:00",
            "Question": "Will Collingwood lead at half time?",
            "Quarter": 2,
        },
        {
            "Round": "R1",
            "Game": 2,
            "Match": "Collingwood vs Sydney",
            "Venue": "MCG",
            "StartTime": "2026-03-13T19:40:00+11:00",
            "Question": "Will Sydney kick the last goal of the game?",
            "Quarter": 4,
        },
    ]


def seed_rounds(db, season: int = SEASON, published: bool = True) -> dict[int, RoundRecord]:
    rounds = build_rounds(schedule_rows(), season=season)
    for round_record in rounds.values():
        round_record.published = published
        db.save_round(round_record)
    return rounds


def game_question_ids(round_record: RoundRecord, game_id: str) -> list[str]:
    return [q.id for q in round_record.get_game(game_id).questions]


def squiggle_game(
    squiggle_id: int,
    home: int,
    away: int,
    *,
    unixtime: float,
    complete: int = 0,
    is_final: int = 0,
    hscore: int = 0,
    ascore: int = 0,
    round_number: int = 1,
) -> dict:
    return {
        "id": squiggle_id,
        "year": SEASON,
        "round": round_number,
        "hteam": home,
        "ateam": away,
        "unixtime": unixtime,
        "complete": complete,
        "is_final": is_final,
        "hscore": hscore,
        "ascore": ascore,
        "venue": "M.C.G.",
    }


def fake_squiggle_session(games: list[dict]) -> MagicMock:
    """A requests.Session stand-in answering the games and teams queries."""
    session = MagicMock()
    session.headers = {}

    def get(url, timeout=None):
        response = MagicMock()
        response.raise_for_status.return_value = None
        if "q=teams" in url:
            response.json.return_value = {
                "teams": [{"id": tid, "name": name} for tid, name in TEAMS.items()]
            }
        else:
            response.json.return_value = {"games": games}
        return response

    session.get.side_effect = get
    return session


def fake_squiggle(games: Optional[list[dict]] = None) -> SquiggleClient:
    return SquiggleClient(
        "https://squiggle.test/", session=fake_squiggle_session(games or [])
    )


def bearer(uid: str) -> dict:
    return {"Authorization": f"Bearer {uid}"}


class AppHarness:
    """Builds the app against in-memory backends shared with the test."""

    def __init__(self, squiggle: Optional[SquiggleClient] = None):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.storage = InMemoryStorageClient()
        self.fixtures = FixtureSource(self.db, season=SEASON, fixtures_path=None)
        self.squiggle = squiggle or fake_squiggle()
        self.settings = Settings(
            season=SEASON,
            use_in_memory_backends=True,
            verify_firebase_tokens=False,
            admin_token=ADMIN_TOKEN,
        )

        app = create_app()
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_token_verifier] = StaticTokenVerifier
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_fixture_source] = lambda: self.fixtures
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        app.dependency_overrides[get_storage_client] = lambda: self.storage
        app.dependency_overrides[get_squiggle_client] = lambda: self.squiggle
        self.app = app
        self.client = TestClient(app)

    def close(self) -> None:
        self.db.reset()
        reset_clients()
