"""
Configuration and settings for the STREAKr backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    season: int = Field(default=2026)

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Firestore (used when no DATABASE_URL is configured)
    firestore_project_id: Optional[str] = Field(default=None)

    # S3-compatible storage (Tencent COS) for avatars
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    # Public-read base for avatar objects, e.g. a CDN domain.
    cos_public_base_url: Optional[str] = Field(default=None)
    avatar_max_bytes: int = Field(default=6 * 1024 * 1024)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    # When false, bearer tokens are treated as uids (local runs and tests).
    verify_firebase_tokens: bool = Field(default=True)

    # Admin console
    admin_token: Optional[str] = Field(default=None)

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="streakr:jobs")
    lock_sync_interval_seconds: float = Field(default=60.0)

    # Squiggle live AFL data
    squiggle_base_url: str = Field(default="https://api.squiggle.com.au/")
    squiggle_user_agent: str = Field(default="STREAKr/1.0 (streakr.com.au)")
    squiggle_cache_seconds: float = Field(default=30.0)
    squiggle_timeout_seconds: float = Field(default=10.0)

    # Schedule and ladders
    fixtures_path: str = Field(default="data/rounds-2026.json")
    leaderboard_limit: int = Field(default=50)
    bbl_buffer_hours: float = Field(default=8.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
