"""
Pydantic schemas for the STREAKr API.

The web client speaks camelCase; models accept either spelling on input
and serialise by alias.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.types import (
    GameState,
    JobKind,
    Outcome,
    PickResult,
    PickSide,
    QuestionStatus,
    SubscriptionStatus,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class OkResponse(ApiModel):
    ok: bool = True


# Picks


class BoardQuestionModel(ApiModel):
    id: str
    quarter: int
    question: str
    status: QuestionStatus
    sport: Optional[str] = None
    is_sponsor_question: bool = False
    user_pick: Optional[PickSide] = None
    yes_percent: int = 0
    no_percent: int = 0
    comment_count: int = 0
    outcome: Optional[Outcome] = None


class BoardGameModel(ApiModel):
    id: str
    match: str
    sport: str
    venue: str
    start_time: str
    is_unlocked_for_picks: bool = True
    questions: list[BoardQuestionModel] = []


class PicksResponse(ApiModel):
    games: list[BoardGameModel]
    round_number: int


class ActivePickResponse(ApiModel):
    question_id: Optional[str] = None
    outcome: Optional[PickSide] = None


class UserPickRequest(ApiModel):
    question_id: Optional[str] = None
    outcome: Optional[str] = None
    round_number: Optional[int] = None
    game_id: Optional[str] = None
    action: Optional[str] = None


class QuestionStatsResponse(ApiModel):
    total: int
    yes_pct: int
    no_pct: int


# Settlement


class SettlementRequest(ApiModel):
    round_number: Optional[int] = None
    question_id: Optional[str] = None
    action: Optional[str] = None


class SettlementResponse(ApiModel):
    ok: bool = True
    round_number_used: int
    round_number_from_body: int
    round_number_inferred: Optional[int] = None
    status: QuestionStatus
    outcome: Optional[Outcome] = None
    users_recomputed: int


# Leaderboards


class LadderEntryModel(ApiModel):
    uid: str
    display_name: str
    username: str = ""
    avatar_url: str = ""
    favourite_team: str = ""
    current_streak: int = 0
    best_streak: int = 0
    streak: int = 0
    rank: int


class LeaderboardResponse(ApiModel):
    entries: list[LadderEntryModel]
    user_entry: Optional[LadderEntryModel] = None


class YourPositionModel(ApiModel):
    round_rank: Optional[int] = None
    season_rank: Optional[int] = None
    current_streak: int = 0
    best_streak: int = 0


class LeaderboardsResponse(ApiModel):
    round: int
    season: int
    round_leaderboard: list[LadderEntryModel]
    season_leaderboard: list[LadderEntryModel]
    your_position: YourPositionModel


# Leagues


class LeagueCreateRequest(ApiModel):
    name: str = ""
    description: str = ""


class LeagueJoinRequest(ApiModel):
    code: str = ""


class LeagueMemberModel(ApiModel):
    uid: str
    display_name: str
    role: str
    joined_at: float


class LeagueModel(ApiModel):
    id: str
    name: str
    description: str = ""
    invite_code: str
    manager_id: str
    sport: str = "afl"
    member_count: int = 0
    members: list[LeagueMemberModel] = []
    created_at: float
    updated_at: float


class LeagueListResponse(ApiModel):
    leagues: list[LeagueModel]


class LeagueLadderRowModel(ApiModel):
    uid: str
    name: str
    username: str = ""
    avatar_url: str = ""
    current_streak: int = 0
    ui_role: str
    rank: int


class LeagueLadderResponse(ApiModel):
    league: LeagueModel
    ladder: list[LeagueLadderRowModel]


# Venue leagues


class VenueCreateRequest(ApiModel):
    name: str = ""
    venue_name: str = ""
    location: str = ""
    description: str = ""
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    created_by: str = "admin"


class VenueUpdateRequest(ApiModel):
    name: Optional[str] = None
    venue_name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None
    prizes_headline: Optional[str] = None
    prizes_body: Optional[str] = None
    voucher_join_enabled: Optional[bool] = None
    voucher_join_title: Optional[str] = None
    voucher_join_description: Optional[str] = None
    voucher_milestone_enabled: Optional[bool] = None
    voucher_milestone_title: Optional[str] = None
    voucher_milestone_description: Optional[str] = None
    venue_admin_email: Optional[str] = None
    venue_admin_uid: Optional[str] = None


class VenueJoinRequest(ApiModel):
    code: str = ""


class VenueModel(ApiModel):
    id: str
    name: str
    code: str
    created_by: str
    venue_name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    subscription_status: SubscriptionStatus
    member_ids: list[str] = []
    prizes_headline: Optional[str] = None
    prizes_body: Optional[str] = None
    voucher_join_enabled: bool = False
    voucher_join_title: Optional[str] = None
    voucher_join_description: Optional[str] = None
    voucher_milestone_enabled: bool = False
    voucher_milestone_title: Optional[str] = None
    voucher_milestone_description: Optional[str] = None
    venue_admin_email: Optional[str] = None
    venue_admin_uid: Optional[str] = None
    created_at: float


class VenueListResponse(ApiModel):
    venues: list[VenueModel]


class VenuePageResponse(ApiModel):
    venue: VenueModel
    ladder: list[LadderEntryModel]


# Profile


class ProfileStatsModel(ApiModel):
    display_name: str
    username: str = ""
    favourite_team: str = ""
    suburb: str = ""
    state: str = ""
    current_streak: int = 0
    best_streak: int = 0
    correct_percentage: int = 0
    rounds_played: int = 0


class RecentPickModel(ApiModel):
    id: str
    round: Optional[int] = None
    match: str = ""
    question: str = ""
    user_pick: PickSide
    result: PickResult


class ProfileResponse(ApiModel):
    stats: ProfileStatsModel
    recent_picks: list[RecentPickModel]


class ProfileUpdateRequest(ApiModel):
    first_name: Optional[str] = None
    surname: Optional[str] = None
    suburb: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    favourite_team: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdateResponse(ApiModel):
    ok: bool = True
    uid: str
    display_name: str


class AvatarUploadRequest(ApiModel):
    filename: str = "avatar"
    content_type: str = ""
    size_bytes: Optional[int] = None


class AvatarUploadResponse(ApiModel):
    upload_url: str
    public_url: str
    path: str
    content_type: str
    max_bytes: int


# Locks and live games


class SquiggleGameModel(ApiModel):
    squiggle_id: int
    year: int
    round: int
    start_time_utc: str
    home_team: str
    away_team: str
    venue: Optional[str] = None
    status: GameState
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    percent_complete: Optional[float] = None


class SquiggleGamesResponse(ApiModel):
    games: list[SquiggleGameModel]
    cached: bool = False


class LiveScoreRequest(ApiModel):
    season: Optional[int] = None
    round_number: Optional[int] = None
    game_id: Optional[str] = None


class LiveScoreResponse(ApiModel):
    game_id: str
    status: GameState
    home_team: str
    away_team: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    updated_at_utc: str


class ResolvedGameStateResponse(ApiModel):
    game_id: str
    start_time_utc: str
    now_utc: str
    countdown_ms: int
    is_locked: bool
    status: GameState
    source: str


class AutoSyncRequest(ApiModel):
    season: Optional[int] = None
    round_number: Optional[int] = None


class AutoSyncResponse(ApiModel):
    ok: bool = True
    locked: int
    round: str
    games_started: list[str] = []


class GameLockRequest(ApiModel):
    round_number: Optional[int] = None
    game_id: Optional[str] = None
    is_unlocked_for_picks: bool = False


class GameLockResponse(ApiModel):
    ok: bool = True
    game_id: str
    round_number: Optional[int] = None
    is_unlocked_for_picks: bool


# Power-ups


class PanicRequest(ApiModel):
    round_number: Optional[int] = None
    game_id: Optional[str] = None
    question_id: Optional[str] = None


class PanicResponse(ApiModel):
    ok: bool = True
    question_id: str


class FreeKickRequest(ApiModel):
    game_id: Optional[str] = None


class FreeKickResponse(ApiModel):
    ok: bool = True
    season: int
    game_id: str
    current_streak: Optional[int] = None


# Comments


class CommentRequest(ApiModel):
    body: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class CommentModel(ApiModel):
    id: str
    question_id: str
    uid: str
    body: str
    round_number: Optional[int] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: float


class CommentListResponse(ApiModel):
    items: list[CommentModel]


class CommentCreateResponse(ApiModel):
    ok: bool = True
    comment: CommentModel


# Admin


class QuestionModel(ApiModel):
    id: str
    quarter: int
    question: str
    status: QuestionStatus
    sport: Optional[str] = None


class GameModel(ApiModel):
    id: str
    match: str
    venue: str
    start_time: str
    sport: str
    questions: list[QuestionModel]


class RoundModel(ApiModel):
    season: int
    round_number: int
    round_key: str
    label: str
    published: bool
    games: list[GameModel]


class RoundSummaryModel(ApiModel):
    round_number: int
    round_key: str
    label: str
    published: bool
    game_count: int
    question_count: int


class RoundsImportRequest(ApiModel):
    rows: Optional[list[dict[str, Any]]] = None


class RoundsResponse(ApiModel):
    ok: bool = True
    rounds: list[RoundSummaryModel]


class SponsorQuestionRequest(ApiModel):
    round_number: Optional[int] = None
    question_id: Optional[str] = None


class SponsorQuestionResponse(ApiModel):
    ok: bool = True
    round_number: Optional[int] = None
    question_id: Optional[str] = None


class RepairItemModel(ApiModel):
    record_id: str
    round_number: int
    from_question_id: str
    to_question_id: Optional[str] = None
    status: str
    outcome: Optional[str] = None


class RepairResponse(ApiModel):
    ok: bool = True
    dry_run: bool
    scanned: int
    bad_found: int
    migrated: int
    deleted: int
    unmapped: int
    examples: list[RepairItemModel]


class DiagnosticsResponse(ApiModel):
    ok: bool = True
    backend: str
    user_count: int
    season: int
    current_round_number: Optional[int] = None


class JobRequest(ApiModel):
    round_number: Optional[int] = None
    kind: JobKind = JobKind.RECOMPUTE_ROUND


class JobStatusResponse(ApiModel):
    job_id: str
    kind: JobKind
    status: str
    stage: Optional[str] = None
    progress_percent: Optional[float] = None
    error: Optional[str] = None


class BblMatchInput(ApiModel):
    id: str
    match: str = ""
    venue: str = ""
    start_time: Union[float, str]


class BblUpsertRequest(ApiModel):
    matches: list[BblMatchInput] = Field(default_factory=list)


class BblUpsertResponse(ApiModel):
    ok: bool = True
    saved: int


class BblCurrentResponse(ApiModel):
    ok: bool = True
    doc_id: Optional[str] = None
    match: Optional[str] = None
    venue: Optional[str] = None
    start_time: Optional[str] = None
    reason: Optional[str] = None
