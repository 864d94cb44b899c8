"""
HTTP routes for players: picks, ladders, leagues, venues, profile, live
games, power-ups and comments.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from streakr.auth import get_current_uid, get_optional_uid
from streakr.bbl import BblService
from streakr.comments import CommentService
from streakr.config import Settings, get_settings
from streakr.dependencies import (
    get_bbl_service,
    get_comment_service,
    get_leaderboard_service,
    get_league_service,
    get_lock_service,
    get_picks_service,
    get_power_up_service,
    get_profile_service,
    get_squiggle_client,
    get_storage_client,
    get_venue_service,
)
from streakr.leaderboard import LeaderboardService
from streakr.leagues import LeagueService
from streakr.locks import LockService
from streakr.picks import PicksService
from streakr.powerups import PowerUpService
from streakr.profile import ProfileService
from streakr.schemas import (
    ActivePickResponse,
    AvatarUploadRequest,
    AvatarUploadResponse,
    BblCurrentResponse,
    CommentCreateResponse,
    CommentListResponse,
    CommentRequest,
    FreeKickRequest,
    FreeKickResponse,
    LeaderboardResponse,
    LeaderboardsResponse,
    LeagueCreateRequest,
    LeagueJoinRequest,
    LeagueLadderResponse,
    LeagueListResponse,
    LeagueModel,
    LiveScoreRequest,
    LiveScoreResponse,
    OkResponse,
    PanicRequest,
    PanicResponse,
    PicksResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    QuestionStatsResponse,
    ResolvedGameStateResponse,
    SquiggleGamesResponse,
    UserPickRequest,
    VenueJoinRequest,
    VenueModel,
    VenuePageResponse,
)
from streakr.squiggle import SquiggleClient
from streakr.storage import StorageClient
from streakr.venues import VenueService

logger = logging.getLogger(__name__)

router = APIRouter()


def _league_model(league) -> LeagueModel:
    return LeagueModel.model_validate(league.as_dict())


# Picks


@router.get("/picks", response_model=PicksResponse)
def get_picks(
    round: Optional[int] = Query(default=None),
    uid: Optional[str] = Depends(get_optional_uid),
    picks: PicksService = Depends(get_picks_service),
):
    board = picks.round_board(round, uid)
    return PicksResponse(games=board.games, round_number=board.round_number)


@router.get("/user-picks", response_model=ActivePickResponse)
def get_user_pick(
    uid: str = Depends(get_current_uid),
    picks: PicksService = Depends(get_picks_service),
):
    question_id, outcome = picks.active_pick(uid)
    return ActivePickResponse(question_id=question_id, outcome=outcome)


@router.post("/user-picks", response_model=OkResponse)
def post_user_pick(
    payload: UserPickRequest,
    uid: str = Depends(get_current_uid),
    picks: PicksService = Depends(get_picks_service),
):
    action = (payload.action or "").strip().lower()
    if action == "clear":
        picks.clear_pick(uid, payload.question_id)
    else:
        picks.save_pick(
            uid,
            question_id=payload.question_id,
            outcome=payload.outcome,
            round_number=payload.round_number,
            game_id=payload.game_id,
        )
    return OkResponse()


@router.get("/questions/{question_id}/stats", response_model=QuestionStatsResponse)
def question_stats(
    question_id: str,
    picks: PicksService = Depends(get_picks_service),
):
    stats = picks.question_stats(question_id)
    return QuestionStatsResponse(total=stats.total, yes_pct=stats.yes_pct, no_pct=stats.no_pct)


# Leaderboards


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    scope: str = Query(default="overall"),
    uid: Optional[str] = Depends(get_optional_uid),
    ladders: LeaderboardService = Depends(get_leaderboard_service),
):
    return ladders.leaderboard(scope, uid)


@router.get("/leaderboards", response_model=LeaderboardsResponse)
def leaderboards(
    uid: Optional[str] = Depends(get_optional_uid),
    ladders: LeaderboardService = Depends(get_leaderboard_service),
):
    return ladders.leaderboards(uid)


# Leagues


@router.get("/leagues", response_model=LeagueListResponse)
def my_leagues(
    uid: str = Depends(get_current_uid),
    leagues: LeagueService = Depends(get_league_service),
):
    return LeagueListResponse(leagues=[_league_model(l) for l in leagues.list_for_user(uid)])


@router.post("/leagues", response_model=LeagueModel, status_code=201)
def create_league(
    payload: LeagueCreateRequest,
    uid: str = Depends(get_current_uid),
    leagues: LeagueService = Depends(get_league_service),
):
    return _league_model(leagues.create(uid, name=payload.name, description=payload.description))


@router.post("/leagues/join", response_model=LeagueModel)
def join_league(
    payload: LeagueJoinRequest,
    uid: str = Depends(get_current_uid),
    leagues: LeagueService = Depends(get_league_service),
):
    return _league_model(leagues.join(uid, payload.code))


@router.get("/leagues/{league_id}", response_model=LeagueLadderResponse)
def league_ladder(
    league_id: str,
    leagues: LeagueService = Depends(get_league_service),
):
    league = leagues.get(league_id)
    return LeagueLadderResponse(league=_league_model(league), ladder=leagues.ladder(league_id))


@router.post("/leagues/{league_id}/leave", response_model=OkResponse)
def leave_league(
    league_id: str,
    uid: str = Depends(get_current_uid),
    leagues: LeagueService = Depends(get_league_service),
):
    leagues.leave(uid, league_id)
    return OkResponse()


# Venue leagues


@router.post("/venues/join", response_model=VenueModel)
def join_venue(
    payload: VenueJoinRequest,
    uid: str = Depends(get_current_uid),
    venues: VenueService = Depends(get_venue_service),
):
    return VenueModel.model_validate(venues.join(uid, payload.code).as_dict())


@router.get("/venues/{venue_id}", response_model=VenuePageResponse)
def venue_page(
    venue_id: str,
    venues: VenueService = Depends(get_venue_service),
):
    page = venues.page(venue_id)
    return VenuePageResponse(
        venue=VenueModel.model_validate(page.venue.as_dict()), ladder=page.ladder
    )


# Profile


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    uid: Optional[str] = Query(default=None),
    profiles: ProfileService = Depends(get_profile_service),
):
    return profiles.get_profile(uid)


@router.patch("/profile", response_model=ProfileUpdateResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    uid: str = Depends(get_current_uid),
    profiles: ProfileService = Depends(get_profile_service),
):
    user = profiles.update_profile(uid, payload.model_dump(exclude_unset=True))
    return ProfileUpdateResponse(uid=user.uid, display_name=user.display_name)


@router.post("/profile/avatar-upload", response_model=AvatarUploadResponse)
def avatar_upload(
    payload: AvatarUploadRequest,
    uid: str = Depends(get_current_uid),
    profiles: ProfileService = Depends(get_profile_service),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    return profiles.avatar_upload(
        uid,
        storage,
        filename=payload.filename,
        content_type=payload.content_type,
        size_bytes=payload.size_bytes,
        max_bytes=settings.avatar_max_bytes,
    )


# Live games


@router.get("/squiggle/games", response_model=SquiggleGamesResponse)
def squiggle_games(
    year: Optional[int] = Query(default=None),
    round: Optional[int] = Query(default=None),
    squiggle: SquiggleClient = Depends(get_squiggle_client),
):
    games, cached = squiggle.games(year, round)
    return SquiggleGamesResponse(games=games, cached=cached)


@router.post("/games/live-score", response_model=LiveScoreResponse)
def live_score(
    payload: LiveScoreRequest,
    locks: LockService = Depends(get_lock_service),
):
    if payload.season is None or payload.round_number is None or not payload.game_id:
        raise HTTPException(status_code=400, detail="season, roundNumber, gameId required")
    return locks.live_score(
        season=payload.season, round_number=payload.round_number, game_id=payload.game_id
    )


@router.get("/games/resolve-state", response_model=ResolvedGameStateResponse)
def resolve_state(
    game_id: str = Query(default="", alias="gameId"),
    season: Optional[int] = Query(default=None),
    round_number: Optional[int] = Query(default=None, alias="roundNumber"),
    locks: LockService = Depends(get_lock_service),
):
    return locks.resolve_state(game_id, season=season, round_number=round_number)


@router.get("/bbl/current", response_model=BblCurrentResponse)
def bbl_current(bbl: BblService = Depends(get_bbl_service)):
    match = bbl.current()
    if match is None:
        return BblCurrentResponse(reason="No current/upcoming BBL match found.")
    return BblCurrentResponse(
        doc_id=match.id,
        match=match.match or None,
        venue=match.venue or None,
        start_time=datetime.fromtimestamp(match.start_time, tz=timezone.utc).isoformat(),
    )


# Power-ups


@router.post("/panic", response_model=PanicResponse)
def panic(
    payload: PanicRequest,
    uid: str = Depends(get_current_uid),
    powerups: PowerUpService = Depends(get_power_up_service),
):
    result = powerups.panic(
        uid,
        round_number=payload.round_number,
        game_id=payload.game_id,
        question_id=payload.question_id,
    )
    return PanicResponse(question_id=result.question_id)


@router.post("/freekick", response_model=FreeKickResponse)
def free_kick(
    payload: FreeKickRequest,
    uid: str = Depends(get_current_uid),
    powerups: PowerUpService = Depends(get_power_up_service),
):
    result = powerups.free_kick(uid, game_id=payload.game_id)
    return FreeKickResponse(
        season=result.season, game_id=result.game_id, current_streak=result.current_streak
    )


# Comments


@router.get("/comments/{question_id}", response_model=CommentListResponse)
def list_comments(
    question_id: str,
    comments: CommentService = Depends(get_comment_service),
):
    return CommentListResponse(items=comments.list_for_question(question_id))


@router.post("/comments/{question_id}", response_model=CommentCreateResponse, status_code=201)
def add_comment(
    question_id: str,
    payload: CommentRequest,
    uid: str = Depends(get_current_uid),
    comments: CommentService = Depends(get_comment_service),
):
    comment = comments.add(
        uid,
        question_id,
        payload.body,
        display_name=payload.display_name,
        photo_url=payload.photo_url,
    )
    return CommentCreateResponse(comment=comment)
