"""
HTTP routes for the admin consoles. Every route requires X-Admin-Token.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from streakr.admin import AdminService
from streakr.auth import require_admin
from streakr.bbl import BblService
from streakr.comments import CommentService
from streakr.db import DbClient
from streakr.dependencies import (
    get_admin_service,
    get_bbl_service,
    get_comment_service,
    get_db_client,
    get_lock_service,
    get_repair_service,
    get_settlement_service,
    get_venue_service,
)
from streakr.locks import LockService
from streakr.maintenance import StatusRepairService
from streakr.records import RoundRecord
from streakr.schemas import (
    AutoSyncRequest,
    AutoSyncResponse,
    BblUpsertRequest,
    BblUpsertResponse,
    DiagnosticsResponse,
    GameLockRequest,
    GameLockResponse,
    JobRequest,
    JobStatusResponse,
    OkResponse,
    RepairResponse,
    RoundModel,
    RoundsImportRequest,
    RoundsResponse,
    RoundSummaryModel,
    SettlementRequest,
    SettlementResponse,
    SponsorQuestionRequest,
    SponsorQuestionResponse,
    VenueCreateRequest,
    VenueListResponse,
    VenueModel,
    VenueUpdateRequest,
)
from streakr.settlement import SettlementService
from streakr.venues import VenueService

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


def _summary(round_record: RoundRecord) -> RoundSummaryModel:
    return RoundSummaryModel(
        round_number=round_record.round_number,
        round_key=round_record.round_key,
        label=round_record.label,
        published=round_record.published,
        game_count=len(round_record.games),
        question_count=len(round_record.question_ids()),
    )


def _job_response(job) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.job_id,
        kind=job.kind,
        status=job.status.value,
        stage=job.stage,
        progress_percent=job.progress_percent,
        error=job.error,
    )


# Settlement and locking


@router.post("/settlement", response_model=SettlementResponse)
def settle(
    payload: SettlementRequest,
    settlement: SettlementService = Depends(get_settlement_service),
):
    return settlement.settle(
        round_number=payload.round_number,
        question_id=payload.question_id,
        action=payload.action,
    )


@router.post("/locks/auto-sync", response_model=AutoSyncResponse)
def auto_sync(
    payload: AutoSyncRequest,
    locks: LockService = Depends(get_lock_service),
):
    return locks.auto_sync(season=payload.season, round_number=payload.round_number)


@router.post("/admin/game-lock", response_model=GameLockResponse)
def game_lock(
    payload: GameLockRequest,
    locks: LockService = Depends(get_lock_service),
):
    return locks.set_game_lock(
        game_id=payload.game_id,
        round_number=payload.round_number,
        is_unlocked_for_picks=payload.is_unlocked_for_picks,
    )


# Rounds


@router.get("/admin/rounds", response_model=RoundsResponse)
def list_rounds(admin: AdminService = Depends(get_admin_service)):
    return RoundsResponse(rounds=[_summary(r) for r in admin.list_rounds()])


@router.post("/admin/rounds/import", response_model=RoundsResponse)
def import_rounds(
    payload: RoundsImportRequest,
    admin: AdminService = Depends(get_admin_service),
):
    return RoundsResponse(rounds=[_summary(r) for r in admin.import_rounds(payload.rows)])


@router.get("/admin/rounds/{round_number}", response_model=RoundModel)
def get_round(round_number: int, admin: AdminService = Depends(get_admin_service)):
    round_record = admin.fixtures.get_round(round_number)
    if round_record is None:
        raise HTTPException(status_code=404, detail="Round not found")
    return RoundModel.model_validate(round_record.as_dict())


@router.post("/admin/rounds/{round_number}/publish", response_model=RoundSummaryModel)
def publish_round(round_number: int, admin: AdminService = Depends(get_admin_service)):
    return _summary(admin.publish(round_number))


@router.post("/admin/rounds/{round_number}/unpublish", response_model=RoundSummaryModel)
def unpublish_round(round_number: int, admin: AdminService = Depends(get_admin_service)):
    return _summary(admin.unpublish(round_number))


# Sponsor question


@router.post("/admin/sponsor-question", response_model=SponsorQuestionResponse)
def set_sponsor_question(
    payload: SponsorQuestionRequest,
    admin: AdminService = Depends(get_admin_service),
):
    sponsor = admin.set_sponsor_question(
        round_number=payload.round_number, question_id=payload.question_id
    )
    return SponsorQuestionResponse(
        round_number=sponsor.round_number, question_id=sponsor.question_id
    )


@router.delete("/admin/sponsor-question", response_model=SponsorQuestionResponse)
def clear_sponsor_question(admin: AdminService = Depends(get_admin_service)):
    admin.clear_sponsor_question()
    return SponsorQuestionResponse()


# Maintenance and jobs


@router.get("/admin/fix-questionstatus", response_model=RepairResponse)
def repair_question_status(
    round: Optional[int] = Query(default=None),
    dry_run: bool = Query(default=False, alias="dryRun"),
    repair: StatusRepairService = Depends(get_repair_service),
):
    return repair.repair(round_number=round, dry_run=dry_run)


@router.get("/admin/diagnostics", response_model=DiagnosticsResponse)
def diagnostics(admin: AdminService = Depends(get_admin_service)):
    return admin.diagnostics()


@router.post("/admin/jobs", response_model=JobStatusResponse, status_code=202)
def enqueue_job(
    payload: JobRequest,
    admin: AdminService = Depends(get_admin_service),
):
    return _job_response(admin.enqueue_job(payload.kind, payload.round_number))


@router.get("/admin/jobs/{job_id}", response_model=JobStatusResponse)
def job_status(job_id: str, db: DbClient = Depends(get_db_client)):
    job = db.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_response(job)


# Venue leagues


@router.get("/admin/venues", response_model=VenueListResponse)
def list_venues(venues: VenueService = Depends(get_venue_service)):
    return VenueListResponse(
        venues=[VenueModel.model_validate(v.as_dict()) for v in venues.list_all()]
    )


@router.post("/admin/venues", response_model=VenueModel, status_code=201)
def create_venue(
    payload: VenueCreateRequest,
    venues: VenueService = Depends(get_venue_service),
):
    venue = venues.create(
        created_by=payload.created_by,
        name=payload.name,
        venue_name=payload.venue_name,
        location=payload.location,
        description=payload.description,
        subscription_status=payload.subscription_status,
    )
    return VenueModel.model_validate(venue.as_dict())


@router.patch("/admin/venues/{venue_id}", response_model=VenueModel)
def update_venue(
    venue_id: str,
    payload: VenueUpdateRequest,
    venues: VenueService = Depends(get_venue_service),
):
    venue = venues.update(venue_id, payload.model_dump(exclude_unset=True))
    return VenueModel.model_validate(venue.as_dict())


# Comments and BBL


@router.delete("/admin/comments/{question_id}/{comment_id}", response_model=OkResponse)
def remove_comment(
    question_id: str,
    comment_id: str,
    comments: CommentService = Depends(get_comment_service),
):
    comments.remove(question_id, comment_id)
    return OkResponse()


@router.post("/admin/bbl/matches", response_model=BblUpsertResponse)
def upsert_bbl_matches(
    payload: BblUpsertRequest,
    bbl: BblService = Depends(get_bbl_service),
):
    saved = bbl.upsert(m.model_dump() for m in payload.matches)
    return BblUpsertResponse(saved=len(saved))
