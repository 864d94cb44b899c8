"""
Worker loop for background jobs: auto-lock sync and streak recomputes.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from shared.types import JobKind, JobStatus
from streakr.db import DbClient
from streakr.dependencies import (
    get_db_client,
    get_fixture_source,
    get_queue_client,
    get_squiggle_client,
)
from streakr.locks import LockService
from streakr.queue import JobQueue
from streakr.records import JobRecord
from streakr.streaks import StreakService

logger = logging.getLogger(__name__)

STALE_LOCK_SECONDS = 900


def process_job(job: JobRecord, db: DbClient) -> None:
    """
    Runs one claimed job and records SUCCESS or ERROR on it.

    Failures are recorded on the job and logged; the loop moves on.
    """
    fixtures = get_fixture_source()
    round_number = job.payload.get("round_number")
    season = job.payload.get("season", fixtures.season)

    db.update_job_progress(
        job.job_id, status=JobStatus.RUNNING, stage=job.kind.name, progress_percent=0.1
    )
    try:
        if not isinstance(round_number, int):
            raise ValueError(f"Job payload has no round_number: {job.payload}")
        if job.kind == JobKind.LOCK_SYNC:
            locks = LockService(db, fixtures, get_squiggle_client())
            result = locks.auto_sync(season=season, round_number=round_number)
            logger.info("[%s] Auto-locked %d questions", job.job_id, result.locked)
        elif job.kind == JobKind.RECOMPUTE_ROUND:
            count = StreakService(db, fixtures).recompute_round(round_number)
            logger.info("[%s] Recomputed %d users", job.job_id, count)
        else:
            raise ValueError(f"Unknown job kind {job.kind}")
    except Exception as exc:
        logger.exception("[%s] %s job failed", job.job_id, job.kind.value)
        db.update_job_progress(
            job.job_id,
            status=JobStatus.ERROR,
            stage="ERROR",
            progress_percent=0.0,
            error=str(exc),
        )
        return

    db.update_job_progress(
        job.job_id, status=JobStatus.SUCCESS, stage="SUCCESS", progress_percent=1.0
    )


def recover_stale_jobs(
    db: DbClient, queue: JobQueue, lock_timeout_seconds: float = STALE_LOCK_SECONDS
) -> int:
    """
    Puts jobs whose worker died mid-run back on the queue. Any RUNNING job
    claimed longer ago than the timeout counts, whatever stage it reached.
    """
    requeued = db.requeue_stale_locks(lock_timeout_seconds=lock_timeout_seconds)
    for job in requeued:
        logger.warning(
            "Requeueing stale %s job %s (stage %s)", job.kind.value, job.job_id, job.stage
        )
        queue.requeue(job)
    return len(requeued)


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one job from the queue (or DB fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    queued = queue.dequeue(block=block, timeout=timeout)
    if queued:
        job = db.claim_job(queued.job_id)
        if not job:
            logger.warning(
                "%s job %s from the queue is missing or already claimed",
                queued.kind.value,
                queued.job_id,
            )
            return False
    else:
        # Covers jobs created while the queue was unreachable.
        job = db.claim_next_waiting_job()
        if not job:
            return False

    process_job(job, db)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            recover_stale_jobs(db, queue)
        except Exception:
            logger.exception("Failed to requeue stale jobs")
        processed = process_next(db=db, queue=queue, block=True, timeout=int(poll_interval_seconds))
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
