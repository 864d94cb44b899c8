"""
Daemon that periodically enqueues auto-lock sync jobs for the current round.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.types import JobKind
from streakr.admin import AdminService
from streakr.config import get_settings
from streakr.dependencies import get_db_client, get_fixture_source, get_queue_client
from streakr.errors import StreakrError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="STREAKr auto-lock daemon")
    parser.add_argument(
        "-r",
        "--round",
        type=int,
        default=None,
        help="Round to sync (defaults to the season's current round)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=None,
        help="Seconds between sync jobs (defaults to LOCK_SYNC_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Enqueue a single job and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    interval = args.interval_seconds or settings.lock_sync_interval_seconds
    admin = AdminService(get_db_client(), get_fixture_source(), get_queue_client())

    while True:
        try:
            job = admin.enqueue_job(JobKind.LOCK_SYNC, args.round)
            logger.info("Enqueued lock sync job %s", job.job_id)
        except StreakrError as exc:
            logger.warning("Skipping lock sync: %s", exc.message)
        except Exception as exc:
            logger.exception("Enqueue failed: %s", exc)

        if args.once:
            return 0

        time.sleep(interval)


if __name__ == "__main__":
    raise SystemExit(main())
