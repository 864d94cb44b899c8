"""
CLI helper to import a season schedule into the configured database.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from streakr.admin import AdminService
from streakr.dependencies import get_db_client, get_queue_client
from streakr.fixtures import FixtureSource, load_rows
from streakr.config import get_settings

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import STREAKr rounds")
    parser.add_argument(
        "-f",
        "--file",
        type=str,
        default=None,
        help="Schedule JSON file (defaults to FIXTURES_PATH)",
    )
    parser.add_argument(
        "-p",
        "--publish",
        type=int,
        default=None,
        help="Publish this round number after importing",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    path = args.file or settings.fixtures_path
    db = get_db_client()
    fixtures = FixtureSource(db, season=settings.season, fixtures_path=path)
    admin = AdminService(db, fixtures, get_queue_client())

    rounds = admin.import_rounds(load_rows(path))
    for round_record in rounds:
        logger.info(
            "%s: %d games, %d questions",
            round_record.label,
            len(round_record.games),
            len(round_record.question_ids()),
        )

    if args.publish is not None:
        admin.publish(args.publish)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
