"""
Daemon that periodically enqueues the scheduled game jobs for the worker.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from pathlib import Path
from typing import List, Sequence

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.db import DbClient
from backend.dependencies import get_db_client, get_queue_client
from backend.queue import JobQueue
from shared.types import JobType

logger = logging.getLogger(__name__)

SCHEDULED_JOBS = (
    JobType.GENERATE_SPONSORSHIP_OFFERS,
    JobType.PROCESS_WEEKLY_PAYOUTS,
    JobType.EXPIRE_SPONSORSHIPS,
    JobType.GENERATE_BOT_TWAATS,
)


def enqueue_scheduled_jobs(
    db: DbClient, queue: JobQueue, job_types: Sequence[str] = SCHEDULED_JOBS
) -> List[str]:
    job_ids = []
    for job_type in job_types:
        job = db.create_job(job_type)
        queue.enqueue(job.job_id)
        job_ids.append(job.job_id)
        logger.info("Enqueued %s job %s", job_type, job.job_id)
    return job_ids


def main() -> int:
    parser = argparse.ArgumentParser(description="RockMundo job scheduler daemon")
    parser.add_argument(
        "-j",
        "--job",
        action="append",
        choices=[job_type.value for job_type in SCHEDULED_JOBS],
        help="Only enqueue this job type (repeatable)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=3600,
        help="Seconds between scheduling runs",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=120,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Enqueue a single round of jobs and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    db = get_db_client()
    queue = get_queue_client()
    job_types = args.job or SCHEDULED_JOBS

    while True:
        try:
            job_ids = enqueue_scheduled_jobs(db, queue, job_types)
            logger.info("Scheduling complete, enqueued %d jobs", len(job_ids))
        except Exception as exc:
            logger.exception("Scheduling failed: %s", exc)

        if args.once:
            return 0

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
