"""
Worker loop for queued game jobs.

Jobs are created by the API (or the scheduler daemon) and pushed onto the
queue; each job type maps to one handler whose result dict is stored on the
job record.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, Optional

from backend.config import get_settings
from backend.db import DbClient, JobRecord
from backend.dependencies import get_db_client, get_queue_client
from backend.queue import JobQueue
from settlement.gig import complete_gig
from shared.types import JobStatus, JobType
from social.bot_twaats import generate_bot_twaats
from sponsorships.sponsorships import (
    expire_sponsorships,
    generate_offers,
    process_weekly_payouts,
)

logger = logging.getLogger(__name__)

Handler = Callable[[DbClient, Dict[str, Any], random.Random], Dict[str, Any]]


def _complete_gig(db: DbClient, payload: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    gig_id = payload.get("gig_id")
    if not gig_id:
        raise ValueError("complete_gig job requires a gig_id")
    outcome = complete_gig(db, gig_id, rng=rng).outcome
    return {
        "gig_id": gig_id,
        "outcome_id": outcome.outcome_id,
        "overall_rating": outcome.overall_rating,
        "performance_grade": outcome.performance_grade,
        "net_profit": outcome.net_profit,
        "fame_gained": outcome.fame_gained,
        "new_fans": outcome.new_fans,
    }


def _generate_offers(db: DbClient, payload: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    settings = get_settings()
    return generate_offers(
        db,
        rng,
        min_fame=payload.get("min_fame", settings.sponsorship_min_fame),
        max_pending_offers=payload.get(
            "max_pending_offers", settings.sponsorship_max_pending_offers
        ),
    )


def _weekly_payouts(db: DbClient, payload: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    return {"payouts": process_weekly_payouts(db)}


def _expire_sponsorships(db: DbClient, payload: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    return expire_sponsorships(
        db,
        terminate_contract_id=payload.get("contract_id"),
        termination_reason=payload.get("reason"),
    )


def _bot_twaats(db: DbClient, payload: Dict[str, Any], rng: random.Random) -> Dict[str, Any]:
    return generate_bot_twaats(db, rng)


HANDLERS: Dict[str, Handler] = {
    JobType.COMPLETE_GIG: _complete_gig,
    JobType.GENERATE_SPONSORSHIP_OFFERS: _generate_offers,
    JobType.PROCESS_WEEKLY_PAYOUTS: _weekly_payouts,
    JobType.EXPIRE_SPONSORSHIPS: _expire_sponsorships,
    JobType.GENERATE_BOT_TWAATS: _bot_twaats,
}


def process_job(
    job: JobRecord, db: DbClient, rng: Optional[random.Random] = None
) -> Dict[str, Any]:
    """
    Run a single claimed job and record its outcome.

    Failures mark the job ERROR with the message and propagate.
    """
    handler = HANDLERS.get(job.job_type)
    if handler is None:
        db.update_job_progress(
            job.job_id,
            status=JobStatus.ERROR,
            stage="ERROR",
            error=f"Unknown job type: {job.job_type}",
        )
        raise ValueError(f"Unknown job type: {job.job_type}")

    rng = rng or random.Random(get_settings().rng_seed)
    db.update_job_progress(
        job.job_id, status=JobStatus.RUNNING, stage=str(job.job_type).upper(), progress_percent=0.1
    )
    logger.info("[%s] Running %s", job.job_id, job.job_type)
    try:
        result = handler(db, job.payload or {}, rng)
    except Exception as exc:
        logger.exception("[%s] %s failed", job.job_id, job.job_type)
        db.update_job_progress(
            job.job_id,
            status=JobStatus.ERROR,
            stage="ERROR",
            progress_percent=0.0,
            error=str(exc),
        )
        raise

    db.update_job_progress(
        job.job_id,
        status=JobStatus.SUCCESS,
        stage="SUCCESS",
        progress_percent=1.0,
        result=result,
    )
    logger.info("[%s] %s complete: %s", job.job_id, job.job_type, result)
    return result


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

    job_id = queue.dequeue(block=block, timeout=timeout)
    job: Optional[JobRecord] = None

    if job_id:
        job = db.claim_job(job_id)
        if not job:
            logger.warning("Job %s from queue is missing or already claimed", job_id)
            return False
    else:
        # Jobs created without reaching the queue are still picked up.
        job = db.claim_next_waiting_job()
        if not job:
            return False

    process_job(job, db)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    settings = get_settings()
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            requeued = db.requeue_stale_locks(
                lock_timeout_seconds=settings.stale_job_lock_seconds
            )
            if requeued:
                logger.warning("Requeued %d stale job(s)", requeued)
        except Exception:
            logger.exception("Failed to requeue stale locks")
        try:
            processed = process_next(
                db=db, queue=queue, block=True, timeout=int(poll_interval_seconds)
            )
        except Exception:
            logger.exception("Worker iteration failed")
            processed = True
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
