"""
Dependency wiring for the FastAPI app and the worker.
"""

from __future__ import annotations

import random

from backend.config import get_settings
from backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from backend.queue import InMemoryJobQueue, JobQueue, RedisJobQueue

_db_client: DbClient | None = None
_queue_client: JobQueue | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so game state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_queue_client() -> JobQueue:
    """
    Return a singleton queue client for dispatching jobs to workers.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisJobQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryJobQueue()
    return _queue_client


def get_rng() -> random.Random:
    """Dice for one settlement; seeded when ROCKMUNDO_RNG_SEED is set."""
    return random.Random(get_settings().rng_seed)
