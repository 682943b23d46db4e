"""
Queue abstraction for dispatching game jobs to workers.

Gig settlements and the scheduled sponsorship/bot jobs are pushed as job ids;
the job record in the database carries the payload. Supports an in-memory
fallback for tests/local runs and a Redis-backed implementation for
production.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)


class JobQueue(Protocol):
    """Minimal queue interface for dispatching job_ids to workers."""

    def enqueue(self, job_id: str) -> None:
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        ...

    def depth(self) -> int:
        ...


@dataclass
class InMemoryJobQueue:
    """FIFO queue for tests and single-process runs."""

    items: list[str] = field(default_factory=list)

    def enqueue(self, job_id: str) -> None:
        self.items.append(job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)

    def depth(self) -> int:
        return len(self.items)


@dataclass
class RedisJobQueue:
    """Redis list queue: producers rpush, workers blpop."""

    url: str
    queue_key: str = "rockmundo:jobs"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _reconnect(self) -> None:
        logger.warning("Redis connection lost, reconnecting to %s", self.queue_key)
        self.client = redis.Redis.from_url(self.url)

    def enqueue(self, job_id: str) -> None:
        self.client.rpush(self.queue_key, job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[str]:
        try:
            if block:
                result = self.client.blpop(self.queue_key, timeout=timeout or 0)
                if result is None:
                    return None
                _, job_id = result
            else:
                job_id = self.client.lpop(self.queue_key)
                if job_id is None:
                    return None
            return job_id.decode("utf-8")
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; report an empty queue and
            # let the worker loop retry on a fresh client.
            self._reconnect()
            return None

    def depth(self) -> int:
        try:
            return int(self.client.llen(self.queue_key))
        except redis_exceptions.ConnectionError:
            self._reconnect()
            return 0
