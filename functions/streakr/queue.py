"""
Job dispatch queue for the worker.

Each job kind has its own list so streak recomputes triggered by settlement
are taken before routine lock syncs. Job records stay the source of truth;
the queue only carries ids. Redis backs production, an in-memory queue backs
tests and local runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from shared.types import JobKind
from streakr.records import JobRecord

logger = logging.getLogger(__name__)

# Dequeue order.
KIND_PRIORITY = (JobKind.RECOMPUTE_ROUND, JobKind.LOCK_SYNC)


@dataclass(frozen=True)
class QueuedJob:
    job_id: str
    kind: JobKind


class JobQueue(Protocol):
    def enqueue(self, job: JobRecord) -> None:
        ...

    def requeue(self, job: JobRecord) -> None:
        """Puts a recovered job back at the head of its kind's list."""
        ...

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[QueuedJob]:
        ...


@dataclass
class InMemoryJobQueue:
    items: list[QueuedJob] = field(default_factory=list)

    def enqueue(self, job: JobRecord) -> None:
        self.items.append(QueuedJob(job.job_id, job.kind))

    def requeue(self, job: JobRecord) -> None:
        self.items.insert(0, QueuedJob(job.job_id, job.kind))

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[QueuedJob]:
        for kind in KIND_PRIORITY:
            for index, item in enumerate(self.items):
                if item.kind == kind:
                    return self.items.pop(index)
        return None


@dataclass
class RedisJobQueue:
    """One Redis list per job kind: RPUSH to enqueue, LPUSH to requeue."""

    url: str
    queue_key: str = "streakr:jobs"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def key_for(self, kind: JobKind) -> str:
        return f"{self.queue_key}:{kind.value}"

    def enqueue(self, job: JobRecord) -> None:
        self.client.rpush(self.key_for(job.kind), job.job_id)

    def requeue(self, job: JobRecord) -> None:
        self.client.lpush(self.key_for(job.kind), job.job_id)

    def dequeue(self, *, block: bool = True, timeout: int | None = None) -> Optional[QueuedJob]:
        kinds = {self.key_for(kind): kind for kind in KIND_PRIORITY}
        try:
            if block:
                result = self.client.blpop(list(kinds), timeout=timeout or 0)
                if result is None:
                    return None
                key, job_id = result
                return QueuedJob(job_id.decode("utf-8"), kinds[key.decode("utf-8")])
            for key, kind in kinds.items():
                job_id = self.client.lpop(key)
                if job_id is not None:
                    return QueuedJob(job_id.decode("utf-8"), kind)
            return None
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect and report an
            # empty queue so the worker loop retries.
            logger.warning("Lost connection to Redis for %s; reconnecting", self.queue_key)
            self.client = redis.Redis.from_url(self.url)
            return None
