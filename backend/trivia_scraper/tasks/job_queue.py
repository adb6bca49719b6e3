"""Job queue contract and its Celery implementation.

Jobs are addressed by a short job type ("index", "detail") which maps to a
Celery task name and a queue, so index discovery and detail processing never
share a backlog.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from trivia_scraper.errors import SchedulingError

logger = logging.getLogger(__name__)

INDEX_QUEUE = "scraper_index"
DETAIL_QUEUE = "scraper_detail"

JOB_TYPES: dict[str, tuple[str, str]] = {
    "index": ("trivia_scraper.tasks.scrape_tasks.run_index_job", INDEX_QUEUE),
    "detail": ("trivia_scraper.tasks.scrape_tasks.run_detail_job", DETAIL_QUEUE),
}


@dataclass
class EnqueueOptions:
    max_attempts: int | None = None
    unique_window: int | None = None  # seconds
    unique_key: str | None = None
    scheduled_at: datetime | None = None


@dataclass
class JobSpec:
    job_type: str
    args: dict[str, Any]
    options: EnqueueOptions = field(default_factory=EnqueueOptions)


@dataclass
class JobHandle:
    job_id: str
    job_type: str
    queue: str
    scheduled_at: datetime | None = None


class DuplicateJobError(SchedulingError):
    """A job with the same unique key is already inside its uniqueness window."""

    kind = "duplicate_job"


class JobQueue(ABC):
    @abstractmethod
    def enqueue(self, job_type: str, args: dict[str, Any], options: EnqueueOptions | None = None) -> JobHandle:
        """Enqueue one job. Raises ``SchedulingError`` on failure."""
        ...

    def enqueue_spec(self, spec: JobSpec) -> JobHandle:
        return self.enqueue(spec.job_type, spec.args, spec.options)


class CeleryJobQueue(JobQueue):
    """Enqueue via ``Celery.send_task`` with Redis-backed uniqueness windows."""

    def __init__(self, celery_app=None, redis_client=None):
        if celery_app is None:
            from trivia_scraper.tasks.celery_app import celery_app as default_app
            celery_app = default_app
        self.celery_app = celery_app
        self._redis = redis_client

    @property
    def redis(self):
        if self._redis is None:
            import redis
            from trivia_scraper.config import get_settings
            self._redis = redis.from_url(get_settings().redis_url, socket_timeout=5)
        return self._redis

    def enqueue(self, job_type: str, args: dict[str, Any], options: EnqueueOptions | None = None) -> JobHandle:
        options = options or EnqueueOptions()
        try:
            task_name, queue = JOB_TYPES[job_type]
        except KeyError:
            raise SchedulingError(f"Unknown job type: {job_type}")

        kwargs = dict(args)
        if options.max_attempts:
            kwargs["max_attempts"] = options.max_attempts

        unique = bool(options.unique_window and options.unique_key)
        if unique:
            self._acquire_unique(job_type, options.unique_key, options.unique_window)

        try:
            result = self.celery_app.send_task(
                task_name,
                kwargs=kwargs,
                queue=queue,
                eta=options.scheduled_at,
            )
        except Exception as e:
            if unique:
                self._release_unique(job_type, options.unique_key)
            raise SchedulingError(f"Failed to enqueue {job_type} job: {e}") from e

        return JobHandle(
            job_id=str(result.id),
            job_type=job_type,
            queue=queue,
            scheduled_at=options.scheduled_at,
        )

    def _unique_key(self, job_type: str, unique_key: str) -> str:
        return f"trivia_scraper:unique:{job_type}:{unique_key}"

    def _acquire_unique(self, job_type: str, unique_key: str, window: int) -> None:
        key = self._unique_key(job_type, unique_key)
        try:
            acquired = self.redis.set(key, "1", nx=True, ex=window)
        except Exception as e:
            raise SchedulingError(f"Uniqueness check failed for {key}: {e}") from e
        if not acquired:
            raise DuplicateJobError(f"{job_type} job for {unique_key} already enqueued within {window}s")

    def _release_unique(self, job_type: str, unique_key: str) -> None:
        # The job never reached the broker, so it must not block the next attempt
        key = self._unique_key(job_type, unique_key)
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.error(f"Could not release uniqueness key {key}: {e}")
