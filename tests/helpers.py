from datetime import datetime, timezone

from trivia_scraper.errors import SchedulingError
from trivia_scraper.tasks.job_queue import JOB_TYPES, JobHandle, JobQueue

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeQueue(JobQueue):
    """In-memory queue; enqueue attempts listed in ``fail_on`` raise SchedulingError."""

    def __init__(self, fail_on=(), error: Exception | None = None):
        self.fail_on = set(fail_on)
        self.error = error
        self.attempts = 0
        self.jobs = []

    def enqueue(self, job_type, args, options=None):
        attempt = self.attempts
        self.attempts += 1
        if self.error is not None:
            raise self.error
        if attempt in self.fail_on:
            raise SchedulingError(f"queue rejected attempt {attempt}")
        self.jobs.append((job_type, args, options))
        return JobHandle(
            job_id=f"job-{attempt}",
            job_type=job_type,
            queue=JOB_TYPES[job_type][1],
            scheduled_at=options.scheduled_at if options else None,
        )
