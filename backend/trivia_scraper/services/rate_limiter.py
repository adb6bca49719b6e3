"""Rate-limited scheduling of detail jobs.

Spreads a batch of jobs over time so that source sites and the downstream
geocoding/image APIs called by detail jobs are not flooded:

- direct: job i runs i * min_spacing seconds from now (small batches)
- hourly_capped: at most max_per_hour jobs start in any hour window; jobs
  inside a window are spaced floor(3600 / max_per_hour) seconds apart

Every item produces exactly one enqueue attempt, in input order. A failed
enqueue is logged and counted; the rest of the batch is still scheduled.
All state is local to one ``schedule`` call.
"""

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, TypeVar

from trivia_scraper.config import get_settings
from trivia_scraper.models.base import utcnow
from trivia_scraper.tasks.job_queue import JobHandle, JobQueue, JobSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECONDS_PER_HOUR = 3600


class ScheduleMode(str, enum.Enum):
    DIRECT = "direct"
    HOURLY_CAPPED = "hourly_capped"


@dataclass(frozen=True)
class SchedulePolicy:
    mode: ScheduleMode = ScheduleMode.DIRECT
    max_per_hour: int = 50
    min_spacing: int = 1

    def __post_init__(self):
        if self.max_per_hour < 1:
            raise ValueError(f"max_per_hour must be at least 1, got {self.max_per_hour}")
        if self.min_spacing < 0:
            raise ValueError(f"min_spacing must not be negative, got {self.min_spacing}")

    def delay_for(self, index: int) -> int:
        """Seconds from batch start until job ``index`` should run."""
        if self.mode is ScheduleMode.DIRECT:
            return index * self.min_spacing
        hour, position = divmod(index, self.max_per_hour)
        return hour * SECONDS_PER_HOUR + position * (SECONDS_PER_HOUR // self.max_per_hour)


@dataclass
class ScheduleResult:
    total: int = 0
    enqueued: int = 0
    failed: int = 0
    windows: Counter = field(default_factory=Counter)  # hour offset -> jobs scheduled
    handles: list[JobHandle] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class RateLimiter:
    def __init__(
        self,
        queue: JobQueue,
        clock: Callable[[], datetime] = utcnow,
        max_per_hour: int | None = None,
        min_spacing: int | None = None,
        capped_threshold: int | None = None,
    ):
        settings = get_settings()
        self.queue = queue
        self.clock = clock
        self.max_per_hour = max_per_hour or settings.max_jobs_per_hour
        self.min_spacing = min_spacing if min_spacing is not None else settings.job_delay_interval
        self.capped_threshold = capped_threshold or settings.hourly_cap_threshold
        # Fail on a bad configuration here, not halfway through a batch
        SchedulePolicy(max_per_hour=self.max_per_hour, min_spacing=self.min_spacing)

    def policy_for(self, count: int) -> SchedulePolicy:
        """Direct scheduling for small batches, hourly-capped for large ones."""
        mode = ScheduleMode.HOURLY_CAPPED if count >= self.capped_threshold else ScheduleMode.DIRECT
        return SchedulePolicy(mode=mode, max_per_hour=self.max_per_hour, min_spacing=self.min_spacing)

    def schedule(
        self,
        items: Iterable[T],
        job_builder: Callable[[T], JobSpec],
        policy: SchedulePolicy | None = None,
        label: str = "batch",
    ) -> ScheduleResult:
        items = list(items)
        policy = policy or self.policy_for(len(items))
        result = ScheduleResult(total=len(items))
        start = self.clock()

        if policy.mode is ScheduleMode.HOURLY_CAPPED:
            hours = -(-len(items) // policy.max_per_hour)
            logger.info(
                f"[{label}] Distributing {len(items)} jobs across {hours} hours (max {policy.max_per_hour}/hour)"
            )
        else:
            logger.info(f"[{label}] Scheduling {len(items)} jobs {policy.min_spacing}s apart")

        for index, item in enumerate(items):
            delay = policy.delay_for(index)
            scheduled_at = start + timedelta(seconds=delay)

            try:
                spec = job_builder(item)
                spec.options.scheduled_at = scheduled_at
                handle = self.queue.enqueue_spec(spec)
            except Exception as e:
                result.failed += 1
                result.errors.append(f"item {index}: {e}")
                logger.error(f"[{label}] Failed to schedule job {index + 1}/{len(items)}: {e}")
                continue

            result.enqueued += 1
            result.windows[delay // SECONDS_PER_HOUR] += 1
            result.handles.append(handle)

            if index % 50 == 0 or index == len(items) - 1:
                logger.info(
                    f"[{label}] Scheduled job {index + 1}/{len(items)} for hour +{delay // SECONDS_PER_HOUR} "
                    f"at {scheduled_at:%H:%M:%S}"
                )

        logger.info(f"[{label}] Scheduled {result.enqueued}/{result.total} jobs ({result.failed} failed)")
        return result
