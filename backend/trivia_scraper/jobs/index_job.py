"""Index job — discover a source's venues and schedule one detail job per venue.

States: started -> fetching -> scheduling -> completed, or failed.

A run counts as successful once the listing has been fetched and parsed,
whatever later happens to individual detail jobs. A listing that cannot be
fetched, cannot be parsed, or is empty fails the run and schedules nothing.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from trivia_scraper.errors import ExtractError, error_payload
from trivia_scraper.models.source import Source
from trivia_scraper.scrapers.base import BaseExtractor
from trivia_scraper.services.http_client import FetchClient
from trivia_scraper.services.rate_limiter import RateLimiter
from trivia_scraper.services.retry import RetryPolicy
from trivia_scraper.services.run_recorder import RunOutcome, RunRecorder
from trivia_scraper.tasks.job_queue import EnqueueOptions, JobSpec

logger = logging.getLogger(__name__)


class IndexState(str, enum.Enum):
    STARTED = "started"
    FETCHING = "fetching"
    SCHEDULING = "scheduling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class IndexJobOptions:
    limit: int | None = None
    force_refresh_images: bool = False
    force_update: bool = False

    def as_metadata(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "force_refresh_images": self.force_refresh_images,
            "force_update": self.force_update,
        }


@dataclass
class IndexResult:
    run_id: uuid.UUID
    state: IndexState
    total_items_found: int = 0
    items_scheduled: int = 0
    enqueue_failures: int = 0
    limited: bool = False
    error: dict[str, Any] | None = None
    windows: dict[int, int] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.state is IndexState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "state": self.state.value,
            "total_items_found": self.total_items_found,
            "items_scheduled": self.items_scheduled,
            "enqueue_failures": self.enqueue_failures,
            "limited": self.limited,
            "error": self.error,
        }


class IndexJob:
    def __init__(
        self,
        extractor: BaseExtractor,
        recorder: RunRecorder,
        rate_limiter: RateLimiter,
        client: FetchClient,
        retry_policy: RetryPolicy | None = None,
    ):
        self.extractor = extractor
        self.recorder = recorder
        self.rate_limiter = rate_limiter
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    def run(self, source: Source, options: IndexJobOptions | None = None) -> IndexResult:
        options = options or IndexJobOptions()
        slug = source.slug

        run_id = self.recorder.create_run(source.id, metadata=options.as_metadata())
        logger.info(f"[{slug}] Index job {IndexState.STARTED.value}, run {run_id}")

        logger.info(f"[{slug}] Index job {IndexState.FETCHING.value} listing")
        try:
            items = self.extractor.fetch_index(self.client)
            if not items:
                raise ExtractError(f"No venues found for {slug}")
        except Exception as e:
            error = error_payload(e)
            logger.error(f"[{slug}] Index job {IndexState.FAILED.value}: {error}")
            self.recorder.complete_run(run_id, RunOutcome(success=False, error=error))
            return IndexResult(run_id=run_id, state=IndexState.FAILED, error=error)

        total = len(items)
        logger.info(f"[{slug}] Discovered {total} venues")

        limited = options.limit is not None and options.limit < total
        if options.limit is not None:
            items = items[: max(options.limit, 0)]
            logger.info(
                f"[{slug}] LIMITED RUN: scheduling {len(items)} of {total} discovered venues (limit={options.limit})"
            )

        logger.info(f"[{slug}] Index job {IndexState.SCHEDULING.value} {len(items)} detail jobs")
        schedule = self.rate_limiter.schedule(
            items,
            self._detail_job_builder(source, run_id, options),
            label=slug,
        )

        outcome = RunOutcome(
            success=True,
            total_items_found=total,
            items_processed=schedule.enqueued,
            metadata={
                "limited": limited,
                "enqueue_failures": schedule.failed,
                "windows": {str(hour): count for hour, count in schedule.windows.items()},
            },
        )
        self.recorder.complete_run(run_id, outcome)
        logger.info(
            f"[{slug}] Index job {IndexState.COMPLETED.value}: found={total} "
            f"scheduled={schedule.enqueued} enqueue_failures={schedule.failed}"
        )

        return IndexResult(
            run_id=run_id,
            state=IndexState.COMPLETED,
            total_items_found=total,
            items_scheduled=schedule.enqueued,
            enqueue_failures=schedule.failed,
            limited=limited,
            windows=dict(schedule.windows),
        )

    def _detail_job_builder(self, source: Source, run_id: uuid.UUID, options: IndexJobOptions):
        def build(item: dict) -> JobSpec:
            return JobSpec(
                job_type="detail",
                args={
                    "source_id": str(source.id),
                    "source_slug": source.slug,
                    "scrape_run_id": str(run_id),
                    "item": item,
                    "force_refresh_images": options.force_refresh_images,
                    "force_update": options.force_update,
                },
                options=EnqueueOptions(max_attempts=self.retry_policy.max_attempts),
            )
        return build
