"""Scrape orchestration tasks."""

import dataclasses
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from trivia_scraper.tasks.celery_app import celery_app
from trivia_scraper.config import get_settings
from trivia_scraper.errors import SchedulingError, ScraperError, UnknownSourceError, error_payload
from trivia_scraper.jobs.detail_job import DetailJob, DetailJobContext, DetailResult, DetailState
from trivia_scraper.jobs.index_job import IndexJob, IndexJobOptions
from trivia_scraper.models.base import get_session
from trivia_scraper.models.source import Source
from trivia_scraper.scrapers.registry import build_extractor
from trivia_scraper.services.geocoder import Geocoder
from trivia_scraper.services.google_places import GooglePlacesClient
from trivia_scraper.services.http_client import FetchClient
from trivia_scraper.services.image_refresh import ImageRefresher
from trivia_scraper.services.image_store import LocalImageStore
from trivia_scraper.services.place_images import PlaceImageRefresher
from trivia_scraper.services.rate_limiter import RateLimiter
from trivia_scraper.services.retry import RetryPolicy
from trivia_scraper.services.run_recorder import RunRecorder
from trivia_scraper.services.venue_store import VenueStore
from trivia_scraper.tasks.job_queue import CeleryJobQueue, DuplicateJobError, EnqueueOptions, JobQueue

import trivia_scraper.scrapers  # noqa: F401  registers extractors

logger = logging.getLogger(__name__)


def retry_policy_for(max_attempts: int | None = None) -> RetryPolicy:
    policy = RetryPolicy.from_settings()
    if max_attempts:
        policy = dataclasses.replace(policy, max_attempts=max_attempts)
    return policy


def build_index_job(source: Source, client: FetchClient, queue: JobQueue, max_attempts: int | None = None) -> IndexJob:
    """Wire an index job for ``source`` with the default recorder and rate limiter."""
    return IndexJob(
        extractor=build_extractor(source.slug, source.base_url),
        recorder=RunRecorder(),
        rate_limiter=RateLimiter(queue),
        client=client,
        retry_policy=retry_policy_for(max_attempts),
    )


def build_detail_job(ctx: DetailJobContext, db: Session, client: FetchClient, policy: RetryPolicy) -> DetailJob:
    """Wire a detail job with image, geocoding and place-photo services."""
    store = VenueStore(db)
    source = store.get_source(uuid.UUID(ctx.source_id))
    images = ImageRefresher(LocalImageStore(get_settings().image_storage_dir), store, client)
    return DetailJob(
        extractor=build_extractor(ctx.source_slug, source.base_url if source else None),
        store=store,
        client=client,
        images=images,
        geocoder=Geocoder(client),
        place_images=PlaceImageRefresher(GooglePlacesClient(client), images, store),
        retry_policy=policy,
    )


def enqueue_index_job(
    queue: JobQueue,
    source_slug: str,
    limit: int | None = None,
    force_refresh_images: bool = False,
    force_update: bool = False,
):
    """Enqueue one index job, unique per source within the configured window."""
    args = {
        "source_slug": source_slug,
        "limit": limit,
        "force_refresh_images": force_refresh_images,
        "force_update": force_update,
    }
    options = EnqueueOptions(
        max_attempts=1,
        unique_key=source_slug,
        unique_window=get_settings().index_unique_window,
    )
    return queue.enqueue("index", args, options)


@celery_app.task(name="trivia_scraper.tasks.scrape_tasks.dispatch_daily_index_jobs")
def dispatch_daily_index_jobs():
    """Enqueue one index job per active source."""
    db = get_session()
    try:
        sources = db.execute(
            select(Source).where(Source.is_active == True)  # noqa: E712
        ).scalars().all()

        queue = CeleryJobQueue(celery_app)
        dispatched = 0
        for source in sources:
            try:
                enqueue_index_job(queue, source.slug)
                dispatched += 1
            except DuplicateJobError as e:
                logger.info(f"[{source.slug}] {e}")
            except SchedulingError as e:
                logger.error(f"[{source.slug}] Failed to dispatch index job: {e}")

        logger.info(f"Dispatched {dispatched} index jobs")
        return {"dispatched": dispatched}

    finally:
        db.close()


@celery_app.task(name="trivia_scraper.tasks.scrape_tasks.run_index_job")
def run_index_job(
    source_slug: str,
    limit: int | None = None,
    force_refresh_images: bool = False,
    force_update: bool = False,
    max_attempts: int | None = None,
):
    """Discover a source's venues and schedule their detail jobs.

    ``max_attempts`` is the index job's own budget, injected by the queue.
    Index jobs are not retried; detail jobs take theirs from settings.
    """
    db = get_session()
    client = FetchClient()
    try:
        source = VenueStore(db).get_source_by_slug(source_slug)
        if source is None:
            error = error_payload(UnknownSourceError(f"Source {source_slug} not found"))
            logger.error(f"[{source_slug}] {error['message']}")
            return {"state": "failed", "error": error}

        job = build_index_job(source, client, CeleryJobQueue(celery_app))
        options = IndexJobOptions(
            limit=limit,
            force_refresh_images=force_refresh_images,
            force_update=force_update,
        )
        return job.run(source, options).to_dict()

    finally:
        client.close()
        db.close()


@celery_app.task(bind=True, name="trivia_scraper.tasks.scrape_tasks.run_detail_job")
def run_detail_job(
    self,
    source_id: str,
    source_slug: str,
    item: dict,
    scrape_run_id: str | None = None,
    force_refresh_images: bool = False,
    force_update: bool = False,
    max_attempts: int | None = None,
):
    """Process one venue; retryable failures are rescheduled with backoff."""
    policy = retry_policy_for(max_attempts)
    ctx = DetailJobContext(
        source_id=source_id,
        source_slug=source_slug,
        item=item,
        scrape_run_id=scrape_run_id,
        force_refresh_images=force_refresh_images,
        force_update=force_update,
        attempt=self.request.retries,
    )

    db = get_session()
    client = FetchClient()
    try:
        job = build_detail_job(ctx, db, client, policy)
        try:
            return job.run(ctx).to_dict()
        except ScraperError as e:
            if policy.should_retry(e, ctx.attempt):
                countdown = policy.delay_for(ctx.attempt)
                logger.warning(f"{ctx.label}: retrying in {countdown}s ({ctx.attempt + 1}/{policy.max_attempts})")
                raise self.retry(exc=e, countdown=countdown, max_retries=policy.max_attempts - 1)
            logger.error(f"{ctx.label}: giving up after {ctx.attempt + 1} attempts: {e}")
            return DetailResult(
                state=DetailState.FAILED,
                source_url=item.get("url"),
                error=error_payload(e),
            ).to_dict()

    finally:
        client.close()
        db.close()
