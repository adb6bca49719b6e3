"""Detail job — fetch one venue page, extract it, upsert it, refresh its images.

States: started -> fetching -> extracting -> upserting -> images -> completed,
or failed / skipped.

Retryable fetch errors propagate so the task wrapper can reschedule the job.
Terminal errors (missing fields, unparseable pages, upsert failures) are
logged with enough context to find the venue and end the job as failed.
Image problems never fail the job.
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from trivia_scraper.config import get_settings
from trivia_scraper.errors import ImageError, ScraperError, UpsertError, error_payload
from trivia_scraper.models.event import Event
from trivia_scraper.models.performer import Performer
from trivia_scraper.models.venue import Venue
from trivia_scraper.scrapers.base import BaseExtractor, RawVenueRecord
from trivia_scraper.services.geocoder import Geocoder
from trivia_scraper.services.http_client import FetchClient
from trivia_scraper.services.image_refresh import ImageRefresher
from trivia_scraper.services.image_store import OwnerRef
from trivia_scraper.services.place_images import PlaceImageRefresher
from trivia_scraper.services.retry import RetryPolicy
from trivia_scraper.services.venue_store import VenueStore

logger = logging.getLogger(__name__)


class DetailState(str, enum.Enum):
    STARTED = "started"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    UPSERTING = "upserting"
    IMAGES = "images"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DetailJobContext:
    """Everything a detail job needs, passed explicitly from the index job."""

    source_id: str
    source_slug: str
    item: dict[str, Any]
    scrape_run_id: str | None = None
    force_refresh_images: bool = False
    force_update: bool = False
    attempt: int = 0

    @property
    def label(self) -> str:
        return f"[{self.source_slug}] {self.item.get('title') or self.item.get('url') or '?'}"


@dataclass
class DetailResult:
    state: DetailState
    source_url: str | None = None
    venue_id: uuid.UUID | None = None
    event_id: uuid.UUID | None = None
    images_stored: int = 0
    error: dict[str, Any] | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "source_url": self.source_url,
            "venue_id": str(self.venue_id) if self.venue_id else None,
            "event_id": str(self.event_id) if self.event_id else None,
            "images_stored": self.images_stored,
            "error": self.error,
            "warnings": self.warnings,
        }


class DetailJob:
    def __init__(
        self,
        extractor: BaseExtractor,
        store: VenueStore,
        client: FetchClient,
        images: ImageRefresher | None = None,
        geocoder: Geocoder | None = None,
        place_images: PlaceImageRefresher | None = None,
        retry_policy: RetryPolicy | None = None,
        skip_within_days: int | None = None,
    ):
        self.extractor = extractor
        self.store = store
        self.client = client
        self.images = images
        self.geocoder = geocoder
        self.place_images = place_images
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.skip_within_days = (
            skip_within_days if skip_within_days is not None else get_settings().skip_if_updated_within_days
        )

    def run(self, ctx: DetailJobContext) -> DetailResult:
        source_id = uuid.UUID(ctx.source_id)
        url = ctx.item.get("url")
        logger.info(f"{ctx.label}: detail job {DetailState.STARTED.value} (attempt {ctx.attempt + 1})")

        skipped = self._skip_if_recent(ctx, source_id, url)
        if skipped is not None:
            return skipped

        try:
            logger.debug(f"{ctx.label}: {DetailState.FETCHING.value} {url}")
            content = self.extractor.fetch_content(ctx.item, self.client)
            logger.debug(f"{ctx.label}: {DetailState.EXTRACTING.value}")
            record = self.extractor.extract(content, ctx.item)
        except ScraperError as e:
            if self.retry_policy.is_retryable(e):
                logger.warning(f"{ctx.label}: retryable {e.kind} on attempt {ctx.attempt + 1}: {e}")
                raise
            return self._fail(ctx, url, e)

        try:
            venue, event, performer = self._upsert(ctx, record, source_id)
        except UpsertError as e:
            logger.error(f"{ctx.label}: upsert failed for {record.source_url}: {e} attrs={e.attrs}")
            return self._fail(ctx, record.source_url, e)

        result = DetailResult(
            state=DetailState.COMPLETED,
            source_url=record.source_url,
            venue_id=venue.id,
            event_id=event.id,
        )
        self._refresh_images(ctx, record, venue, event, performer, result)

        logger.info(
            f"{ctx.label}: detail job {DetailState.COMPLETED.value} "
            f"(venue={venue.id}, event={event.id}, images={result.images_stored})"
        )
        return result

    def _skip_if_recent(self, ctx: DetailJobContext, source_id: uuid.UUID, url: str | None) -> DetailResult | None:
        if ctx.force_update or not url:
            return None
        event_source = self.store.find_event_source(source_id, url)
        if event_source is None or not self.store.recently_seen(event_source, self.skip_within_days):
            return None
        self.store.touch_event_source(event_source)
        logger.info(f"{ctx.label}: seen within {self.skip_within_days} days, only refreshing last_seen_at")
        return DetailResult(state=DetailState.SKIPPED, source_url=url, event_id=event_source.event_id)

    def _fail(self, ctx: DetailJobContext, url: str | None, exc: ScraperError) -> DetailResult:
        error = error_payload(exc)
        logger.error(
            f"{ctx.label}: detail job {DetailState.FAILED.value} "
            f"(run={ctx.scrape_run_id}, url={url}): {error}"
        )
        return DetailResult(state=DetailState.FAILED, source_url=url, error=error)

    def _upsert(
        self, ctx: DetailJobContext, record: RawVenueRecord, source_id: uuid.UUID
    ) -> tuple[Venue, Event, Performer | None]:
        logger.debug(f"{ctx.label}: {DetailState.UPSERTING.value}")
        venue_attrs = record.venue_attrs()

        if (record.latitude is None or record.longitude is None) and self.geocoder and self.geocoder.enabled:
            geo = self.geocoder.geocode(record.address, record.title)
            if geo:
                venue_attrs.update(latitude=geo.latitude, longitude=geo.longitude, google_place_id=geo.place_id)
                if not venue_attrs.get("postcode"):
                    venue_attrs["postcode"] = geo.postcode

        venue = self.store.find_or_create_venue(venue_attrs)

        performer = None
        if record.performer:
            try:
                performer = self.store.find_or_create_performer(
                    record.performer.name, source_id, record.performer.profile_image_url
                )
            except UpsertError as e:
                logger.warning(f"{ctx.label}: skipping performer '{record.performer.name}': {e}")

        event = self.store.process_event(
            venue,
            record.event_attrs(),
            source_id,
            performer_id=performer.id if performer else None,
        )
        return venue, event, performer

    def _refresh_images(
        self,
        ctx: DetailJobContext,
        record: RawVenueRecord,
        venue: Venue,
        event: Event,
        performer: Performer | None,
        result: DetailResult,
    ) -> None:
        logger.debug(f"{ctx.label}: {DetailState.IMAGES.value}")
        force = ctx.force_refresh_images

        if self.images and record.hero_image_url:
            try:
                self.images.ensure_image(record.hero_image_url, OwnerRef("event", str(event.id), "hero"), force)
                result.images_stored += 1
            except (ImageError, UpsertError) as e:
                logger.warning(f"{ctx.label}: hero image failed: {e}")
                result.warnings.append(str(e))

        if self.images and performer and performer.profile_image_url:
            try:
                image = self.images.ensure_image(
                    performer.profile_image_url, OwnerRef("performer", str(performer.id), "profile"), force
                )
                self.store.set_performer_image(performer, image)
                result.images_stored += 1
            except (ImageError, UpsertError) as e:
                logger.warning(f"{ctx.label}: performer image failed: {e}")
                result.warnings.append(str(e))

        if self.place_images:
            try:
                result.images_stored += len(self.place_images.ensure_place_images(venue))
            except (ImageError, UpsertError) as e:
                logger.warning(f"{ctx.label}: place images failed: {e}")
                result.warnings.append(str(e))
