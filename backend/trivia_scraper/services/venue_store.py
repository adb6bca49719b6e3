"""Find-or-create upserts for venues, events and performers, keyed by natural keys.

Natural keys:
    Venue        (name, address), then case-insensitive name + coordinates
    Event        (venue_id, day_of_week)
    EventSource  (source_id, normalized source_url), then (event_id, source_id)
    Performer    (name, source_id)
    ImageRecord  (owner_type, owner_id, normalized_filename)

EventSource.last_seen_at is assigned on every ``process_event`` call, whether
or not any other field changed.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable
from urllib.parse import urlsplit, urlunsplit

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trivia_scraper.errors import UpsertError
from trivia_scraper.models.base import as_utc, utcnow
from trivia_scraper.models.event import Event, EventSource
from trivia_scraper.models.image_record import ImageRecord
from trivia_scraper.models.performer import Performer
from trivia_scraper.models.source import Source
from trivia_scraper.models.venue import Venue
from trivia_scraper.services.image_store import OwnerRef

logger = logging.getLogger(__name__)

COORDINATE_TOLERANCE = 0.0001  # ~11m

VENUE_FIELDS = ("postcode", "phone", "website", "facebook", "instagram", "latitude", "longitude")
EVENT_FIELDS = ("name", "start_time", "frequency", "fee_text", "description", "hero_image_url")


def normalize_source_url(url: str) -> str:
    """Canonical form of a per-venue URL: no fragment, lowercase host, no trailing slash."""
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path.rstrip("/"), parts.query, ""))


class VenueStore:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    # --- Sources ----------------------------------------------------------

    def get_source(self, source_id) -> Source | None:
        return self.db.get(Source, source_id)

    def get_source_by_slug(self, slug: str) -> Source | None:
        return self.db.execute(select(Source).where(Source.slug == slug)).scalar_one_or_none()

    # --- Venues -----------------------------------------------------------

    def find_or_create_venue(self, attrs: dict[str, Any]) -> Venue:
        name = (attrs.get("name") or "").strip()
        address = (attrs.get("address") or "").strip()
        if not name or not address:
            raise UpsertError("Venue requires name and address", attrs=attrs)

        def upsert() -> Venue:
            venue = self._find_venue(name, address, attrs.get("latitude"), attrs.get("longitude"))
            if venue is None:
                venue = Venue(name=name, address=address)
                self.db.add(venue)
                logger.info(f"Creating venue '{name}' at {address}")
            for key in VENUE_FIELDS:
                value = attrs.get(key)
                if value is not None:
                    setattr(venue, key, value)
            if attrs.get("google_place_id"):
                venue.google_place_id = attrs["google_place_id"]
            self.db.commit()
            return venue

        return self._with_conflict_retry(upsert, "venue", attrs)

    def _find_venue(self, name: str, address: str, latitude, longitude) -> Venue | None:
        venue = self.db.execute(
            select(Venue).where(Venue.name == name, Venue.address == address)
        ).scalar_one_or_none()
        if venue is not None or latitude is None or longitude is None:
            return venue

        return self.db.execute(
            select(Venue).where(
                func.lower(Venue.name) == name.lower(),
                Venue.latitude.between(latitude - COORDINATE_TOLERANCE, latitude + COORDINATE_TOLERANCE),
                Venue.longitude.between(longitude - COORDINATE_TOLERANCE, longitude + COORDINATE_TOLERANCE),
            ).limit(1)
        ).scalar_one_or_none()

    def mark_place_images_updated(self, venue: Venue, place_id: str | None, when: datetime) -> None:
        if place_id:
            venue.google_place_id = place_id
        venue.google_place_images_updated_at = when
        self._commit("place images", {"venue_id": str(venue.id)})

    # --- Events -----------------------------------------------------------

    def process_event(
        self,
        venue: Venue,
        event_attrs: dict[str, Any],
        source_id,
        performer_id=None,
    ) -> Event:
        """Find or create the event and its event source, always refreshing last_seen_at."""
        if not event_attrs.get("source_url"):
            raise UpsertError("Event requires source_url", attrs=event_attrs)
        if not event_attrs.get("start_time"):
            raise UpsertError("Event requires start_time", attrs=event_attrs)

        source_url = normalize_source_url(event_attrs["source_url"])

        def upsert() -> Event:
            event_source = self.find_event_source(source_id, source_url)
            event = event_source.event if event_source else None

            if event is None:
                event = self.db.execute(
                    select(Event).where(
                        Event.venue_id == venue.id,
                        Event.day_of_week == event_attrs.get("day_of_week"),
                    )
                ).scalar_one_or_none()
            if event is None:
                event = Event(venue_id=venue.id, day_of_week=event_attrs.get("day_of_week"))
                self.db.add(event)
                logger.info(f"Creating event for venue '{venue.name}' on day {event_attrs.get('day_of_week')}")

            event.venue_id = venue.id
            event.day_of_week = event_attrs.get("day_of_week")
            for key in EVENT_FIELDS:
                value = event_attrs.get(key)
                if value is not None:
                    setattr(event, key, value)
            if not event.name:
                event.name = venue.name
            if performer_id is not None:
                event.performer_id = performer_id
            self.db.flush()

            if event_source is None:
                event_source = self.db.execute(
                    select(EventSource).where(
                        EventSource.event_id == event.id,
                        EventSource.source_id == source_id,
                    )
                ).scalar_one_or_none()
            if event_source is None:
                event_source = EventSource(event_id=event.id, source_id=source_id)
                self.db.add(event_source)

            event_source.source_url = source_url
            event_source.extra_data = event_attrs.get("extra_data") or {}
            self._touch(event_source)
            self.db.commit()
            return event

        return self._with_conflict_retry(upsert, "event", event_attrs)

    def find_event_source(self, source_id, source_url: str) -> EventSource | None:
        return self.db.execute(
            select(EventSource).where(
                EventSource.source_id == source_id,
                EventSource.source_url == normalize_source_url(source_url),
            )
        ).scalar_one_or_none()

    def touch_event_source(self, event_source: EventSource) -> EventSource:
        """Refresh last_seen_at without touching anything else."""
        self._touch(event_source)
        self.db.commit()
        return event_source

    def _touch(self, event_source: EventSource) -> None:
        now = self.clock()
        previous = as_utc(event_source.last_seen_at)
        # Strictly increasing per record, even with a coarse clock
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        event_source.last_seen_at = now

    def recently_seen(self, event_source: EventSource, within_days: int) -> bool:
        last_seen = as_utc(event_source.last_seen_at)
        return last_seen is not None and last_seen >= self.clock() - timedelta(days=within_days)

    # --- Performers -------------------------------------------------------

    def find_or_create_performer(self, name: str, source_id, profile_image_url: str | None = None) -> Performer:
        name = (name or "").strip()
        if not name:
            raise UpsertError("Performer requires a name", attrs={"source_id": str(source_id)})

        def upsert() -> Performer:
            performer = self.db.execute(
                select(Performer).where(Performer.name == name, Performer.source_id == source_id)
            ).scalar_one_or_none()
            if performer is None:
                performer = Performer(name=name, source_id=source_id)
                self.db.add(performer)
                logger.info(f"Creating performer '{name}'")
            if profile_image_url:
                performer.profile_image_url = profile_image_url
            self.db.commit()
            return performer

        return self._with_conflict_retry(upsert, "performer", {"name": name, "source_id": str(source_id)})

    def set_performer_image(self, performer: Performer, record: ImageRecord) -> None:
        performer.profile_image_path = record.stored_path
        self._commit("performer image", {"performer_id": str(performer.id)})

    # --- Image records ----------------------------------------------------

    def get_image_record(self, owner: OwnerRef, filename: str) -> ImageRecord | None:
        return self.db.execute(
            select(ImageRecord).where(
                ImageRecord.owner_type == owner.owner_type,
                ImageRecord.owner_id == str(owner.owner_id),
                ImageRecord.normalized_filename == filename,
            )
        ).scalar_one_or_none()

    def list_image_records(self, owner: OwnerRef) -> list[ImageRecord]:
        return list(self.db.execute(
            select(ImageRecord).where(
                ImageRecord.owner_type == owner.owner_type,
                ImageRecord.owner_id == str(owner.owner_id),
                ImageRecord.role == owner.role,
            ).order_by(ImageRecord.normalized_filename)
        ).scalars())

    def save_image_record(
        self,
        owner: OwnerRef,
        source_url: str,
        filename: str,
        stored_path: str,
        fetched_at: datetime,
    ) -> ImageRecord:
        def upsert() -> ImageRecord:
            record = self.get_image_record(owner, filename)
            if record is None:
                record = ImageRecord(
                    owner_type=owner.owner_type,
                    owner_id=str(owner.owner_id),
                    normalized_filename=filename,
                )
                self.db.add(record)
            record.role = owner.role
            record.source_url = source_url
            record.stored_path = stored_path
            record.fetched_at = fetched_at
            self.db.commit()
            return record

        return self._with_conflict_retry(upsert, "image", {"owner": str(owner), "filename": filename})

    # --- Helpers ----------------------------------------------------------

    def _with_conflict_retry(self, upsert: Callable, entity: str, attrs: dict[str, Any]):
        """Run an upsert; on a unique-key race re-read once so concurrent writers converge."""
        for attempt in range(2):
            try:
                return upsert()
            except IntegrityError as e:
                self.db.rollback()
                if attempt == 0:
                    logger.info(f"Conflict creating {entity}, retrying lookup: {e.orig}")
                    continue
                raise UpsertError(f"Constraint violation upserting {entity}: {e.orig}", attrs=attrs) from e
            except SQLAlchemyError as e:
                self.db.rollback()
                raise UpsertError(f"Failed to upsert {entity}: {e}", attrs=attrs) from e

    def _commit(self, entity: str, attrs: dict[str, Any]) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise UpsertError(f"Failed to update {entity}: {e}", attrs=attrs) from e
