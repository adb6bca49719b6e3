"""Google place photos for venues, refreshed on a staleness window.

Independent of the hero-image force-refresh flag: the full photo set is
re-fetched only when it has never been fetched or the last fetch is older
than ``place_image_refresh_days`` (90 by default).
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from trivia_scraper.config import get_settings
from trivia_scraper.errors import FetchError, ImageError
from trivia_scraper.models.base import as_utc, utcnow
from trivia_scraper.models.image_record import ImageRecord
from trivia_scraper.models.venue import Venue
from trivia_scraper.services.google_places import GooglePlacesClient
from trivia_scraper.services.image_refresh import ImageRefresher
from trivia_scraper.services.image_store import OwnerRef

logger = logging.getLogger(__name__)


class PlaceImageRefresher:
    def __init__(
        self,
        places: GooglePlacesClient,
        images: ImageRefresher,
        store,
        clock: Callable[[], datetime] = utcnow,
        refresh_days: int | None = None,
        max_images: int | None = None,
    ):
        settings = get_settings()
        self.places = places
        self.images = images
        self.store = store
        self.clock = clock
        self.refresh_days = refresh_days if refresh_days is not None else settings.place_image_refresh_days
        self.max_images = max_images if max_images is not None else settings.max_place_images

    def needs_refresh(self, venue: Venue) -> bool:
        updated_at = as_utc(venue.google_place_images_updated_at)
        return updated_at is None or updated_at < self.clock() - timedelta(days=self.refresh_days)

    def ensure_place_images(self, venue: Venue) -> list[ImageRecord]:
        if not self.places.enabled:
            return []
        if not self.needs_refresh(venue):
            logger.debug(f"Place images for '{venue.name}' are fresh, skipping")
            return []

        try:
            place_id = venue.google_place_id or self.places.find_place_id(venue.name, venue.address)
            if not place_id:
                return []
            urls = self.places.photo_urls(place_id, max_images=self.max_images)
        except FetchError as e:
            logger.warning(f"Google Places lookup failed for '{venue.name}': {e}")
            return []

        owner = OwnerRef("venue", str(venue.id), role="place_photo")
        records = []
        for position, url in enumerate(urls, start=1):
            try:
                records.append(
                    self.images.ensure_image(
                        url,
                        owner,
                        force_refresh=True,
                        filename=f"{place_id}-{position}.jpg",
                        params=self.places.auth_params,
                    )
                )
            except ImageError as e:
                logger.warning(f"Place photo {position} for '{venue.name}' failed: {e}")

        self.store.mark_place_images_updated(venue, place_id, self.clock())
        logger.info(f"Stored {len(records)}/{len(urls)} place photos for '{venue.name}'")
        return records
