"""Geocoding service using the Google Geocoding API."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from trivia_scraper.config import get_settings
from trivia_scraper.errors import FetchError
from trivia_scraper.services.http_client import FetchClient

logger = logging.getLogger(__name__)


@dataclass
class GeoResult:
    """Result from geocoding operation."""

    latitude: float
    longitude: float
    formatted_address: str
    place_id: str | None = None
    postcode: str | None = None


def _extract_postcode(components: list[dict]) -> str | None:
    for component in components or []:
        if "postal_code" in component.get("types", []):
            return component.get("long_name")
    return None


class Geocoder:
    """
    Rate-limited geocoder for venue addresses.

    Requests are spaced at least ``rate_limit`` seconds apart within one
    worker process. The limit is per process, not global across workers.
    """

    def __init__(self, client: FetchClient, api_key: str | None = None, rate_limit: float | None = None):
        settings = get_settings()
        self.client = client
        self.api_key = api_key or settings.google_api_key
        self.rate_limit = rate_limit if rate_limit is not None else settings.geocode_rate_limit
        self.base_url = settings.google_geocode_url
        self.last_request_time = 0.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _wait_for_rate_limit(self) -> None:
        """Block until rate limit allows next request."""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.rate_limit:
            time.sleep(self.rate_limit - elapsed)
        self.last_request_time = time.time()

    def geocode(self, address: str, name: Optional[str] = None) -> Optional[GeoResult]:
        """
        Geocode a venue address.

        Args:
            address: Street address as listed by the source
            name: Optional venue name, prepended to improve accuracy

        Returns:
            GeoResult if found, None otherwise
        """
        if not self.enabled:
            logger.debug("No Google API key configured, skipping geocode")
            return None

        query = ", ".join(filter(None, [name, address]))
        self._wait_for_rate_limit()

        try:
            data = self.client.fetch_json(self.base_url, params={"address": query, "key": self.api_key})
        except FetchError as e:
            logger.error(f"Geocoding HTTP error for '{query}': {e}")
            return None

        status = data.get("status") if isinstance(data, dict) else None
        if status != "OK" or not data.get("results"):
            logger.debug(f"No geocoding results for '{query}' (status={status})")
            return None

        try:
            result = data["results"][0]
            location = result["geometry"]["location"]
            return GeoResult(
                latitude=float(location["lat"]),
                longitude=float(location["lng"]),
                formatted_address=result.get("formatted_address", ""),
                place_id=result.get("place_id"),
                postcode=_extract_postcode(result.get("address_components")),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Geocoding parse error for '{query}': {e}")
            return None
