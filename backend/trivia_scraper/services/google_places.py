"""Google Places API client: place lookup and photo URLs."""

import logging
from urllib.parse import urlencode

from trivia_scraper.config import get_settings
from trivia_scraper.services.http_client import FetchClient

logger = logging.getLogger(__name__)


class GooglePlacesClient:
    def __init__(self, client: FetchClient, api_key: str | None = None):
        settings = get_settings()
        self.client = client
        self.api_key = api_key or settings.google_api_key
        self.base_url = settings.google_places_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def find_place_id(self, name: str, address: str) -> str | None:
        data = self.client.fetch_json(
            f"{self.base_url}/findplacefromtext/json",
            params={
                "input": f"{name}, {address}",
                "inputtype": "textquery",
                "fields": "place_id",
                "key": self.api_key,
            },
        )
        candidates = (data.get("candidates") or []) if isinstance(data, dict) else []
        if not candidates:
            logger.info(f"No Google place found for '{name}, {address}'")
            return None
        return candidates[0].get("place_id")

    def photo_urls(self, place_id: str, max_images: int = 5, max_width: int = 1200) -> list[str]:
        data = self.client.fetch_json(
            f"{self.base_url}/details/json",
            params={"place_id": place_id, "fields": "photos", "key": self.api_key},
        )
        result = (data.get("result") or {}) if isinstance(data, dict) else {}
        references = [p["photo_reference"] for p in result.get("photos") or [] if p.get("photo_reference")]
        return [self.photo_url(ref, max_width) for ref in references[:max_images]]

    def photo_url(self, photo_reference: str, max_width: int = 1200) -> str:
        # No key here: this URL is stored and logged. Pass auth_params when downloading.
        query = urlencode({"maxwidth": max_width, "photo_reference": photo_reference})
        return f"{self.base_url}/photo?{query}"

    @property
    def auth_params(self) -> dict[str, str]:
        return {"key": self.api_key} if self.api_key else {}
