"""Base extractor abstract class and the normalized record it produces."""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

from trivia_scraper.errors import MissingRequiredField
from trivia_scraper.scrapers.time_parser import parse_time_text
from trivia_scraper.services.http_client import FetchClient

logger = logging.getLogger(__name__)


@dataclass
class PerformerRecord:
    name: str
    profile_image_url: str | None = None


@dataclass
class RawVenueRecord:
    """Normalized venue/event data extracted from one source page.

    Transient: never persisted directly, it is the input to the upsert step.
    ``source_url`` is the natural key used to find the existing event source.
    """

    title: str
    address: str
    time_text: str
    source_url: str
    day_of_week: int | None = None
    start_time: str | None = None
    raw_title: str | None = None
    frequency: str = "weekly"
    fee_text: str | None = None
    phone: str | None = None
    website: str | None = None
    facebook: str | None = None
    instagram: str | None = None
    description: str | None = None
    hero_image_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    postcode: str | None = None
    on_break: bool = False
    performer: PerformerRecord | None = None
    extra_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("title", "address", "time_text", "source_url"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise MissingRequiredField(name, source_url=self.source_url or None)
        if self.raw_title is None:
            self.raw_title = self.title
        if self.start_time is None:
            schedule = parse_time_text(self.time_text, context=self.source_url)
            self.start_time = schedule.start_time
            if self.day_of_week is None:
                self.day_of_week = schedule.day_of_week

    def venue_attrs(self) -> dict[str, Any]:
        return {
            "name": self.title,
            "address": self.address,
            "postcode": self.postcode,
            "phone": self.phone,
            "website": self.website,
            "facebook": self.facebook,
            "instagram": self.instagram,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    def event_attrs(self) -> dict[str, Any]:
        return {
            "raw_title": self.raw_title,
            "name": self.title,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "frequency": self.frequency,
            "fee_text": self.fee_text,
            "description": self.description,
            "hero_image_url": self.hero_image_url,
            "source_url": self.source_url,
            "extra_data": dict(self.extra_data, on_break=self.on_break, time_text=self.time_text),
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class BaseExtractor(ABC):
    """Abstract base class for per-source extractors.

    Subclasses must implement:
        fetch_index(client) -> list[dict]       : discover listing items (each with url + title)
        extract(content, item) -> RawVenueRecord: parse one fetched detail page

    Optional fields that are missing resolve to None. Only missing required
    fields (name, address, url, schedule text) raise ``MissingRequiredField``.
    """

    slug: str = ""
    name: str = ""
    default_base_url: str = ""

    def __init__(self, base_url: str | None = None):
        self.base_url = (base_url or self.default_base_url).rstrip("/")

    @abstractmethod
    def fetch_index(self, client: FetchClient) -> list[dict]:
        """Fetch the source's venue listing. Raises on total failure."""
        ...

    @abstractmethod
    def extract(self, content: str, item: dict) -> RawVenueRecord:
        """Parse fetched detail content, merged with coarse index fields from ``item``."""
        ...

    def fetch_content(self, item: dict, client: FetchClient) -> str:
        """Fetch the raw per-venue page for an index item."""
        url = item.get("url")
        if not url:
            raise MissingRequiredField("url")
        return client.fetch_text(url)

    def fetch_detail(self, item: dict, client: FetchClient) -> RawVenueRecord:
        return self.extract(self.fetch_content(item, client), item)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.slug} {self.base_url}>"
