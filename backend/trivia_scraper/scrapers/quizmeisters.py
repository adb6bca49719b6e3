"""Quizmeisters extractor.

Index: venue locations come from the StoreRocket JSON API used by the
store-locator widget on quizmeisters.com ({"results": {"locations": [...]}}).
Each location carries name, address, phone, coordinates and the trivia night
in custom_fields.trivia_night (or a "trivia"/"quiz" entry in fields).
Detail: the venue page adds description, hero image, social links, phone,
an on-break marker and the resident quizmaster.
"""

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from trivia_scraper.errors import MissingRequiredField, ParseError, UnsupportedFormat
from trivia_scraper.scrapers.base import BaseExtractor, PerformerRecord, RawVenueRecord
from trivia_scraper.scrapers.registry import register_extractor
from trivia_scraper.services.http_client import FetchClient

logger = logging.getLogger(__name__)

LOCATIONS_API = "https://storerocket.io/api/user/kDJ3BbK4mn/locations"

LOREM_IPSUM_PREFIX = "Lorem ipsum dolor sit amet, consectetur adipiscing elit"

_PHONE_RE = re.compile(r"^\+?[\d\s-]{8,}$")


def trivia_time_text(location: dict) -> str | None:
    """Find the schedule text for a StoreRocket location."""
    custom_fields = location.get("custom_fields")
    if isinstance(custom_fields, dict):
        value = custom_fields.get("trivia_night")
        if isinstance(value, str) and value.strip():
            return value.strip()

    for entry in location.get("fields") or []:
        if not isinstance(entry, dict):
            continue
        name = str(entry.get("name") or "").lower()
        value = entry.get("value")
        if ("trivia" in name or "quiz" in name) and isinstance(value, str) and value.strip():
            return value.strip()

    return None


def _filter_lorem_ipsum(text: str) -> str:
    return "" if text.startswith(LOREM_IPSUM_PREFIX) else text


@register_extractor("quizmeisters")
class QuizmeistersExtractor(BaseExtractor):
    name = "Quizmeisters"
    default_base_url = "https://quizmeisters.com"
    locations_api = LOCATIONS_API

    def fetch_index(self, client: FetchClient) -> list[dict]:
        logger.info(f"[{self.slug}] Fetching locations: {self.locations_api}")
        data = client.fetch_json(self.locations_api)

        locations = data.get("results", {}).get("locations") if isinstance(data, dict) else None
        if not isinstance(locations, list):
            raise UnsupportedFormat(f"Unexpected locations payload from {self.locations_api}")

        items = []
        for location in locations:
            if not isinstance(location, dict):
                continue
            items.append({
                "title": location.get("name"),
                "url": location.get("url"),
                "address": location.get("address"),
                "phone": location.get("phone"),
                "postcode": location.get("postcode"),
                "latitude": location.get("lat"),
                "longitude": location.get("lng"),
                "time_text": trivia_time_text(location),
            })

        logger.info(f"[{self.slug}] Parsed {len(items)} locations")
        return items

    def extract(self, content: str, item: dict) -> RawVenueRecord:
        url = item.get("url")
        if not url:
            raise MissingRequiredField("url")
        if not item.get("time_text"):
            raise MissingRequiredField("time_text", source_url=url)

        try:
            soup = BeautifulSoup(content, "lxml")
        except Exception as e:
            raise ParseError(f"Could not parse venue page {url}: {e}") from e

        description = self._paragraphs(
            soup,
            ".venue-description.w-richtext:not(.trivia-generic):not(.bingo-generic):not(.survey-generic) p",
        ) or self._paragraphs(soup, ".venue-description.trivia-generic.w-richtext p")

        hero = soup.select_one(".venue-photo")
        hero_image_url = urljoin(url, hero["src"]) if hero and hero.get("src") else None

        socials: dict[str, str | None] = {"website": None, "facebook": None, "instagram": None}
        for link in soup.select(".icon-block a"):
            href = link.get("href")
            for key in socials:
                if link.select_one(f"img[alt*='{key}']"):
                    socials[key] = href
                    break

        phone = item.get("phone") or None
        for paragraph in soup.select(".venue-block .paragraph"):
            text = paragraph.get_text(strip=True)
            if _PHONE_RE.match(text):
                phone = text
                break

        return RawVenueRecord(
            raw_title=item.get("title"),
            title=item.get("title") or "",
            address=item.get("address") or "",
            time_text=item["time_text"],
            fee_text="Free",
            phone=phone,
            description=description or None,
            hero_image_url=hero_image_url,
            source_url=url,
            latitude=_as_float(item.get("latitude")),
            longitude=_as_float(item.get("longitude")),
            postcode=item.get("postcode"),
            on_break=soup.select_one(".on-break") is not None,
            performer=self._performer(soup, url),
            **socials,
        )

    @staticmethod
    def _paragraphs(soup: BeautifulSoup, selector: str) -> str:
        text = "\n\n".join(p.get_text(strip=True) for p in soup.select(selector)).strip()
        return _filter_lorem_ipsum(text)

    @staticmethod
    def _performer(soup: BeautifulSoup, page_url: str) -> PerformerRecord | None:
        host = soup.select_one(".host-info")
        if host is None:
            return None
        name_el = host.select_one(".host-name")
        name = name_el.get_text(strip=True) if name_el else ""
        if not name:
            return None
        image = host.select_one("img")
        image_url = urljoin(page_url, image["src"]) if image and image.get("src") else None
        return PerformerRecord(name=name[:200], profile_image_url=image_url)


def _as_float(value) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
