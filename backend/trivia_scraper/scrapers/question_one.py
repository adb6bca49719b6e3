"""Question One extractor.

Index: the WordPress RSS feed at /venues/feed/, paged with ?paged=N until
an empty page or a 404.
Detail: each venue page lists its fields as .text-with-icon blocks whose
<use> element points at an icon (#pin, #calendar, #tag, #phone); the value
sits in .text-with-icon__text.
"""

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from trivia_scraper.errors import HttpStatusError, MissingRequiredField, ParseError
from trivia_scraper.scrapers.base import BaseExtractor, RawVenueRecord
from trivia_scraper.scrapers.registry import register_extractor
from trivia_scraper.services.http_client import FetchClient

logger = logging.getLogger(__name__)

MAX_FEED_PAGES = 100


def clean_title(raw_title: str) -> str:
    """'PUB QUIZ – The Red Lion – Islington' -> 'The Red Lion'."""
    title = re.sub(r"^PUB QUIZ[^\w\s]*", "", raw_title, flags=re.IGNORECASE)
    title = re.sub(r"^[–\s]+", "", title)
    title = re.sub(r"\s+–.*$", "", title)
    return title.strip()


def clean_url(url: str) -> str:
    return url.split("?")[0].strip()


@register_extractor("question-one")
class QuestionOneExtractor(BaseExtractor):
    name = "Question One"
    default_base_url = "https://questionone.com"

    @property
    def feed_url(self) -> str:
        return f"{self.base_url}/venues/feed/"

    def fetch_index(self, client: FetchClient) -> list[dict]:
        venues: list[dict] = []

        for page in range(1, MAX_FEED_PAGES + 1):
            url = self.feed_url if page == 1 else f"{self.feed_url}?paged={page}"
            logger.info(f"[{self.slug}] Fetching feed page {page}: {url}")

            try:
                body = client.fetch_text(url)
            except HttpStatusError as e:
                if e.status_code == 404 and page > 1:
                    logger.info(f"[{self.slug}] Reached end of feed at page {page}")
                    break
                raise

            items = self.parse_feed(body)
            if not items:
                logger.info(f"[{self.slug}] No venues on page {page}, stopping")
                break

            logger.info(f"[{self.slug}] Found {len(items)} venues on page {page}")
            venues.extend(items)

        return venues

    def parse_feed(self, body: str) -> list[dict]:
        soup = BeautifulSoup(body, "xml")
        items = []
        for item in soup.find_all("item"):
            title_el = item.find("title")
            link_el = item.find("link")
            url = clean_url(link_el.get_text()) if link_el else ""
            if not url:
                logger.warning(f"[{self.slug}] Skipping feed item with no link")
                continue
            items.append({
                "title": title_el.get_text(strip=True) if title_el else "",
                "url": url,
            })
        return items

    def extract(self, content: str, item: dict) -> RawVenueRecord:
        url = item.get("url")
        if not url:
            raise MissingRequiredField("url")

        try:
            soup = BeautifulSoup(content, "lxml")
        except Exception as e:
            raise ParseError(f"Could not parse venue page {url}: {e}") from e

        raw_title = item.get("title") or ""
        if not raw_title:
            heading = soup.select_one("h1.post-title")
            raw_title = heading.get_text(strip=True) if heading else ""
        title = clean_title(raw_title)

        address = self._text_with_icon(soup, "pin")
        if not address:
            raise MissingRequiredField("address", source_url=url)
        time_text = self._text_with_icon(soup, "calendar")
        if not time_text:
            raise MissingRequiredField("time_text", source_url=url)

        website = None
        for link in soup.find_all("a", href=True):
            if "visit website" in link.get_text(" ", strip=True).lower():
                website = link["href"].strip()
                break

        paragraphs = [p.get_text(strip=True) for p in soup.select(".post-content-area p")]
        description = "\n\n".join(p for p in paragraphs if p) or None

        hero = soup.select_one("img[src*='wp-content/uploads']")

        return RawVenueRecord(
            raw_title=raw_title,
            title=title,
            address=address,
            time_text=time_text,
            fee_text=self._text_with_icon(soup, "tag"),
            phone=self._text_with_icon(soup, "phone"),
            website=website,
            description=description,
            hero_image_url=urljoin(url, hero["src"]) if hero and hero.get("src") else None,
            source_url=url,
        )

    @staticmethod
    def _text_with_icon(soup: BeautifulSoup, icon: str) -> str | None:
        for block in soup.select(".text-with-icon"):
            for use in block.find_all("use"):
                href = use.get("href") or use.get("xlink:href") or ""
                if href.endswith(f"#{icon}"):
                    text_el = block.select_one(".text-with-icon__text")
                    text = text_el.get_text(" ", strip=True) if text_el else ""
                    return text or None
        return None
