"""Decides whether an image must be (re)downloaded.

The local filename is derived from the remote URL alone, so re-scraping the
same URL lands on the same file and skips the download:

    existing file | force_refresh | action
    --------------+---------------+----------------------------------------
    yes           | False         | reuse the file, no download
    yes           | True          | download, replace file and record
    no            | either        | download, store, create record

A failed download raises ``ImageError`` and leaves any previous file and
record untouched. Callers treat ``ImageError`` as a warning.
"""

import hashlib
import logging
import os
import re
from datetime import datetime
from typing import Callable
from urllib.parse import unquote

from trivia_scraper.errors import FetchError, ImageError, UpsertError
from trivia_scraper.models.base import utcnow
from trivia_scraper.models.image_record import ImageRecord
from trivia_scraper.services.http_client import FetchClient
from trivia_scraper.services.image_store import LocalImageStore, OwnerRef

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"


def normalize_filename(value: str | None) -> str:
    """Normalize a remote image URL (or bare filename) to a stable local filename.

    "https://x/uploads/a%20b--c.JPG?x=1" -> "a-b-c.jpg"
    """
    if not value:
        return ""
    name = unquote(value)
    name = name.split("?")[0]
    name = name.rsplit("/", 1)[-1]
    name = re.sub(r"\s+", "-", name)
    name = re.sub(r"%20|\+", "-", name)
    name = re.sub(r"-+", "-", name)
    return name.lower()


def filename_for_url(url: str) -> str:
    """Normalized filename with an extension, falling back to a URL hash for empty names."""
    name = normalize_filename(url)
    if not name or name in (".", "-"):
        name = f"image_{hashlib.sha1(url.encode()).hexdigest()[:16]}"
    if not os.path.splitext(name)[1]:
        name += DEFAULT_EXTENSION
    return name


class ImageRefresher:
    """Applies the refresh decision table for one image at a time.

    ``records`` is the store that persists ``ImageRecord`` rows (the venue
    store provides ``get_image_record`` and ``save_image_record``).
    """

    def __init__(
        self,
        image_store: LocalImageStore,
        records,
        client: FetchClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.image_store = image_store
        self.records = records
        self.client = client
        self.clock = clock

    def ensure_image(
        self,
        source_url: str | None,
        owner: OwnerRef,
        force_refresh: bool = False,
        filename: str | None = None,
        params: dict[str, str] | None = None,
    ) -> ImageRecord:
        """Reuse or (re)download one image and return its record.

        ``params`` are added to the download request only, never stored or
        logged, so credentials stay out of ``ImageRecord.source_url``.
        """
        if not source_url or not source_url.strip():
            raise ImageError(f"Empty image URL for {owner}")

        filename = normalize_filename(filename) if filename else filename_for_url(source_url)
        exists = self.image_store.exists(filename, owner)

        if exists and not force_refresh:
            logger.info(f"Image {filename} already stored for {owner}, skipping download")
            record = self.records.get_image_record(owner, filename)
            if record is None:
                record = self._save_record(owner, source_url, filename, str(self.image_store.path_for(filename, owner)))
            return record

        if exists:
            logger.info(f"Force refreshing {filename} for {owner}")
        else:
            logger.info(f"Downloading new image {filename} for {owner}")

        content = self._download(source_url, params)

        if exists:
            self.image_store.delete(filename, owner)
        stored_path = self.image_store.store(content, filename, owner)

        return self._save_record(owner, source_url, filename, stored_path)

    def _save_record(self, owner: OwnerRef, source_url: str, filename: str, stored_path: str) -> ImageRecord:
        try:
            return self.records.save_image_record(
                owner,
                source_url=source_url,
                filename=filename,
                stored_path=stored_path,
                fetched_at=self.clock(),
            )
        except UpsertError as e:
            raise ImageError(f"Failed to record image {filename} for {owner}: {e}") from e

    def _download(self, url: str, params: dict[str, str] | None = None) -> bytes:
        try:
            content, content_type = self.client.fetch_bytes(url, params=params)
        except FetchError as e:
            raise ImageError(f"Failed to download image {url}: {e}") from e
        if not content:
            raise ImageError(f"Empty image body from {url}")
        if content_type and not content_type.startswith("image/"):
            logger.warning(f"Unexpected content type {content_type} for image {url}")
        return content
