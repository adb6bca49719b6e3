"""Extractor registry — maps source slugs to extractor classes."""

import logging
from typing import Type

from trivia_scraper.config import get_settings
from trivia_scraper.errors import UnknownSourceError
from trivia_scraper.scrapers.base import BaseExtractor

logger = logging.getLogger(__name__)

# Source slug -> extractor class mapping
_REGISTRY: dict[str, Type[BaseExtractor]] = {}


def register_extractor(slug: str):
    """Decorator to register an extractor class for a source."""
    def decorator(cls: Type[BaseExtractor]):
        cls.slug = slug
        _REGISTRY[slug] = cls
        logger.debug(f"Registered extractor for source: {slug}")
        return cls
    return decorator


def get_extractor_class(slug: str) -> Type[BaseExtractor] | None:
    """Look up the extractor class for a given source slug."""
    return _REGISTRY.get(slug)


def build_extractor(slug: str, base_url: str | None = None) -> BaseExtractor:
    """Instantiate the extractor for ``slug``.

    A ``source_base_urls`` setting for the slug wins over ``base_url`` (the
    stored source row), which wins over the extractor default.
    """
    cls = get_extractor_class(slug)
    if cls is None:
        raise UnknownSourceError(f"No extractor registered for source: {slug}")
    override = get_settings().source_base_urls.get(slug)
    return cls(base_url=override or base_url)


def list_sources() -> list[str]:
    """List all registered source slugs."""
    return list(_REGISTRY.keys())
