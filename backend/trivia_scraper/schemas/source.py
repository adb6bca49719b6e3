"""Pydantic schemas for Source model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from trivia_scraper.schemas.scrape_run import ScrapeRunSummary


class SourceRead(BaseModel):
    """Full source output."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    base_url: str
    is_active: bool = True
    last_scraped_at: datetime | None = None
    last_success_at: datetime | None = None
    last_item_count: int = 0
    consecutive_failures: int = 0


class SourceSummary(BaseModel):
    """Minimal source info for nested responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    name: str
    is_active: bool


class SourceWithRuns(SourceRead):
    """Source with recent scrape runs."""

    recent_runs: list["ScrapeRunSummary"] = []


class ScrapeRequest(BaseModel):
    """Options for a manually triggered index job."""

    limit: int | None = None
    force_refresh_images: bool = False
    force_update: bool = False


class ManualScrapeResponse(BaseModel):
    """Response from triggering a manual scrape."""

    message: str
    job_id: str
    source_slug: str
