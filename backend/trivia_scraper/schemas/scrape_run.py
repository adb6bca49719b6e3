"""Pydantic schemas for ScrapeRun model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from trivia_scraper.schemas.source import SourceSummary


class ScrapeRunRead(BaseModel):
    """Full scrape run output."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    source_id: UUID
    started_at: datetime
    completed_at: datetime | None = None
    status: str
    success: bool | None = None
    total_items_found: int = 0
    items_processed: int = 0
    error: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="run_metadata")


class ScrapeRunSummary(BaseModel):
    """Minimal run info for list views."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    started_at: datetime
    completed_at: datetime | None = None
    status: str
    total_items_found: int = 0
    items_processed: int = 0


class ScrapeRunWithSource(ScrapeRunRead):
    """Run with embedded source info."""

    source: "SourceSummary | None" = None
