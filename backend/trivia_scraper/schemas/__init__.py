"""Pydantic schemas package."""

from trivia_scraper.schemas.source import (
    SourceRead,
    SourceSummary,
    SourceWithRuns,
    ScrapeRequest,
    ManualScrapeResponse,
)
from trivia_scraper.schemas.scrape_run import (
    ScrapeRunRead,
    ScrapeRunSummary,
    ScrapeRunWithSource,
)

# Rebuild models to resolve forward references
SourceWithRuns.model_rebuild()
ScrapeRunWithSource.model_rebuild()

__all__ = [
    # Source
    "SourceRead",
    "SourceSummary",
    "SourceWithRuns",
    "ScrapeRequest",
    "ManualScrapeResponse",
    # ScrapeRun
    "ScrapeRunRead",
    "ScrapeRunSummary",
    "ScrapeRunWithSource",
]
