"""Scrape run recorder — start/end/outcome bookkeeping for index jobs.

Every call opens its own short session, so a run row is written exactly
twice: once on creation, once on completion. Concurrent index jobs each
own a distinct row and never interleave writes.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from trivia_scraper.models.base import get_session, utcnow
from trivia_scraper.models.scrape_run import ScrapeRun
from trivia_scraper.models.source import Source

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    success: bool
    total_items_found: int = 0
    items_processed: int = 0
    error: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class RunAlreadyCompleted(Exception):
    pass


class RunRecorder:
    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.clock = clock

    def create_run(self, source_id, metadata: dict[str, Any] | None = None) -> uuid.UUID:
        db = self.session_factory()
        try:
            run = ScrapeRun(
                id=uuid.uuid4(),
                source_id=source_id,
                started_at=self.clock(),
                run_metadata=dict(metadata or {}),
            )
            db.add(run)
            db.commit()
            logger.info(f"Started scrape run {run.id} for source {source_id}")
            return run.id
        finally:
            db.close()

    def complete_run(self, run_id: uuid.UUID, outcome: RunOutcome) -> ScrapeRun:
        db = self.session_factory()
        try:
            run = db.get(ScrapeRun, run_id)
            if run is None:
                raise LookupError(f"Scrape run {run_id} not found")
            if run.completed_at is not None:
                logger.warning(f"Scrape run {run_id} already completed, ignoring second completion")
                raise RunAlreadyCompleted(str(run_id))

            now = self.clock()
            run.completed_at = now
            run.success = outcome.success
            run.total_items_found = outcome.total_items_found
            run.items_processed = outcome.items_processed
            run.error = outcome.error
            run.run_metadata = {**(run.run_metadata or {}), **outcome.metadata}

            # Source scrape state, as the listing page last answered
            source = db.get(Source, run.source_id)
            if source is not None:
                source.last_scraped_at = now
                if outcome.success:
                    source.last_success_at = now
                    source.last_item_count = outcome.total_items_found
                    source.consecutive_failures = 0
                else:
                    source.consecutive_failures = (source.consecutive_failures or 0) + 1

            db.commit()

            status = "success" if outcome.success else "failed"
            logger.info(
                f"Completed scrape run {run_id}: status={status} found={outcome.total_items_found} "
                f"processed={outcome.items_processed}"
                + (f" error={outcome.error}" if outcome.error else "")
            )
            return run
        finally:
            db.close()

    def get_run(self, run_id: uuid.UUID) -> ScrapeRun | None:
        db = self.session_factory()
        try:
            return db.get(ScrapeRun, run_id)
        finally:
            db.close()

    def list_runs(self, source_id=None, limit: int = 50) -> list[ScrapeRun]:
        db = self.session_factory()
        try:
            query = select(ScrapeRun)
            if source_id is not None:
                query = query.where(ScrapeRun.source_id == source_id)
            query = query.order_by(ScrapeRun.started_at.desc()).limit(limit)
            return list(db.execute(query).scalars())
        finally:
            db.close()
