"""Source API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from trivia_scraper.errors import SchedulingError
from trivia_scraper.models.base import get_db
from trivia_scraper.models.scrape_run import ScrapeRun
from trivia_scraper.models.source import Source
from trivia_scraper.schemas import (
    ManualScrapeResponse,
    ScrapeRequest,
    ScrapeRunSummary,
    SourceRead,
    SourceWithRuns,
)
from trivia_scraper.tasks.job_queue import CeleryJobQueue, DuplicateJobError, JobQueue

router = APIRouter(prefix="/sources", tags=["sources"])


def get_job_queue() -> JobQueue:
    return CeleryJobQueue()


def _get_source_or_404(db: Session, slug: str) -> Source:
    source = db.execute(select(Source).where(Source.slug == slug)).scalar_one_or_none()
    if not source:
        raise HTTPException(status_code=404, detail="Source not found")
    return source


@router.get("", response_model=list[SourceRead])
def list_sources(
    db: Session = Depends(get_db),
    is_active: bool | None = Query(None, description="Filter by active status"),
):
    """List sources with their scrape state."""
    query = select(Source)
    if is_active is not None:
        query = query.where(Source.is_active == is_active)
    return db.execute(query.order_by(Source.slug)).scalars().all()


@router.get("/{slug}", response_model=SourceWithRuns)
def get_source(
    slug: str,
    db: Session = Depends(get_db),
):
    """Get a single source with recent scrape runs."""
    source = _get_source_or_404(db, slug)

    runs = db.execute(
        select(ScrapeRun)
        .where(ScrapeRun.source_id == source.id)
        .order_by(ScrapeRun.started_at.desc())
        .limit(10)
    ).scalars().all()

    return SourceWithRuns(
        **SourceRead.model_validate(source).model_dump(),
        recent_runs=[ScrapeRunSummary.model_validate(run) for run in runs],
    )


@router.post("/{slug}/scrape", response_model=ManualScrapeResponse, status_code=202)
def trigger_scrape(
    slug: str,
    request: ScrapeRequest | None = None,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    """Enqueue an index job for a source."""
    from trivia_scraper.tasks.scrape_tasks import enqueue_index_job

    source = _get_source_or_404(db, slug)
    if not source.is_active:
        raise HTTPException(status_code=400, detail="Source is not active")

    request = request or ScrapeRequest()
    try:
        handle = enqueue_index_job(
            queue,
            source.slug,
            limit=request.limit,
            force_refresh_images=request.force_refresh_images,
            force_update=request.force_update,
        )
    except DuplicateJobError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SchedulingError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return ManualScrapeResponse(
        message=f"Index job queued for {source.slug}",
        job_id=handle.job_id,
        source_slug=source.slug,
    )
