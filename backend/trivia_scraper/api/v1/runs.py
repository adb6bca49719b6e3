"""Scrape run API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from trivia_scraper.models.base import get_db
from trivia_scraper.models.scrape_run import ScrapeRun
from trivia_scraper.schemas import ScrapeRunRead, ScrapeRunWithSource, SourceSummary

router = APIRouter(prefix="/runs", tags=["runs"])


def _with_source(run: ScrapeRun) -> ScrapeRunWithSource:
    return ScrapeRunWithSource(
        **ScrapeRunRead.model_validate(run).model_dump(),
        source=SourceSummary.model_validate(run.source) if run.source else None,
    )


@router.get("", response_model=list[ScrapeRunWithSource])
def list_runs(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    source_id: UUID | None = Query(None, description="Filter by source"),
    status: str | None = Query(None, description="Filter by status: running, success, failed"),
):
    """List recent scrape runs."""
    query = select(ScrapeRun).options(selectinload(ScrapeRun.source))

    if source_id:
        query = query.where(ScrapeRun.source_id == source_id)
    if status == "running":
        query = query.where(ScrapeRun.success.is_(None))
    elif status in ("success", "failed"):
        query = query.where(ScrapeRun.success == (status == "success"))

    query = query.order_by(ScrapeRun.started_at.desc()).offset(skip).limit(limit)
    runs = db.execute(query).scalars().all()
    return [_with_source(run) for run in runs]


@router.get("/{run_id}", response_model=ScrapeRunWithSource)
def get_run(
    run_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a single scrape run."""
    query = (
        select(ScrapeRun)
        .options(selectinload(ScrapeRun.source))
        .where(ScrapeRun.id == run_id)
    )
    run = db.execute(query).scalar_one_or_none()

    if not run:
        raise HTTPException(status_code=404, detail="Run not found")

    return _with_source(run)
