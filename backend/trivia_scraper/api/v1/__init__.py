"""API v1 router aggregation."""

from fastapi import APIRouter

from trivia_scraper.api.v1.sources import router as sources_router
from trivia_scraper.api.v1.runs import router as runs_router

router = APIRouter(prefix="/api/v1")

router.include_router(sources_router)
router.include_router(runs_router)
