"""FastAPI application entry point."""

import logging
from datetime import datetime, timezone

import redis
from fastapi import FastAPI
from sqlalchemy import text

from trivia_scraper.config import get_settings
from trivia_scraper.models.base import get_session
from trivia_scraper.api.v1 import router as api_v1_router

logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Trivia venue scraper: sources, scrape runs and manual index jobs",
    version="0.1.0",
)

app.include_router(api_v1_router)


@app.get("/health")
def health_check():
    return {"status": "healthy", "app": settings.app_name}


@app.get("/health/detailed")
def detailed_health_check():
    checks = {}

    # Database
    db = get_session()
    try:
        db.execute(text("SELECT 1")).scalar()
        checks["database"] = {"ok": True}
    except Exception as e:
        checks["database"] = {"ok": False, "message": str(e)}
    finally:
        db.close()

    # Redis (broker and job uniqueness locks)
    try:
        r = redis.from_url(settings.redis_url, socket_timeout=5)
        r.ping()
        checks["redis"] = {"ok": True}
    except Exception as e:
        checks["redis"] = {"ok": False, "message": str(e)}

    # Celery workers
    try:
        from trivia_scraper.tasks.celery_app import celery_app
        inspect = celery_app.control.inspect(timeout=5)
        active_workers = inspect.active()
        checks["celery_workers"] = {
            "ok": bool(active_workers),
            "workers": list(active_workers.keys()) if active_workers else [],
        }
    except Exception as e:
        checks["celery_workers"] = {"ok": False, "message": str(e)}

    all_ok = all(check.get("ok", False) for check in checks.values())
    status = "healthy" if all_ok else "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
