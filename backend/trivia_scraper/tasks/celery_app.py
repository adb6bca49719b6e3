"""Celery application configuration and beat schedule."""

from celery import Celery
from celery.schedules import crontab

from trivia_scraper.config import get_settings
from trivia_scraper.tasks.job_queue import DETAIL_QUEUE, INDEX_QUEUE

settings = get_settings()

celery_app = Celery(
    "trivia_scraper",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "trivia_scraper.tasks.scrape_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_track_started=True,
    task_time_limit=600,
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_routes={
        "trivia_scraper.tasks.scrape_tasks.dispatch_daily_index_jobs": {"queue": INDEX_QUEUE},
        "trivia_scraper.tasks.scrape_tasks.run_index_job": {"queue": INDEX_QUEUE},
        "trivia_scraper.tasks.scrape_tasks.run_detail_job": {"queue": DETAIL_QUEUE},
    },
)

celery_app.conf.beat_schedule = {
    "dispatch-daily-index-jobs": {
        "task": "trivia_scraper.tasks.scrape_tasks.dispatch_daily_index_jobs",
        "schedule": crontab(minute=0, hour=3),
    },
}
