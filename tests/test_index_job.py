import logging

import pytest

from helpers import FakeQueue

from trivia_scraper.errors import FetchConnectionError
from trivia_scraper.jobs.index_job import IndexJob, IndexJobOptions, IndexState
from trivia_scraper.models import Source
from trivia_scraper.scrapers.base import BaseExtractor
from trivia_scraper.services.rate_limiter import RateLimiter
from trivia_scraper.services.retry import RetryPolicy
from trivia_scraper.services.run_recorder import RunRecorder


class ListingExtractor(BaseExtractor):
    slug = "listing"
    name = "Listing"
    default_base_url = "https://listing.example"

    def __init__(self, items=None, error=None):
        super().__init__()
        self.items = items or []
        self.error = error

    def fetch_index(self, client):
        if self.error:
            raise self.error
        return list(self.items)

    def extract(self, content, item):
        raise NotImplementedError


def venues(n):
    return [{"title": f"Venue {i}", "url": f"https://listing.example/venues/{i}"} for i in range(n)]


@pytest.fixture
def run_index(source, fixed_clock):
    def run(extractor, queue, options=None, max_per_hour=50):
        recorder = RunRecorder(clock=fixed_clock)
        job = IndexJob(
            extractor=extractor,
            recorder=recorder,
            rate_limiter=RateLimiter(queue, clock=fixed_clock, max_per_hour=max_per_hour, capped_threshold=100),
            client=None,
            retry_policy=RetryPolicy(max_attempts=3),
        )
        result = job.run(source, options)
        return result, recorder.get_run(result.run_id)

    return run


def test_limit_two_schedules_two_detail_jobs(run_index, fake_queue, caplog):
    with caplog.at_level(logging.INFO):
        result, run = run_index(
            ListingExtractor(venues(10)),
            fake_queue,
            IndexJobOptions(limit=2, force_refresh_images=True),
        )

    assert result.state is IndexState.COMPLETED
    assert result.limited is True
    assert len(fake_queue.jobs) == 2

    job_type, args, options = fake_queue.jobs[0]
    assert job_type == "detail"
    assert args["item"]["url"] == "https://listing.example/venues/0"
    assert args["source_slug"] == "quizmeisters"
    assert args["scrape_run_id"] == str(result.run_id)
    assert args["force_refresh_images"] is True
    assert args["force_update"] is False
    assert options.max_attempts == 3

    assert run.success is True
    assert run.total_items_found == 10
    assert run.items_processed == 2
    assert run.run_metadata["limit"] == 2
    assert run.run_metadata["limited"] is True
    assert "LIMITED RUN" in caplog.text


def test_unlimited_run_schedules_everything(run_index, fake_queue):
    result, run = run_index(ListingExtractor(venues(5)), fake_queue)

    assert len(fake_queue.jobs) == 5
    assert result.limited is False
    assert run.items_processed == 5


def test_large_listing_is_spread_over_hour_windows(run_index, fake_queue):
    result, run = run_index(ListingExtractor(venues(250)), fake_queue, max_per_hour=100)

    assert result.items_scheduled == 250
    assert result.windows == {0: 100, 1: 100, 2: 50}
    assert run.items_processed == 250


def test_unreachable_listing_fails_run_and_schedules_nothing(run_index, fake_queue, db, source):
    error = FetchConnectionError("Connection refused", url="https://listing.example/")

    result, run = run_index(ListingExtractor(error=error), fake_queue)

    assert result.state is IndexState.FAILED
    assert result.error["kind"] == "connection_error"
    assert fake_queue.jobs == []
    assert run.success is False
    assert run.error["kind"] == "connection_error"

    db.expire_all()
    assert db.get(Source, source.id).consecutive_failures == 1


def test_empty_listing_fails_run(run_index, fake_queue):
    result, run = run_index(ListingExtractor([]), fake_queue)

    assert result.state is IndexState.FAILED
    assert run.success is False
    assert run.error["kind"] == "extract_error"


def test_enqueue_failures_are_counted_not_fatal(run_index):
    queue = FakeQueue(fail_on={1})

    result, run = run_index(ListingExtractor(venues(4)), queue)

    assert result.state is IndexState.COMPLETED
    assert result.items_scheduled == 3
    assert result.enqueue_failures == 1
    assert run.items_processed == 3
    assert run.run_metadata["enqueue_failures"] == 1
