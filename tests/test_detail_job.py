import logging

import httpx
import pytest
from sqlalchemy import func, select

from trivia_scraper.errors import HttpStatusError, MissingRequiredField, UpsertError
from trivia_scraper.jobs.detail_job import DetailJob, DetailJobContext, DetailState
from trivia_scraper.models import Event, EventSource, Performer, Venue
from trivia_scraper.models.base import as_utc
from trivia_scraper.scrapers.base import BaseExtractor, PerformerRecord, RawVenueRecord
from trivia_scraper.services.geocoder import Geocoder
from trivia_scraper.services.image_refresh import ImageRefresher
from trivia_scraper.services.image_store import LocalImageStore
from trivia_scraper.services.retry import RetryPolicy
from trivia_scraper.services.venue_store import VenueStore

BASE = "https://venues.example"


class PageExtractor(BaseExtractor):
    """Builds records straight from index items; ``fetch_errors`` maps url -> exception."""

    slug = "pages"
    default_base_url = BASE

    def __init__(self, fetch_errors=None):
        super().__init__()
        self.fetch_errors = fetch_errors or {}

    def fetch_index(self, client):
        return []

    def fetch_content(self, item, client):
        error = self.fetch_errors.get(item["url"])
        if error:
            raise error
        return "<html></html>"

    def extract(self, content, item):
        if not item.get("address"):
            raise MissingRequiredField("address", source_url=item["url"])
        performer = item.get("performer")
        return RawVenueRecord(
            title=item["title"],
            address=item["address"],
            time_text=item.get("time_text", "Tuesday 7.30pm"),
            source_url=item["url"],
            hero_image_url=item.get("hero"),
            latitude=item.get("latitude"),
            longitude=item.get("longitude"),
            performer=PerformerRecord(performer, f"{BASE}/hosts/{performer}.png") if performer else None,
        )


def item(n, **extra):
    data = {
        "title": f"Venue {n}",
        "url": f"{BASE}/venues/{n}",
        "address": f"{n} Quiz Lane",
        "latitude": 51.0 + n,
        "longitude": -0.1,
    }
    data.update(extra)
    return data


class Downloads:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.urls = []

    def __call__(self, request):
        self.urls.append(str(request.url))
        if self.status_code != 200:
            return httpx.Response(self.status_code)
        return httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg"})


def count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar()


@pytest.fixture
def make_job(db, tmp_path, mock_client):
    def make(extractor=None, downloads=None, geocoder=None, place_images=None, skip_within_days=5):
        client = mock_client(downloads or Downloads())
        store = VenueStore(db)
        return DetailJob(
            extractor=extractor or PageExtractor(),
            store=store,
            client=client,
            images=ImageRefresher(LocalImageStore(tmp_path / "images"), store, client),
            geocoder=geocoder,
            place_images=place_images,
            retry_policy=RetryPolicy(max_attempts=3),
            skip_within_days=skip_within_days,
        )

    return make


def context(source, data, **flags):
    return DetailJobContext(source_id=str(source.id), source_slug=source.slug, item=data, **flags)


def test_detail_job_upserts_venue_event_and_source(make_job, source, db):
    result = make_job().run(context(source, item(1)))

    assert result.state is DetailState.COMPLETED
    venue = db.get(Venue, result.venue_id)
    event = db.get(Event, result.event_id)
    assert venue.name == "Venue 1"
    assert event.day_of_week == 2
    assert event.start_time == "19:30"
    assert count(db, EventSource) == 1


def test_one_bad_item_does_not_affect_the_others(make_job, source, db, caplog):
    job = make_job()
    items = [item(n) for n in range(1, 6)]
    items[2] = item(3, address=None)

    with caplog.at_level(logging.ERROR):
        results = [job.run(context(source, data)) for data in items]

    states = [r.state for r in results]
    assert states == [DetailState.COMPLETED] * 2 + [DetailState.FAILED] + [DetailState.COMPLETED] * 2
    assert results[2].error["kind"] == "missing_required_field"
    assert results[2].error["field"] == "address"
    assert f"{BASE}/venues/3" in caplog.text
    assert count(db, Venue) == 4
    assert count(db, Event) == 4


def test_retryable_fetch_error_propagates(make_job, source):
    data = item(1)
    job = make_job(PageExtractor({data["url"]: HttpStatusError(503, url=data["url"])}))

    with pytest.raises(HttpStatusError):
        job.run(context(source, data))


def test_terminal_fetch_error_fails_the_job(make_job, source, db):
    data = item(1)
    job = make_job(PageExtractor({data["url"]: HttpStatusError(404, url=data["url"])}))

    result = job.run(context(source, data))

    assert result.state is DetailState.FAILED
    assert result.error["status_code"] == 404
    assert count(db, Venue) == 0


def test_recently_seen_venue_is_skipped_but_touched(make_job, source, db):
    job = make_job()
    job.run(context(source, item(1)))
    event_source = db.execute(select(EventSource)).scalar_one()
    first_seen = as_utc(event_source.last_seen_at)

    result = job.run(context(source, item(1, title="Renamed Venue")))

    assert result.state is DetailState.SKIPPED
    assert as_utc(event_source.last_seen_at) > first_seen
    assert db.execute(select(Venue.name)).scalar_one() == "Venue 1"


def test_force_update_bypasses_skip(make_job, source, db):
    job = make_job()
    job.run(context(source, item(1)))

    result = job.run(context(source, item(1, title="Venue 1", address="1 Quiz Lane"), force_update=True))

    assert result.state is DetailState.COMPLETED
    assert count(db, EventSource) == 1


def test_hero_image_reused_unless_forced(make_job, source):
    downloads = Downloads()
    job = make_job(downloads=downloads)
    data = item(1, hero=f"{BASE}/img/Front%20Bar.jpg?v=2")

    job.run(context(source, data))
    job.run(context(source, data, force_update=True))
    assert len(downloads.urls) == 1

    job.run(context(source, data, force_update=True, force_refresh_images=True))
    assert len(downloads.urls) == 2


def test_image_failure_does_not_fail_the_job(make_job, source):
    job = make_job(downloads=Downloads(status_code=500))

    result = job.run(context(source, item(1, hero=f"{BASE}/img/hero.jpg")))

    assert result.state is DetailState.COMPLETED
    assert result.images_stored == 0
    assert result.warnings


def test_image_record_write_failure_is_a_warning(make_job, source, db, monkeypatch):
    def fail(*args, **kwargs):
        raise UpsertError("image record write failed")

    monkeypatch.setattr(VenueStore, "save_image_record", fail)

    result = make_job().run(context(source, item(1, hero=f"{BASE}/img/hero.jpg")))

    assert result.state is DetailState.COMPLETED
    assert result.images_stored == 0
    assert "image record write failed" in result.warnings[0]
    assert db.get(Event, result.event_id) is not None


class BrokenPlaceImages:
    def ensure_place_images(self, venue):
        raise UpsertError("Failed to update place images")


def test_place_image_failure_is_a_warning(make_job, source):
    result = make_job(place_images=BrokenPlaceImages()).run(context(source, item(1)))

    assert result.state is DetailState.COMPLETED
    assert result.warnings == ["Failed to update place images"]


def test_performer_is_linked_with_profile_image(make_job, source, db):
    result = make_job().run(context(source, item(1, performer="sam")))

    performer = db.execute(select(Performer)).scalar_one()
    assert performer.name == "sam"
    assert performer.profile_image_path.endswith("sam.png")
    assert db.get(Event, result.event_id).performer_id == performer.id
    assert result.images_stored == 1


def test_missing_coordinates_are_geocoded(make_job, source, db, mock_client):
    def geocode_api(request):
        return httpx.Response(200, json={
            "status": "OK",
            "results": [{
                "formatted_address": "1 Quiz Lane, London",
                "place_id": "place-123",
                "geometry": {"location": {"lat": 51.5, "lng": -0.12}},
                "address_components": [{"long_name": "E1 6AN", "types": ["postal_code"]}],
            }],
        })

    geocoder = Geocoder(mock_client(geocode_api), api_key="test-key", rate_limit=0)
    result = make_job(geocoder=geocoder).run(context(source, item(1, latitude=None, longitude=None)))

    venue = db.get(Venue, result.venue_id)
    assert (venue.latitude, venue.longitude) == (51.5, -0.12)
    assert venue.postcode == "E1 6AN"
    assert venue.google_place_id == "place-123"
