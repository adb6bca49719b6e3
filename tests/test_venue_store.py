from datetime import timedelta

import pytest
from sqlalchemy import func, select

from helpers import FIXED_NOW

from trivia_scraper.errors import UpsertError
from trivia_scraper.models import Event, EventSource, Performer, Venue
from trivia_scraper.models.base import as_utc
from trivia_scraper.services.venue_store import VenueStore, normalize_source_url

VENUE = {
    "name": "The Red Lion",
    "address": "1 High Street, Islington",
    "postcode": "N1 1AA",
    "latitude": 51.5362,
    "longitude": -0.1033,
}

EVENT = {
    "name": "The Red Lion",
    "day_of_week": 2,
    "start_time": "19:30",
    "frequency": "weekly",
    "fee_text": "£2",
    "source_url": "https://quizmeisters.com/venues/red-lion",
    "extra_data": {"time_text": "Tuesday 7.30pm"},
}


def count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar()


@pytest.fixture
def store(db, fixed_clock):
    return VenueStore(db, clock=fixed_clock)


def test_normalize_source_url():
    assert normalize_source_url("HTTPS://Example.COM/venue/red-lion/#map") == "https://example.com/venue/red-lion"
    assert normalize_source_url("https://example.com/v?id=1") == "https://example.com/v?id=1"


def test_venue_upsert_is_idempotent(db, store):
    first = store.find_or_create_venue(VENUE)
    second = store.find_or_create_venue(dict(VENUE, phone="020 7946 0000"))

    assert first.id == second.id
    assert second.phone == "020 7946 0000"
    assert count(db, Venue) == 1


def test_venue_matches_on_name_and_coordinates(db, store):
    first = store.find_or_create_venue(VENUE)
    second = store.find_or_create_venue(
        dict(VENUE, name="the red lion", address="1 High St", latitude=51.53625, longitude=-0.10335)
    )

    assert second.id == first.id
    assert count(db, Venue) == 1


def test_venue_requires_name_and_address(store):
    with pytest.raises(UpsertError) as exc_info:
        store.find_or_create_venue({"name": "No Address", "address": " "})
    assert exc_info.value.attrs["name"] == "No Address"


def test_process_event_twice_creates_one_event_and_source(db, store, source):
    venue = store.find_or_create_venue(VENUE)

    first = store.process_event(venue, EVENT, source.id)
    second = store.process_event(venue, dict(EVENT, fee_text="Free"), source.id)

    assert first.id == second.id
    assert second.fee_text == "Free"
    assert count(db, Event) == 1
    assert count(db, EventSource) == 1


def test_last_seen_at_updates_on_every_touch(db, store, source):
    venue = store.find_or_create_venue(VENUE)

    store.process_event(venue, EVENT, source.id)
    event_source = store.find_event_source(source.id, EVENT["source_url"])
    first_seen = as_utc(event_source.last_seen_at)

    # Identical data and a frozen clock still move the timestamp forward
    store.process_event(venue, EVENT, source.id)
    second_seen = as_utc(store.find_event_source(source.id, EVENT["source_url"]).last_seen_at)

    assert first_seen == FIXED_NOW
    assert second_seen > first_seen

    store.touch_event_source(event_source)
    assert as_utc(event_source.last_seen_at) > second_seen


def test_event_source_lookup_uses_normalized_url(db, store, source):
    venue = store.find_or_create_venue(VENUE)
    store.process_event(venue, EVENT, source.id)

    store.process_event(venue, dict(EVENT, source_url="https://QUIZMEISTERS.com/venues/red-lion/"), source.id)

    assert count(db, EventSource) == 1
    assert store.find_event_source(source.id, "https://quizmeisters.com/venues/red-lion#top") is not None


def test_process_event_requires_source_url(store, source):
    venue = store.find_or_create_venue(VENUE)
    with pytest.raises(UpsertError):
        store.process_event(venue, dict(EVENT, source_url=None), source.id)


def test_recently_seen(db, source):
    now = {"value": FIXED_NOW}
    store = VenueStore(db, clock=lambda: now["value"])
    venue = store.find_or_create_venue(VENUE)
    store.process_event(venue, EVENT, source.id)
    event_source = store.find_event_source(source.id, EVENT["source_url"])

    now["value"] = FIXED_NOW + timedelta(days=4)
    assert store.recently_seen(event_source, within_days=5)

    now["value"] = FIXED_NOW + timedelta(days=6)
    assert not store.recently_seen(event_source, within_days=5)


def test_performer_upsert_is_idempotent(db, store, source):
    first = store.find_or_create_performer("Quizmaster Sam", source.id, "https://x.com/sam.jpg")
    second = store.find_or_create_performer("Quizmaster Sam", source.id)

    assert first.id == second.id
    assert second.profile_image_url == "https://x.com/sam.jpg"
    assert count(db, Performer) == 1


def test_event_links_performer(store, source):
    venue = store.find_or_create_venue(VENUE)
    performer = store.find_or_create_performer("Quizmaster Sam", source.id)

    event = store.process_event(venue, EVENT, source.id, performer_id=performer.id)

    assert event.performer_id == performer.id
