from __future__ import annotations

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from trivia_scraper.models import Base, Source
from trivia_scraper.models.base import SyncSessionLocal, get_session
from trivia_scraper.services.http_client import FetchClient
from helpers import FIXED_NOW, FakeQueue


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SyncSessionLocal.configure(bind=engine)
    yield engine
    SyncSessionLocal.configure(bind=None)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def source(db):
    source = Source(name="Quizmeisters", slug="quizmeisters", base_url="https://quizmeisters.com")
    db.add(source)
    db.commit()
    return source


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def mock_client():
    """Build a FetchClient whose requests are answered by ``handler(request)``."""

    def make(handler) -> FetchClient:
        return FetchClient(client=httpx.Client(transport=httpx.MockTransport(handler)))

    return make


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
