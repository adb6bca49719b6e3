import pytest
from fastapi.testclient import TestClient

from helpers import FakeQueue

from trivia_scraper.api.v1.sources import get_job_queue
from trivia_scraper.main import app
from trivia_scraper.services.run_recorder import RunOutcome, RunRecorder


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def client(engine, queue):
    app.dependency_overrides[get_job_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_and_get_sources(client, source):
    response = client.get("/api/v1/sources")
    assert response.status_code == 200
    assert [s["slug"] for s in response.json()] == ["quizmeisters"]

    detail = client.get("/api/v1/sources/quizmeisters").json()
    assert detail["recent_runs"] == []

    assert client.get("/api/v1/sources/nowhere").status_code == 404


def test_runs_endpoints(client, source):
    recorder = RunRecorder()
    run_id = recorder.create_run(source.id, metadata={"limit": 2})
    recorder.complete_run(run_id, RunOutcome(success=True, total_items_found=10, items_processed=2))

    runs = client.get("/api/v1/runs", params={"status": "success"}).json()
    assert len(runs) == 1
    assert runs[0]["source"]["slug"] == "quizmeisters"
    assert runs[0]["items_processed"] == 2

    run = client.get(f"/api/v1/runs/{run_id}").json()
    assert run["status"] == "success"
    assert run["metadata"] == {"limit": 2}

    assert client.get("/api/v1/runs", params={"status": "failed"}).json() == []
    assert client.get("/api/v1/runs/00000000-0000-0000-0000-000000000000").status_code == 404


def test_trigger_scrape_enqueues_index_job(client, source, queue):
    response = client.post("/api/v1/sources/quizmeisters/scrape", json={"limit": 5})

    assert response.status_code == 202
    assert response.json()["source_slug"] == "quizmeisters"
    job_type, args, _ = queue.jobs[0]
    assert job_type == "index"
    assert args["limit"] == 5
