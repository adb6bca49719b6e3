import uuid

import pytest

from helpers import FIXED_NOW

from trivia_scraper.models import Source
from trivia_scraper.models.base import as_utc
from trivia_scraper.services.run_recorder import RunAlreadyCompleted, RunOutcome, RunRecorder


@pytest.fixture
def recorder(engine, fixed_clock):
    return RunRecorder(clock=fixed_clock)


def test_create_run_starts_running(recorder, source):
    run_id = recorder.create_run(source.id, metadata={"limit": 2})

    run = recorder.get_run(run_id)
    assert run.status == "running"
    assert run.success is None
    assert run.run_metadata == {"limit": 2}
    assert as_utc(run.started_at) == FIXED_NOW


def test_complete_run_success_updates_source(recorder, source, db):
    run_id = recorder.create_run(source.id)

    recorder.complete_run(
        run_id,
        RunOutcome(success=True, total_items_found=10, items_processed=2, metadata={"limited": True}),
    )

    run = recorder.get_run(run_id)
    assert run.status == "success"
    assert run.total_items_found == 10
    assert run.items_processed == 2
    assert run.run_metadata == {"limited": True}

    db.expire_all()
    refreshed = db.get(Source, source.id)
    assert refreshed.last_item_count == 10
    assert refreshed.consecutive_failures == 0
    assert as_utc(refreshed.last_success_at) == FIXED_NOW


def test_complete_run_failure_records_error(recorder, source, db):
    run_id = recorder.create_run(source.id)

    recorder.complete_run(
        run_id,
        RunOutcome(success=False, error={"kind": "timeout", "message": "Timed out"}),
    )

    run = recorder.get_run(run_id)
    assert run.status == "failed"
    assert run.error["kind"] == "timeout"

    db.expire_all()
    assert db.get(Source, source.id).consecutive_failures == 1


def test_run_completes_only_once(recorder, source):
    run_id = recorder.create_run(source.id)
    recorder.complete_run(run_id, RunOutcome(success=True))

    with pytest.raises(RunAlreadyCompleted):
        recorder.complete_run(run_id, RunOutcome(success=False))

    assert recorder.get_run(run_id).status == "success"


def test_complete_unknown_run(recorder):
    with pytest.raises(LookupError):
        recorder.complete_run(uuid.uuid4(), RunOutcome(success=True))


def test_list_runs_filters_by_source(recorder, source, db):
    other = Source(name="Question One", slug="question-one", base_url="https://questionone.com")
    db.add(other)
    db.commit()

    recorder.create_run(source.id)
    recorder.create_run(source.id)
    recorder.create_run(other.id)

    assert len(recorder.list_runs()) == 3
    assert len(recorder.list_runs(source_id=source.id)) == 2
