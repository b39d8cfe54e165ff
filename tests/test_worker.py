import pytest

from app.core.exceptions import InvalidArgumentError, MatchingTimeoutError
from app.workers import matching as matching_worker
from app.workers.matching import execute_run, run_matching_task


@pytest.mark.asyncio
async def test_execute_run_returns_serialized_result(sample_store):
    result = await execute_run({"algorithm": "WEIGHTED", "persist": True}, store=sample_store)

    assert result["algorithm_used"] == "WEIGHTED"
    assert result["results_saved"] == 9
    assert isinstance(result["started_at"], str)
    assert len(sample_store.results) == 9


@pytest.mark.asyncio
async def test_execute_run_rejects_unknown_algorithm(sample_store):
    with pytest.raises(InvalidArgumentError):
        await execute_run({"algorithm": "GREEDY"}, store=sample_store)


def test_task_reports_invalid_payload_without_retry():
    # Fails validation before any database access.
    result = run_matching_task({"algorithm": "WEIGHTED", "threshold": 5})

    assert result["status"] == "error"
    assert "threshold" in result["error"]


def test_task_is_registered_under_stable_name():
    assert run_matching_task.name == "matching.run"


def test_task_reports_timeout_without_retry(monkeypatch):
    async def timed_out(payload):
        raise MatchingTimeoutError("Matching run SESSION-deadbeef exceeded 300s", session_id="SESSION-deadbeef")

    monkeypatch.setattr(matching_worker, "execute_run", timed_out)

    # A retry would re-raise here when the task is called directly.
    result = run_matching_task({"algorithm": "WEIGHTED", "persist": True})

    assert result["status"] == "error"
    assert result["session_id"] == "SESSION-deadbeef"


def test_task_reports_interrupted_run_without_retry(monkeypatch, sample_store):
    original = matching_worker.execute_run

    async def on_store(payload):
        return await original(payload, store=sample_store)

    monkeypatch.setattr(matching_worker, "execute_run", on_store)
    sample_store.fail_on_save = 2

    result = run_matching_task({"algorithm": "WEIGHTED", "persist": True})

    assert result["status"] == "error"
    assert result["completed_units"] == 1
    assert result["total_units"] == 3
    assert {r.session_id for r in sample_store.results} == {result["session_id"]}
    assert len(sample_store.results) == 3
