import asyncio

import pytest

from app.core.exceptions import InvalidArgumentError, MatchingTimeoutError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingScope
from app.services.matching import MatchingSessionCoordinator, build_strategy_registry
from app.services.strategy import MatchingStrategy


class SlowStrategy(MatchingStrategy):
    algorithm = MatchingAlgorithm.WEIGHTED

    async def run(self, request, session_id=None):
        await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_hybrid_shares_session_and_merges_counts(coordinator, sample_store):
    result = await coordinator.run(MatchingRunRequest(algorithm="HYBRID", persist=True))

    assert result.algorithm_used == MatchingAlgorithm.HYBRID
    assert result.results_computed == 12
    assert result.results_saved == 12
    assert result.candidates_processed == 3
    assert result.opportunities_considered == 3
    assert {r.session_id for r in sample_store.results} == {result.session_id}
    assert len(sample_store.results_for(algorithm=MatchingAlgorithm.WEIGHTED)) == 9
    assert len(sample_store.results_for(algorithm=MatchingAlgorithm.STABLE)) == 3
    assert any("under-filled" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_hybrid_recompute_keeps_its_own_weighted_results(coordinator, sample_store):
    await coordinator.run(MatchingRunRequest(algorithm="HYBRID", persist=True))
    result = await coordinator.run(MatchingRunRequest(algorithm="HYBRID", persist=True, recompute=True))

    assert len(sample_store.results) == 12
    assert {r.session_id for r in sample_store.results} == {result.session_id}


@pytest.mark.asyncio
async def test_algorithm_is_case_insensitive(coordinator):
    result = await coordinator.run(MatchingRunRequest(algorithm="stable"))
    assert result.algorithm_used == MatchingAlgorithm.STABLE


@pytest.mark.asyncio
async def test_unknown_algorithm(coordinator):
    with pytest.raises(InvalidArgumentError, match="Unknown algorithm: GREEDY"):
        await coordinator.run(MatchingRunRequest(algorithm="greedy"))


def test_registry_shares_strategy_instances(sample_store):
    registry = build_strategy_registry(sample_store)
    hybrid = registry[MatchingAlgorithm.HYBRID]

    assert set(registry) == set(MatchingAlgorithm)
    assert hybrid.weighted is registry[MatchingAlgorithm.WEIGHTED]
    assert hybrid.stable is registry[MatchingAlgorithm.STABLE]


def test_strategy_missing_from_registry_is_unknown(sample_store):
    registry = build_strategy_registry(sample_store)
    del registry[MatchingAlgorithm.HYBRID]
    coordinator = MatchingSessionCoordinator(registry)

    with pytest.raises(InvalidArgumentError):
        coordinator.strategy_for("HYBRID")


@pytest.mark.asyncio
async def test_run_timeout():
    coordinator = MatchingSessionCoordinator({MatchingAlgorithm.WEIGHTED: SlowStrategy()}, timeout_seconds=0.01)

    with pytest.raises(MatchingTimeoutError) as exc_info:
        await coordinator.run(MatchingRunRequest())

    assert exc_info.value.session_id.startswith("SESSION-")
    assert exc_info.value.session_id in str(exc_info.value)


@pytest.mark.asyncio
async def test_hybrid_reports_repeated_warning_once(coordinator):
    result = await coordinator.run(
        MatchingRunRequest(algorithm="HYBRID", weights={"skills": 0, "interests": 0, "work_mode": 0})
    )

    weight_warnings = [w for w in result.warnings if "Weights sum is 0" in w]
    assert len(weight_warnings) == 1
    assert len([w for w in result.warnings if "under-filled" in w]) == 1


def test_scope_accepts_legacy_names():
    assert MatchingRunRequest(scope="ALL_STUDENTS").scope == MatchingScope.ALL
    assert MatchingRunRequest(scope="one_student").scope == MatchingScope.ONE
