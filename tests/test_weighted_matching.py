from decimal import Decimal
from uuid import UUID

import pytest

from app.core.exceptions import InvalidArgumentError, RunInterruptedError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingScope
from app.services.matching import build_strategy_registry
from app.services.scoring import CandidateProfile, OpportunityProfile


def _weighted(store):
    return build_strategy_registry(store)[MatchingAlgorithm.WEIGHTED]


@pytest.mark.asyncio
async def test_ranks_cover_one_to_n(sample_store):
    await _weighted(sample_store).run(MatchingRunRequest(persist=True))

    for candidate_id in sample_store.candidates:
        records = sample_store.results_for(candidate_id=candidate_id)
        assert sorted(r.recommendation_rank for r in records) == [1, 2, 3]
        best = next(r for r in records if r.recommendation_rank == 1)
        assert best.score.global_score == max(r.score.global_score for r in records)


@pytest.mark.asyncio
async def test_expected_ranking(sample_store):
    await _weighted(sample_store).run(MatchingRunRequest(persist=True))

    ranking = sorted(sample_store.results_for(candidate_id=UUID(int=3)), key=lambda r: r.recommendation_rank)
    assert [r.score.opportunity_id for r in ranking] == [UUID(int=103), UUID(int=102), UUID(int=101)]
    assert [r.score.global_score for r in ranking] == [Decimal("0.5"), Decimal("0.4"), Decimal("0.1")]
    assert [r.above_threshold for r in ranking] == [True, False, False]


@pytest.mark.asyncio
async def test_ties_break_on_opportunity_id(make_store):
    candidate = CandidateProfile(UUID(int=1), frozenset({"python"}))
    store = make_store(
        [candidate],
        [
            OpportunityProfile(UUID(int=30), frozenset({"python"})),
            OpportunityProfile(UUID(int=10), frozenset({"python"})),
            OpportunityProfile(UUID(int=20), frozenset({"python"})),
        ],
    )
    await _weighted(store).run(MatchingRunRequest(persist=True))

    ranks = {r.score.opportunity_id: r.recommendation_rank for r in store.results}
    assert ranks == {UUID(int=10): 1, UUID(int=20): 2, UUID(int=30): 3}


@pytest.mark.asyncio
async def test_run_without_persist_writes_nothing(sample_store):
    result = await _weighted(sample_store).run(MatchingRunRequest())

    assert result.results_computed == 9
    assert result.results_saved == 0
    assert result.candidates_processed == 3
    assert result.opportunities_considered == 3
    assert result.algorithm_used == MatchingAlgorithm.WEIGHTED
    assert result.session_id.startswith("SESSION-")
    assert sample_store.results == []


@pytest.mark.asyncio
async def test_persist_uses_one_session(sample_store):
    result = await _weighted(sample_store).run(MatchingRunRequest(persist=True))

    assert result.results_saved == 9
    assert {r.session_id for r in sample_store.results} == {result.session_id}
    assert {r.algorithm for r in sample_store.results} == {MatchingAlgorithm.WEIGHTED}


@pytest.mark.asyncio
async def test_recompute_is_idempotent(sample_store):
    strategy = _weighted(sample_store)
    request = MatchingRunRequest(persist=True, recompute=True)

    await strategy.run(request)
    first = {(r.score.candidate_id, r.score.opportunity_id): r.recommendation_rank for r in sample_store.results}
    second_run = await strategy.run(request)
    second = {(r.score.candidate_id, r.score.opportunity_id): r.recommendation_rank for r in sample_store.results}

    assert first == second
    assert len(sample_store.results) == 9
    assert {r.session_id for r in sample_store.results} == {second_run.session_id}


@pytest.mark.asyncio
async def test_rerun_without_recompute_accumulates_sessions(sample_store):
    strategy = _weighted(sample_store)
    await strategy.run(MatchingRunRequest(persist=True))
    await strategy.run(MatchingRunRequest(persist=True))

    assert len(sample_store.results) == 18
    assert len({r.session_id for r in sample_store.results}) == 2


@pytest.mark.asyncio
async def test_scope_one(sample_store):
    strategy = _weighted(sample_store)
    await strategy.run(MatchingRunRequest(persist=True))

    result = await strategy.run(
        MatchingRunRequest(scope=MatchingScope.ONE, candidate_id=UUID(int=2), persist=True, recompute=True)
    )

    assert result.candidates_processed == 1
    assert result.results_saved == 3
    assert len(sample_store.results_for(candidate_id=UUID(int=2))) == 3
    assert {r.session_id for r in sample_store.results_for(candidate_id=UUID(int=2))} == {result.session_id}
    # Other candidates keep their earlier results.
    assert len(sample_store.results_for(candidate_id=UUID(int=1))) == 3


@pytest.mark.asyncio
async def test_scope_one_requires_candidate_id(sample_store):
    with pytest.raises(InvalidArgumentError, match="candidate_id is required"):
        await _weighted(sample_store).run(MatchingRunRequest(scope=MatchingScope.ONE))


@pytest.mark.asyncio
async def test_scope_one_unknown_candidate(sample_store):
    with pytest.raises(InvalidArgumentError, match="Candidate not found"):
        await _weighted(sample_store).run(MatchingRunRequest(scope=MatchingScope.ONE, candidate_id=UUID(int=999)))


@pytest.mark.asyncio
async def test_zero_weights_reported_as_warning(sample_store):
    result = await _weighted(sample_store).run(
        MatchingRunRequest(weights={"skills": Decimal("0"), "interests": Decimal("0"), "work_mode": Decimal("0")})
    )

    assert len(result.warnings) == 1
    assert "0" in result.warnings[0]


@pytest.mark.asyncio
async def test_custom_threshold_applied(sample_store):
    await _weighted(sample_store).run(MatchingRunRequest(persist=True, threshold=Decimal("0.95")))

    above = [r for r in sample_store.results if r.above_threshold]
    assert {(r.score.candidate_id, r.score.opportunity_id) for r in above} == {
        (UUID(int=1), UUID(int=101)),
        (UUID(int=2), UUID(int=102)),
    }
    assert {r.threshold for r in sample_store.results} == {Decimal("0.95")}


@pytest.mark.asyncio
async def test_storage_failure_keeps_committed_candidates(sample_store):
    sample_store.fail_on_save = 2

    with pytest.raises(RunInterruptedError) as exc_info:
        await _weighted(sample_store).run(MatchingRunRequest(persist=True))

    assert exc_info.value.completed_units == 1
    assert exc_info.value.total_units == 3
    assert {r.score.candidate_id for r in sample_store.results} == {UUID(int=1)}
    assert len(sample_store.results) == 3
