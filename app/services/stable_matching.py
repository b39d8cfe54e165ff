"""
Stable matching: capacitated deferred acceptance over compatibility scores.

ALGORITHM:
    1. Score every (candidate, opportunity) pair once.
    2. Each candidate ranks opportunities by score descending
       (ties: opportunity id ascending).
    3. Free candidates propose in turn to their next untried opportunity.
       - free seat            -> accepted
       - roster at capacity   -> accepted only if strictly better than the
                                 worst occupant, who is evicted and becomes free
       - otherwise            -> rejected, candidate stays free
    4. Stops when every candidate is seated or has tried every opportunity.

The same score matrix orders both sides: opportunities prefer the
candidates who score highest against them. Only the upper capacity bound
(max_seats) is enforced; under-filled rosters are reported as warnings.
"""

import asyncio
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

import structlog

from app.core.exceptions import RunInterruptedError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingRunResult, MatchingScope
from app.services.matching_store import ResultRecord
from app.services.scoring import CandidateProfile, CompatibilityScore, OpportunityProfile, Weights
from app.services.strategy import RunContext, StoreBackedStrategy

logger = structlog.get_logger()

PairKey = tuple[UUID, UUID]


@dataclass
class Rejection:
    candidate_id: UUID
    opportunity_id: UUID
    score: Decimal
    evicted: bool = False


@dataclass
class StableOutcome:
    rosters: dict[UUID, list[UUID]]
    unmatched: list[UUID] = field(default_factory=list)
    proposals: int = 0
    rejections: list[Rejection] = field(default_factory=list)


def deferred_acceptance(
    candidate_ids: Sequence[UUID],
    capacities: Mapping[UUID, int],
    scores: Mapping[PairKey, Decimal],
) -> StableOutcome:
    """Run capacitated deferred acceptance.

    Args:
        candidate_ids: Candidates taking part. Proposals start in id order.
        capacities: Opportunity id -> seat count (max_seats, at least 1).
        scores: (candidate_id, opportunity_id) -> global score, for every pair.

    Returns:
        StableOutcome whose rosters are sorted best first
        (score descending, candidate id ascending).
    """
    preferences = {
        cid: sorted(capacities, key=lambda oid, cid=cid: (-scores[cid, oid], oid)) for cid in candidate_ids
    }
    next_choice = {cid: 0 for cid in candidate_ids}
    rosters: dict[UUID, list[UUID]] = {oid: [] for oid in capacities}
    outcome = StableOutcome(rosters=rosters)

    free = deque(sorted(candidate_ids))
    while free:
        cid = free.popleft()
        choices = preferences[cid]
        idx = next_choice[cid]
        if idx >= len(choices):
            outcome.unmatched.append(cid)
            continue

        oid = choices[idx]
        next_choice[cid] = idx + 1
        outcome.proposals += 1
        roster = rosters[oid]

        if len(roster) < capacities[oid]:
            roster.append(cid)
            continue

        # Lowest score; among equals the highest candidate id goes first.
        worst = max(roster, key=lambda other: (-scores[other, oid], other))
        if scores[cid, oid] > scores[worst, oid]:
            roster.remove(worst)
            roster.append(cid)
            free.append(worst)
            outcome.rejections.append(Rejection(worst, oid, scores[worst, oid], evicted=True))
        else:
            free.append(cid)
            outcome.rejections.append(Rejection(cid, oid, scores[cid, oid]))

    for oid, roster in rosters.items():
        roster.sort(key=lambda c, oid=oid: (-scores[c, oid], c))
    outcome.unmatched.sort()
    return outcome


class StableMatcher(StoreBackedStrategy):
    algorithm = MatchingAlgorithm.STABLE

    async def build_matrix(
        self,
        candidates: Sequence[CandidateProfile],
        opportunities: Sequence[OpportunityProfile],
        weights: Weights,
    ) -> dict[PairKey, CompatibilityScore]:
        matrix: dict[PairKey, CompatibilityScore] = {}
        for candidate in candidates:
            for opportunity in opportunities:
                matrix[candidate.id, opportunity.id] = self.scoring.score(candidate, opportunity, weights)
            await asyncio.sleep(0)
        return matrix

    async def _reset(self, request: MatchingRunRequest, candidates: Sequence[CandidateProfile], ctx: RunContext):
        async with self.store.transaction() as store:
            if request.scope == MatchingScope.ONE:
                deleted = await store.delete_results_for_candidate(
                    candidates[0].id, keep_session=ctx.session_id
                )
            else:
                deleted = await store.delete_all_results(keep_session=ctx.session_id)
        logger.warning(
            "stable_recompute_reset",
            session_id=ctx.session_id,
            scope=request.scope.value,
            deleted=deleted,
        )

    async def run(self, request: MatchingRunRequest, session_id: str | None = None) -> MatchingRunResult:
        ctx = self._start(request, session_id)
        candidates = await self._load_candidates(request)
        opportunities = await self.store.list_opportunities()

        logger.info(
            "stable_run_start",
            session_id=ctx.session_id,
            candidates=len(candidates),
            opportunities=len(opportunities),
            recompute=request.recompute,
            persist=request.persist,
        )

        if request.recompute:
            await self._reset(request, candidates, ctx)

        matrix = await self.build_matrix(candidates, opportunities, ctx.weights)
        outcome = deferred_acceptance(
            [c.id for c in candidates],
            {o.id: o.capacity for o in opportunities},
            {key: score.global_score for key, score in matrix.items()},
        )
        for rejection in outcome.rejections:
            logger.debug(
                "stable_proposal_rejected",
                session_id=ctx.session_id,
                candidate_id=str(rejection.candidate_id),
                opportunity_id=str(rejection.opportunity_id),
                score=str(rejection.score),
                evicted=rejection.evicted,
            )

        results_computed = 0
        results_saved = 0
        completed = 0

        for opportunity in opportunities:
            roster = outcome.rosters[opportunity.id]
            records = [
                ResultRecord(
                    session_id=ctx.session_id,
                    score=matrix[cid, opportunity.id],
                    threshold=ctx.threshold,
                    algorithm=self.algorithm,
                    recommendation_rank=rank,
                )
                for rank, cid in enumerate(roster, start=1)
            ]
            results_computed += len(records)

            if request.scope == MatchingScope.ALL and len(roster) < opportunity.min_seats:
                ctx.warnings.append(
                    f"Opportunity {opportunity.id} under-filled: {len(roster)}/{opportunity.min_seats} minimum seats"
                )

            if request.persist and records:
                try:
                    async with self.store.transaction() as store:
                        results_saved += await store.save_results(records)
                except Exception as e:
                    logger.error(
                        "stable_run_failed",
                        session_id=ctx.session_id,
                        opportunity_id=str(opportunity.id),
                        completed_opportunities=completed,
                        error=str(e),
                    )
                    raise RunInterruptedError(ctx.session_id, completed, len(opportunities), e) from e

            completed += 1
            await asyncio.sleep(0)

        logger.info(
            "stable_run_done",
            session_id=ctx.session_id,
            proposals=outcome.proposals,
            matched=len(candidates) - len(outcome.unmatched),
            unmatched=len(outcome.unmatched),
            results_saved=results_saved,
        )
        return self._finish(
            ctx,
            request,
            candidates_processed=len(candidates),
            opportunities_considered=len(opportunities),
            results_computed=results_computed,
            results_saved=results_saved,
        )
