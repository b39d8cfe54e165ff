"""
Weighted matching: rank every opportunity for each candidate in scope.

For each candidate the full opportunity set is scored, sorted by global
score descending (ties: opportunity id ascending) and given a dense
recommendation rank 1..N. Writes are committed per candidate.
"""

import asyncio
from collections.abc import Sequence

import structlog

from app.core.exceptions import RunInterruptedError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingRunResult
from app.services.matching_store import ResultRecord
from app.services.scoring import CandidateProfile, OpportunityProfile
from app.services.strategy import RunContext, StoreBackedStrategy

logger = structlog.get_logger()


class WeightedMatcher(StoreBackedStrategy):
    algorithm = MatchingAlgorithm.WEIGHTED

    def rank(
        self,
        candidate: CandidateProfile,
        opportunities: Sequence[OpportunityProfile],
        ctx: RunContext,
    ) -> list[ResultRecord]:
        scores = [self.scoring.score(candidate, opportunity, ctx.weights) for opportunity in opportunities]
        scores.sort(key=lambda s: (-s.global_score, s.opportunity_id))
        return [
            ResultRecord(
                session_id=ctx.session_id,
                score=score,
                threshold=ctx.threshold,
                algorithm=self.algorithm,
                recommendation_rank=rank,
            )
            for rank, score in enumerate(scores, start=1)
        ]

    async def run(self, request: MatchingRunRequest, session_id: str | None = None) -> MatchingRunResult:
        ctx = self._start(request, session_id)
        candidates = await self._load_candidates(request)
        # Loaded once per run, shared by every candidate.
        opportunities = await self.store.list_opportunities()

        logger.info(
            "weighted_run_start",
            session_id=ctx.session_id,
            candidates=len(candidates),
            opportunities=len(opportunities),
            recompute=request.recompute,
            persist=request.persist,
        )

        results_computed = 0
        results_saved = 0
        completed = 0

        for candidate in candidates:
            records = self.rank(candidate, opportunities, ctx)
            results_computed += len(records)

            if request.recompute or request.persist:
                try:
                    async with self.store.transaction() as store:
                        if request.recompute:
                            deleted = await store.delete_results_for_candidate(candidate.id)
                            logger.debug(
                                "weighted_previous_results_deleted",
                                session_id=ctx.session_id,
                                candidate_id=str(candidate.id),
                                deleted=deleted,
                            )
                        if request.persist:
                            results_saved += await store.save_results(records)
                except Exception as e:
                    logger.error(
                        "weighted_run_failed",
                        session_id=ctx.session_id,
                        candidate_id=str(candidate.id),
                        completed_candidates=completed,
                        error=str(e),
                    )
                    raise RunInterruptedError(ctx.session_id, completed, len(candidates), e) from e

            completed += 1
            logger.debug(
                "weighted_candidate_done",
                session_id=ctx.session_id,
                candidate_id=str(candidate.id),
                best_score=str(records[0].score.global_score) if records else None,
            )
            # Cancellation point between candidates.
            await asyncio.sleep(0)

        result = self._finish(
            ctx,
            request,
            candidates_processed=len(candidates),
            opportunities_considered=len(opportunities),
            results_computed=results_computed,
            results_saved=results_saved,
        )
        logger.info(
            "weighted_run_done",
            session_id=ctx.session_id,
            results_computed=results_computed,
            results_saved=results_saved,
        )
        return result
