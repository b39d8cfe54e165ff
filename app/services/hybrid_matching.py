"""HYBRID = weighted ranking followed by stable assignment, under one session id."""

import structlog

from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingRunResult
from app.services.stable_matching import StableMatcher
from app.services.strategy import MatchingStrategy, new_session_id, utcnow
from app.services.weighted_matching import WeightedMatcher

logger = structlog.get_logger()


class HybridOrchestrator(MatchingStrategy):
    """Runs both strategies with the same request and merges their run metadata.

    The ranked recommendations and the stable rosters are persisted
    independently; they are not reconciled into one assignment.
    """

    algorithm = MatchingAlgorithm.HYBRID

    def __init__(self, weighted: WeightedMatcher, stable: StableMatcher):
        self.weighted = weighted
        self.stable = stable

    async def run(self, request: MatchingRunRequest, session_id: str | None = None) -> MatchingRunResult:
        started_at = utcnow()
        session_id = session_id or new_session_id()

        weighted_res = await self.weighted.run(request, session_id=session_id)
        stable_res = await self.stable.run(request, session_id=session_id)

        logger.info(
            "hybrid_run_done",
            session_id=session_id,
            weighted_results=weighted_res.results_computed,
            stable_results=stable_res.results_computed,
        )

        return MatchingRunResult(
            session_id=session_id,
            algorithm_used=self.algorithm,
            candidates_processed=max(weighted_res.candidates_processed, stable_res.candidates_processed),
            opportunities_considered=max(
                weighted_res.opportunities_considered, stable_res.opportunities_considered
            ),
            results_computed=weighted_res.results_computed + stable_res.results_computed,
            results_saved=weighted_res.results_saved + stable_res.results_saved,
            recompute=request.recompute,
            started_at=started_at,
            finished_at=utcnow(),
            # Both halves resolve the same weights; report each warning once.
            warnings=list(dict.fromkeys(weighted_res.warnings + stable_res.warnings)),
        )
