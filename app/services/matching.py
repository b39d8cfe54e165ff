"""Entry point of the matching engine: strategy registry and run coordinator."""

import asyncio
from collections.abc import Mapping

import structlog

from app.core.config import Settings, get_settings
from app.core.exceptions import InvalidArgumentError, MatchingTimeoutError, RunInterruptedError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingRunResult
from app.services.hybrid_matching import HybridOrchestrator
from app.services.matching_store import MatchingStore
from app.services.scoring import ScoringEngine, Weights
from app.services.stable_matching import StableMatcher
from app.services.strategy import MatchingStrategy, new_session_id
from app.services.weighted_matching import WeightedMatcher

logger = structlog.get_logger()


def build_strategy_registry(
    store: MatchingStore,
    settings: Settings | None = None,
    scoring: ScoringEngine | None = None,
) -> dict[MatchingAlgorithm, MatchingStrategy]:
    """Build the algorithm -> strategy mapping handed to the coordinator."""
    settings = settings or get_settings()
    scoring = scoring or ScoringEngine()
    options = {
        "scoring": scoring,
        "default_weights": Weights(
            skills=settings.MATCHING_DEFAULT_WEIGHT_SKILLS,
            interests=settings.MATCHING_DEFAULT_WEIGHT_INTERESTS,
            work_mode=settings.MATCHING_DEFAULT_WEIGHT_WORK_MODE,
        ),
        "default_threshold": settings.MATCHING_DEFAULT_THRESHOLD,
    }
    weighted = WeightedMatcher(store, **options)
    stable = StableMatcher(store, **options)
    return {
        MatchingAlgorithm.WEIGHTED: weighted,
        MatchingAlgorithm.STABLE: stable,
        MatchingAlgorithm.HYBRID: HybridOrchestrator(weighted, stable),
    }


class MatchingSessionCoordinator:
    def __init__(
        self,
        strategies: Mapping[MatchingAlgorithm, MatchingStrategy],
        timeout_seconds: float | None = None,
    ):
        self.strategies = dict(strategies)
        self.timeout_seconds = timeout_seconds or None

    def strategy_for(self, algorithm: str) -> MatchingStrategy:
        try:
            strategy = self.strategies.get(MatchingAlgorithm(algorithm))
        except ValueError:
            strategy = None
        if strategy is None:
            raise InvalidArgumentError(f"Unknown algorithm: {algorithm}")
        return strategy

    async def run(self, request: MatchingRunRequest) -> MatchingRunResult:
        strategy = self.strategy_for(request.algorithm)
        session_id = new_session_id()

        logger.info(
            "matching_run_start",
            session_id=session_id,
            algorithm=request.algorithm,
            scope=request.scope.value,
            recompute=request.recompute,
            persist=request.persist,
        )

        try:
            if self.timeout_seconds:
                result = await asyncio.wait_for(
                    strategy.run(request, session_id=session_id), timeout=self.timeout_seconds
                )
            else:
                result = await strategy.run(request, session_id=session_id)
        except asyncio.TimeoutError:
            logger.error(
                "matching_run_timeout",
                session_id=session_id,
                algorithm=request.algorithm,
                timeout=self.timeout_seconds,
            )
            raise MatchingTimeoutError(
                f"Matching run {session_id} exceeded {self.timeout_seconds:g}s; "
                "units committed before the timeout are kept",
                session_id=session_id,
            ) from None
        except RunInterruptedError as e:
            logger.error(
                "matching_run_failed",
                session_id=e.session_id,
                algorithm=request.algorithm,
                completed_units=e.completed_units,
                total_units=e.total_units,
            )
            raise

        logger.info(
            "matching_run_done",
            session_id=result.session_id,
            algorithm=result.algorithm_used.value,
            candidates=result.candidates_processed,
            opportunities=result.opportunities_considered,
            results_computed=result.results_computed,
            results_saved=result.results_saved,
            warnings=len(result.warnings),
            duration_ms=int((result.finished_at - result.started_at).total_seconds() * 1000),
        )
        return result
