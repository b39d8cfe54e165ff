"""Common plumbing for matching strategies: sessions, scope, weights, run stats."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from app.core.exceptions import InvalidArgumentError
from app.schemas.matching import MatchingAlgorithm, MatchingRunRequest, MatchingRunResult, MatchingScope
from app.services.matching_store import MatchingStore
from app.services.scoring import (
    FALLBACK_WEIGHTS,
    CandidateProfile,
    ScoringEngine,
    Weights,
    resolve_weights,
)

logger = structlog.get_logger()

DEFAULT_THRESHOLD = Decimal("0.50")


def new_session_id() -> str:
    return f"SESSION-{uuid.uuid4().hex[:8]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RunContext:
    session_id: str
    weights: Weights
    threshold: Decimal
    started_at: datetime
    warnings: list[str] = field(default_factory=list)


class MatchingStrategy(ABC):
    algorithm: MatchingAlgorithm

    @abstractmethod
    async def run(self, request: MatchingRunRequest, session_id: str | None = None) -> MatchingRunResult:
        """Execute one run. ``session_id`` lets a caller group several runs."""


class StoreBackedStrategy(MatchingStrategy):
    """Base for strategies that read candidates/opportunities and write results."""

    def __init__(
        self,
        store: MatchingStore,
        scoring: ScoringEngine | None = None,
        default_weights: Weights = FALLBACK_WEIGHTS,
        default_threshold: Decimal = DEFAULT_THRESHOLD,
    ):
        self.store = store
        self.scoring = scoring or ScoringEngine()
        self.default_weights = default_weights
        self.default_threshold = default_threshold

    def _start(self, request: MatchingRunRequest, session_id: str | None) -> RunContext:
        weights, warnings = resolve_weights(request.weights, self.default_weights)
        threshold = request.threshold if request.threshold is not None else self.default_threshold
        if not Decimal("0") <= threshold <= Decimal("1"):
            raise InvalidArgumentError(f"threshold must be within [0, 1], got {threshold}")

        ctx = RunContext(
            session_id=session_id or new_session_id(),
            weights=weights,
            threshold=threshold,
            started_at=utcnow(),
            warnings=warnings,
        )
        for warning in warnings:
            logger.warning("matching_weights_fallback", session_id=ctx.session_id, warning=warning)
        return ctx

    async def _load_candidates(self, request: MatchingRunRequest) -> list[CandidateProfile]:
        if request.scope == MatchingScope.ONE:
            if request.candidate_id is None:
                raise InvalidArgumentError("candidate_id is required when scope=ONE")
            candidate = await self.store.get_candidate(request.candidate_id)
            if candidate is None:
                raise InvalidArgumentError(f"Candidate not found: {request.candidate_id}")
            return [candidate]
        return await self.store.list_candidates()

    def _finish(
        self,
        ctx: RunContext,
        request: MatchingRunRequest,
        *,
        candidates_processed: int,
        opportunities_considered: int,
        results_computed: int,
        results_saved: int,
    ) -> MatchingRunResult:
        return MatchingRunResult(
            session_id=ctx.session_id,
            algorithm_used=self.algorithm,
            candidates_processed=candidates_processed,
            opportunities_considered=opportunities_considered,
            results_computed=results_computed,
            results_saved=results_saved,
            recompute=request.recompute,
            started_at=ctx.started_at,
            finished_at=utcnow(),
            warnings=list(ctx.warnings),
        )
