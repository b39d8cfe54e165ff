"""Storage port used by the matching strategies, and its SQLAlchemy implementation."""

from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.candidate import Candidate
from app.models.matching_result import MatchingResult
from app.models.opportunity import Opportunity
from app.schemas.matching import MatchingAlgorithm, WorkMode
from app.services.scoring import CandidateProfile, CompatibilityScore, OpportunityProfile

logger = structlog.get_logger()


@dataclass(frozen=True)
class ResultRecord:
    """A scored pair ready to be written, as produced by a strategy."""

    session_id: str
    score: CompatibilityScore
    threshold: Decimal
    algorithm: MatchingAlgorithm
    recommendation_rank: int | None = None

    @property
    def above_threshold(self) -> bool:
        return self.score.above(self.threshold)


class MatchingStore(Protocol):
    async def list_candidates(self) -> list[CandidateProfile]: ...

    async def get_candidate(self, candidate_id: UUID) -> CandidateProfile | None: ...

    async def list_opportunities(self) -> list[OpportunityProfile]: ...

    async def delete_results_for_candidate(
        self, candidate_id: UUID, *, keep_session: str | None = None
    ) -> int: ...

    async def delete_all_results(self, *, keep_session: str | None = None) -> int: ...

    async def save_results(self, records: Sequence[ResultRecord]) -> int: ...

    def transaction(self) -> AbstractAsyncContextManager["MatchingStore"]: ...


def _work_mode(value: str | None) -> WorkMode | None:
    if not value:
        return None
    try:
        return WorkMode(value.upper())
    except ValueError:
        logger.warning("unknown_work_mode", value=value)
        return None


def candidate_profile(candidate: Candidate) -> CandidateProfile:
    return CandidateProfile(
        id=candidate.id,
        skills=frozenset(candidate.skill_ids or []),
        interests=frozenset(candidate.interest_ids or []),
        work_mode=_work_mode(candidate.preferred_work_mode),
    )


def opportunity_profile(opportunity: Opportunity) -> OpportunityProfile:
    return OpportunityProfile(
        id=opportunity.id,
        required_skills=frozenset(opportunity.required_skill_ids or []),
        tags=frozenset(opportunity.tag_ids or []),
        work_mode=_work_mode(opportunity.work_mode),
        min_seats=opportunity.min_seats or 0,
        max_seats=opportunity.max_seats or 1,
    )


def to_model(record: ResultRecord) -> MatchingResult:
    score = record.score
    return MatchingResult(
        session_id=record.session_id,
        candidate_id=score.candidate_id,
        opportunity_id=score.opportunity_id,
        global_score=score.global_score,
        skills_score=score.skills_score,
        interests_score=score.interests_score,
        work_mode_score=score.work_mode_score,
        skills_weight=score.weights.skills,
        interests_weight=score.weights.interests,
        work_mode_weight=score.weights.work_mode,
        skills_details=score.skills_details,
        interests_details=score.interests_details,
        recommendation_rank=record.recommendation_rank,
        above_threshold=record.above_threshold,
        threshold_used=record.threshold,
        algorithm_used=record.algorithm.value,
    )


class SqlMatchingStore:
    """MatchingStore backed by an AsyncSession.

    Each ``transaction()`` block commits on exit, so units written by a run
    stay persisted even if a later unit fails.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_candidates(self) -> list[CandidateProfile]:
        result = await self.db.execute(select(Candidate).order_by(Candidate.id))
        return [candidate_profile(c) for c in result.scalars().all()]

    async def get_candidate(self, candidate_id: UUID) -> CandidateProfile | None:
        candidate = await self.db.get(Candidate, candidate_id)
        return candidate_profile(candidate) if candidate else None

    async def list_opportunities(self) -> list[OpportunityProfile]:
        result = await self.db.execute(select(Opportunity).order_by(Opportunity.id))
        return [opportunity_profile(o) for o in result.scalars().all()]

    async def delete_results_for_candidate(
        self, candidate_id: UUID, *, keep_session: str | None = None
    ) -> int:
        stmt = delete(MatchingResult).where(MatchingResult.candidate_id == candidate_id)
        if keep_session:
            stmt = stmt.where(MatchingResult.session_id != keep_session)
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def delete_all_results(self, *, keep_session: str | None = None) -> int:
        stmt = delete(MatchingResult)
        if keep_session:
            stmt = stmt.where(MatchingResult.session_id != keep_session)
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def save_results(self, records: Sequence[ResultRecord]) -> int:
        self.db.add_all([to_model(r) for r in records])
        await self.db.flush()
        return len(records)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlMatchingStore"]:
        try:
            yield self
            await self.db.commit()
        except BaseException:
            # Includes CancelledError from a run timeout landing mid-flush or mid-commit.
            await self.db.rollback()
            raise
        # Committed rows are not read back by the run.
        self.db.expunge_all()
