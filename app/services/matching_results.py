"""Read and bulk-delete access to persisted matching results."""

from uuid import UUID

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidArgumentError, NotFoundError
from app.models.candidate import Candidate
from app.models.matching_result import MatchingResult
from app.models.opportunity import Opportunity

logger = structlog.get_logger()


class ResultsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _ensure_exists(self, model, entity_id: UUID, label: str) -> None:
        if await self.db.get(model, entity_id) is None:
            raise NotFoundError(f"{label} not found: {entity_id}")

    async def for_candidate(self, candidate_id: UUID, limit: int | None = None) -> list[MatchingResult]:
        await self._ensure_exists(Candidate, candidate_id, "Candidate")
        query = (
            select(MatchingResult)
            .where(MatchingResult.candidate_id == candidate_id)
            .order_by(MatchingResult.global_score.desc(), MatchingResult.opportunity_id)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        results = list(result.scalars().all())
        logger.info("results_for_candidate", candidate_id=str(candidate_id), count=len(results))
        return results

    async def for_opportunity(self, opportunity_id: UUID, limit: int | None = None) -> list[MatchingResult]:
        await self._ensure_exists(Opportunity, opportunity_id, "Opportunity")
        query = (
            select(MatchingResult)
            .where(MatchingResult.opportunity_id == opportunity_id)
            .order_by(MatchingResult.global_score.desc(), MatchingResult.candidate_id)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        results = list(result.scalars().all())
        logger.info("results_for_opportunity", opportunity_id=str(opportunity_id), count=len(results))
        return results

    async def top_for_candidate(self, candidate_id: UUID, n: int) -> list[MatchingResult]:
        if n < 1:
            raise InvalidArgumentError("n must be at least 1")
        return await self.for_candidate(candidate_id, limit=n)

    async def top_for_opportunity(self, opportunity_id: UUID, n: int) -> list[MatchingResult]:
        if n < 1:
            raise InvalidArgumentError("n must be at least 1")
        return await self.for_opportunity(opportunity_id, limit=n)

    async def for_session(self, session_id: str) -> list[MatchingResult]:
        result = await self.db.execute(
            select(MatchingResult)
            .where(MatchingResult.session_id == session_id)
            .order_by(
                MatchingResult.candidate_id,
                MatchingResult.global_score.desc(),
                MatchingResult.algorithm_used,
            )
        )
        return list(result.scalars().all())

    async def get(self, result_id: UUID) -> MatchingResult:
        result = await self.db.get(MatchingResult, result_id)
        if result is None:
            raise NotFoundError(f"Matching result not found: {result_id}")
        return result

    async def count_session(self, session_id: str) -> int:
        count = await self.db.scalar(
            select(func.count()).select_from(MatchingResult).where(MatchingResult.session_id == session_id)
        )
        return count or 0

    async def delete_session(self, session_id: str) -> int:
        result = await self.db.execute(delete(MatchingResult).where(MatchingResult.session_id == session_id))
        deleted = result.rowcount or 0
        logger.info("matching_session_deleted", session_id=session_id, deleted=deleted)
        return deleted

    async def delete_all(self) -> int:
        result = await self.db.execute(delete(MatchingResult))
        deleted = result.rowcount or 0
        logger.warning("matching_results_deleted_all", deleted=deleted)
        return deleted
