from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Path, Request, status

from app.core.config import get_settings
from app.core.dependencies import get_coordinator, get_results_service
from app.core.rate_limit import limiter
from app.schemas.matching import (
    MatchingResultResponse,
    MatchingRunRequest,
    MatchingRunResult,
    MatchingTaskResponse,
    SessionCountResponse,
    SessionDeleteResponse,
)
from app.services.matching import MatchingSessionCoordinator
from app.services.matching_results import ResultsService

logger = structlog.get_logger()
settings = get_settings()
router = APIRouter(prefix="/matching", tags=["Matching"])


# --- Runs ---


@router.post("/run", response_model=MatchingRunResult)
@limiter.limit(settings.MATCHING_RUN_RATE_LIMIT)
async def run_matching(
    request: Request,
    body: MatchingRunRequest,
    coordinator: MatchingSessionCoordinator = Depends(get_coordinator),
):
    """
    Run a matching algorithm (WEIGHTED, STABLE or HYBRID) and return run statistics.
    """
    return await coordinator.run(body)


@router.post("/recompute", response_model=MatchingRunResult)
@limiter.limit(settings.MATCHING_RUN_RATE_LIMIT)
async def recompute_matching(
    request: Request,
    body: MatchingRunRequest,
    coordinator: MatchingSessionCoordinator = Depends(get_coordinator),
):
    """
    Same as /run with recompute forced on: previous results in scope are deleted first.
    """
    return await coordinator.run(body.with_recompute(True))


@router.post("/run-async", response_model=MatchingTaskResponse, status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(settings.MATCHING_RUN_RATE_LIMIT)
async def run_matching_async(request: Request, body: MatchingRunRequest):
    """
    Queue a matching run on the Celery worker. Poll the task result for run statistics.
    """
    from app.workers.matching import run_matching_task

    task = run_matching_task.delay(body.model_dump(mode="json"))
    logger.info("matching_run_queued", task_id=task.id, algorithm=body.algorithm)
    return MatchingTaskResponse(task_id=task.id)


# --- Results ---


@router.get("/candidates/{candidate_id}", response_model=list[MatchingResultResponse])
async def results_for_candidate(
    candidate_id: UUID,
    service: ResultsService = Depends(get_results_service),
):
    return await service.for_candidate(candidate_id)


@router.get("/candidates/{candidate_id}/top/{n}", response_model=list[MatchingResultResponse])
async def top_opportunities_for_candidate(
    candidate_id: UUID,
    n: int = Path(..., ge=1),
    service: ResultsService = Depends(get_results_service),
):
    """
    Best N opportunities for a candidate, as shown in their recommendations.
    """
    return await service.top_for_candidate(candidate_id, n)


@router.get("/opportunities/{opportunity_id}", response_model=list[MatchingResultResponse])
async def results_for_opportunity(
    opportunity_id: UUID,
    service: ResultsService = Depends(get_results_service),
):
    return await service.for_opportunity(opportunity_id)


@router.get("/opportunities/{opportunity_id}/top/{n}", response_model=list[MatchingResultResponse])
async def top_candidates_for_opportunity(
    opportunity_id: UUID,
    n: int = Path(..., ge=1),
    service: ResultsService = Depends(get_results_service),
):
    return await service.top_for_opportunity(opportunity_id, n)


@router.get("/sessions/{session_id}", response_model=list[MatchingResultResponse])
async def results_for_session(
    session_id: str,
    service: ResultsService = Depends(get_results_service),
):
    return await service.for_session(session_id)


@router.get("/sessions/{session_id}/count", response_model=SessionCountResponse)
async def count_session_results(
    session_id: str,
    service: ResultsService = Depends(get_results_service),
):
    return SessionCountResponse(session_id=session_id, count=await service.count_session(session_id))


@router.delete("/sessions/{session_id}", response_model=SessionDeleteResponse)
async def delete_session_results(
    session_id: str,
    service: ResultsService = Depends(get_results_service),
):
    deleted = await service.delete_session(session_id)
    return SessionDeleteResponse(session_id=session_id, deleted=deleted)


@router.get("/results/{result_id}", response_model=MatchingResultResponse)
async def get_result(
    result_id: UUID,
    service: ResultsService = Depends(get_results_service),
):
    return await service.get(result_id)


@router.delete("/results")
async def delete_all_results(service: ResultsService = Depends(get_results_service)):
    """
    Wipe every stored matching result, all sessions and algorithms included.
    """
    return {"deleted": await service.delete_all()}
