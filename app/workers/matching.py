"""Matching worker: runs heavy matching sessions outside the request cycle."""

import asyncio

import structlog
from celery import shared_task
from pydantic import ValidationError

from app.core.exceptions import InvalidArgumentError, MatchingTimeoutError, NotFoundError, RunInterruptedError
from app.services.matching_store import MatchingStore
# Makes the configured app current so .delay() reaches its broker.
from app.workers.celery_app import celery_app  # noqa: F401

logger = structlog.get_logger()


async def execute_run(payload: dict, store: MatchingStore | None = None) -> dict:
    """Validate ``payload`` as a MatchingRunRequest, run it, return the serialized result.

    Without an explicit ``store`` a short-lived engine is opened for the task,
    since each task gets its own event loop.
    """
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.core.config import get_settings
    from app.core.database import create_standalone_engine
    from app.schemas.matching import MatchingRunRequest
    from app.services.matching import MatchingSessionCoordinator, build_strategy_registry
    from app.services.matching_store import SqlMatchingStore

    settings = get_settings()
    request = MatchingRunRequest.model_validate(payload)

    async def _run(target: MatchingStore) -> dict:
        coordinator = MatchingSessionCoordinator(
            build_strategy_registry(target, settings),
            timeout_seconds=settings.MATCHING_RUN_TIMEOUT_SECONDS,
        )
        result = await coordinator.run(request)
        return result.model_dump(mode="json")

    if store is not None:
        return await _run(store)

    engine = create_standalone_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            result = await _run(SqlMatchingStore(session))
            await session.commit()
            return result
    finally:
        await engine.dispose()


@shared_task(name="matching.run", bind=True, max_retries=2)
def run_matching_task(self, payload: dict):
    logger.info("matching_task_start", task_id=self.request.id, algorithm=payload.get("algorithm"))

    try:
        result = asyncio.run(execute_run(payload))
    except (InvalidArgumentError, NotFoundError, ValidationError) as e:
        # Bad request: retrying cannot help.
        logger.warning("matching_task_rejected", task_id=self.request.id, error=str(e))
        return {"status": "error", "error": str(e)}
    except RunInterruptedError as e:
        # Earlier units are committed under e.session_id; a retry would start a new session.
        logger.error(
            "matching_task_interrupted",
            task_id=self.request.id,
            session_id=e.session_id,
            completed_units=e.completed_units,
            total_units=e.total_units,
        )
        return {
            "status": "error",
            "error": str(e),
            "session_id": e.session_id,
            "completed_units": e.completed_units,
            "total_units": e.total_units,
        }
    except MatchingTimeoutError as e:
        logger.error("matching_task_timeout", task_id=self.request.id, session_id=e.session_id)
        return {"status": "error", "error": str(e), "session_id": e.session_id}
    except Exception as e:
        logger.error("matching_task_error", task_id=self.request.id, error=str(e))
        raise self.retry(exc=e, countdown=30)

    logger.info(
        "matching_task_done",
        task_id=self.request.id,
        session_id=result["session_id"],
        results_saved=result["results_saved"],
    )
    return {"status": "done", "result": result}
