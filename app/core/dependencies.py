from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.services.matching import MatchingSessionCoordinator, build_strategy_registry
from app.services.matching_results import ResultsService
from app.services.matching_store import MatchingStore, SqlMatchingStore


def get_matching_store(db: AsyncSession = Depends(get_db)) -> MatchingStore:
    return SqlMatchingStore(db)


def get_coordinator(
    store: MatchingStore = Depends(get_matching_store),
    settings: Settings = Depends(get_settings),
) -> MatchingSessionCoordinator:
    return MatchingSessionCoordinator(
        build_strategy_registry(store, settings),
        timeout_seconds=settings.MATCHING_RUN_TIMEOUT_SECONDS,
    )


def get_results_service(db: AsyncSession = Depends(get_db)) -> ResultsService:
    return ResultsService(db)
