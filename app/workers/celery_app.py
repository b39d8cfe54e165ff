from celery import Celery

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "bestchoice",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.workers.matching"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # Runs are bounded by MATCHING_RUN_TIMEOUT_SECONDS; this is the hard stop.
    task_time_limit=settings.MATCHING_RUN_TIMEOUT_SECONDS + 60 if settings.MATCHING_RUN_TIMEOUT_SECONDS else None,
)
