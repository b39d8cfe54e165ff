import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings
from app.core.exceptions import MatchingError, matching_error_handler
from app.core.rate_limit import limiter
from app.services.scoring import Weights, resolve_weights

logger = structlog.get_logger()
settings = get_settings()

# --- Sentry ---
if settings.SENTRY_DSN:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1,
        profiles_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("sentry_initialized", environment=settings.SENTRY_ENVIRONMENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    weights, warnings = resolve_weights(
        None,
        Weights(
            skills=settings.MATCHING_DEFAULT_WEIGHT_SKILLS,
            interests=settings.MATCHING_DEFAULT_WEIGHT_INTERESTS,
            work_mode=settings.MATCHING_DEFAULT_WEIGHT_WORK_MODE,
        ),
    )
    for warning in warnings:
        logger.warning("matching_default_weights_invalid", warning=warning)
    logger.info(
        "app_startup",
        version="0.1.0",
        weights=f"{weights.skills}/{weights.interests}/{weights.work_mode}",
        threshold=str(settings.MATCHING_DEFAULT_THRESHOLD),
        run_timeout=settings.MATCHING_RUN_TIMEOUT_SECONDS,
    )
    yield
    logger.info("app_shutdown")


app = FastAPI(
    title="BestChoice Matching API",
    description="Student / project matching engine: weighted recommendations and stable assignment",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(MatchingError, matching_error_handler)


# --- Security Headers Middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
from app.api.v1.matching import router as matching_router

app.include_router(matching_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health():
    checks = {"version": "0.1.0"}

    # PostgreSQL
    try:
        from sqlalchemy import text
        from app.core.database import async_session

        async with async_session() as session:
            await session.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    # Redis (Celery broker)
    try:
        import redis.asyncio as aioredis

        r = aioredis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    # Matching workers (needed by /matching/run-async only)
    try:
        from app.workers.celery_app import celery_app

        replies = await asyncio.to_thread(celery_app.control.ping, timeout=1)
        checks["matching_workers"] = len(replies)
    except Exception as e:
        checks["matching_workers"] = f"error: {e}"

    all_ok = all(v == "ok" for k, v in checks.items() if k in ("postgres", "redis"))
    checks["status"] = "ok" if all_ok else "degraded"

    return checks
