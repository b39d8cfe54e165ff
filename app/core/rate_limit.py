from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import get_settings

settings = get_settings()

# Matching runs score every candidate against every opportunity; the run
# endpoints carry their own, tighter limit (MATCHING_RUN_RATE_LIMIT).
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    default_limits=["120/minute"],
    enabled=settings.RATE_LIMIT_ENABLED,
)
