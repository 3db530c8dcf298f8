# bizhub/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address

from bizhub.core.config import settings

# Shared limiter; main.py attaches it to app.state and routers decorate public endpoints with it.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)

PUBLIC_ENDPOINT_LIMIT = "30/minute"
AUTH_ENDPOINT_LIMIT = "10/minute"
