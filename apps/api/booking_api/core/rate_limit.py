"""Rate limiting configuration for the public booking endpoints."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from booking_api.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

# In-memory storage: limits are per process, which is enough for abuse
# throttling on the token endpoints.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not IS_TESTING and settings.RATE_LIMIT_PUBLIC > 0,
)

PUBLIC_LIMIT = f"{max(settings.RATE_LIMIT_PUBLIC, 1)}/minute"
