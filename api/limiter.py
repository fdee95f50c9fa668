"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in route modules that
need @limiter.exempt. A single shared instance means all routes share the
same in-memory counter store.

default_limits applies Settings.api_rate_limit (300 requests per 15 minutes
per client IP by default) to every route that is not exempted. Failed logins
are tracked separately by auth/bruteforce.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[get_settings().api_rate_limit],
    storage_uri="memory://",
)
