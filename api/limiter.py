"""
api/limiter.py -- Shared slowapi rate limiter for the public OAuth endpoints.

GET /auth/{provider} and its callback are the only unauthenticated routes
that do real work (the callback calls GitHub three times), so they are the
ones worth throttling per client IP. OAUTH_LIMIT comes from
Settings.oauth_rate_limit (OAUTH_RATE_LIMIT env var, default 20/minute).

One shared instance: api/main.py mounts it as middleware and the route module
decorates with it. Separate instances would keep separate counters and the
limit would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

OAUTH_LIMIT: str = get_settings().oauth_rate_limit

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
