"""
api/limiter.py -- The slowapi limiter behind the Telegram login rate limit.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware); api/routes/v1/auth.py
applies LOGIN_RATE_LIMIT to POST /auth/telegram with @limiter.limit(). That is
the only limited route: /auth/me and token checks are pure CPU and stay unthrottled.

Counters are kept in process memory, keyed by client IP. Behind several workers
each process counts on its own. Tests switch it off with limiter.enabled = False.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
