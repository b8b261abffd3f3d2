"""
Shared Flask extension instances.

Created as a separate module to avoid circular imports when route
blueprints need access to extensions that are initialised in server.py.
"""

import os

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Redis when configured, otherwise in-memory (single process).
# RATELIMIT_ENABLED in the app config switches limiting off for tests.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.environ.get("REDIS_URL") or "memory://",
    default_limits=["200 per minute"],
)
