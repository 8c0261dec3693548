"""Rate limiter shared by the routers (in-memory storage, keyed by client IP)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from navigator.config import settings

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
