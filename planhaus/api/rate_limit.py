"""
In-memory, fixed-window request rate limiting.

Each app owns its limiters (``app.state.rate_limiters``); the HTTP
middleware picks the auth limiter for credential endpoints and the general
limiter for the rest of the API.
"""
import asyncio
import math
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

AUTH_PATHS = ('/api/auth/login', '/api/auth/signup')


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    def headers(self) -> Dict[str, str]:
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': datetime.fromtimestamp(self.reset_at, timezone.utc).isoformat(),
        }


class RateLimiter:
    def __init__(self, window: float, max_requests: int, message: str = "Too many requests, please try again later",
                 key_prefix: str = '', skip_successful_requests: bool = False,
                 clock: Callable[[], float] = time.time):
        self.window = window
        self.max_requests = max_requests
        self.message = message
        self.key_prefix = key_prefix
        self.skip_successful_requests = skip_successful_requests
        self._clock = clock
        self._store: Dict[str, Dict[str, float]] = {}

    def __len__(self):
        return len(self._store)

    def key_for(self, client_ip: Optional[str]) -> str:
        return f"{self.key_prefix}{client_ip or 'unknown'}"

    def hit(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` unless its window is already full."""
        now = self._clock()
        entry = self._store.get(key)
        if entry is None or entry['reset_time'] < now:
            entry = {'count': 0, 'reset_time': now + self.window}
            self._store[key] = entry

        retry_after = max(0, math.ceil(entry['reset_time'] - now))
        if entry['count'] >= self.max_requests:
            logger.info(f"Rate limit exceeded for {key} ({entry['count']}/{self.max_requests})")
            return RateLimitResult(False, self.max_requests, 0, entry['reset_time'], retry_after)

        entry['count'] += 1
        remaining = max(0, self.max_requests - int(entry['count']))
        return RateLimitResult(True, self.max_requests, remaining, entry['reset_time'], retry_after)

    def release(self, key: str) -> Optional[int]:
        """
        Give back one counted request (used for requests that should not count).

        Returns the requests remaining in the window, or None for an unknown key.
        """
        entry = self._store.get(key)
        if entry is None:
            return None
        entry['count'] = max(0, entry['count'] - 1)
        return max(0, self.max_requests - int(entry['count']))

    def cleanup(self) -> int:
        """Drop entries whose window has ended."""
        now = self._clock()
        expired = [key for key, entry in self._store.items() if entry['reset_time'] < now]
        for key in expired:
            del self._store[key]
        return len(expired)

    def reset(self):
        self._store.clear()


def default_rate_limiters() -> Dict[str, RateLimiter]:
    general = Config.RATE_LIMITS['general']
    auth = Config.RATE_LIMITS['auth']
    return {
        'general': RateLimiter(general['window'], general['max'],
                               message="Too many requests. Please slow down.",
                               skip_successful_requests=True),
        'auth': RateLimiter(auth['window'], auth['max'],
                            message="Too many login attempts. Please try again later.",
                            key_prefix='auth:'),
    }


def limiter_for_path(limiters: Dict[str, RateLimiter], path: str) -> Optional[RateLimiter]:
    if path in AUTH_PATHS:
        return limiters.get('auth')
    if path.startswith('/api/'):
        return limiters.get('general')
    return None


async def rate_limit_middleware(request: Request, call_next):
    limiters = getattr(request.app.state, "rate_limiters", None) or {}
    limiter = limiter_for_path(limiters, request.url.path)
    if limiter is None:
        return await call_next(request)

    key = limiter.key_for(request.client.host if request.client else None)
    result = limiter.hit(key)
    if not result.allowed:
        return JSONResponse(
            status_code=429,
            content={"error": limiter.message, "retryAfter": result.retry_after},
            headers=dict(result.headers(), **{'Retry-After': str(result.retry_after)}),
        )

    response = await call_next(request)
    if limiter.skip_successful_requests and 200 <= response.status_code < 300:
        remaining = limiter.release(key)
        if remaining is not None:
            result = replace(result, remaining=remaining)
    for header, value in result.headers().items():
        response.headers[header] = value
    return response


async def cleanup_loop(limiters: Dict[str, RateLimiter], interval: float = Config.RATE_LIMIT_CLEANUP_SECONDS):
    """Periodically drop expired rate limit windows."""
    while True:
        await asyncio.sleep(interval)
        removed = sum(limiter.cleanup() for limiter in limiters.values())
        if removed:
            logger.debug(f"Cleaned up {removed} expired rate limit entries")
