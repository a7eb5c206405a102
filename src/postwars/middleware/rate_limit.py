"""Redis-backed fixed-window rate limiting middleware.

Two budgets apply: a general per-IP budget for every request, and a tighter
one for post submissions, which are the expensive call.
"""

import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from postwars.redis_client import get_redis

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})
_SUBMISSION_PATH = "/api/v1/posts"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per client IP using Redis counters."""

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        window_seconds: int = 60,
        submissions_per_window: int = 10,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.submissions_per_window = submissions_per_window

    def _budget(self, request: Request) -> tuple[str, int]:
        if request.method == "POST" and request.url.path == _SUBMISSION_PATH:
            return "submit", self.submissions_per_window
        return "all", self.requests_per_window

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Count the request against its budget, return 429 once exhausted."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        bucket, limit = self._budget(request)
        client_ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // self.window_seconds
        rate_key = f"ratelimit:{bucket}:{client_ip}:{window}"

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not initialized: no rate limiting
            return await call_next(request)

        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, self.window_seconds + 1)
        results: list[Any] = await pipe.execute()

        current_count: int = results[0]
        remaining = max(0, limit - current_count)

        if current_count > limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response
