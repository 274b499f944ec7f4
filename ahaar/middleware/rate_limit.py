from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ahaar.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService

RATE_LIMIT_MESSAGE = "Too many requests, try again later."


class ClientRateLimitMiddleware(BaseHTTPMiddleware):
    """Uniform per-client budget applied before any route runs."""

    def __init__(self, app, *, rate_limiter: RateLimiterService | None = None) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter or InMemoryRateLimiterService()

    async def dispatch(self, request: Request, call_next):
        decision = self._rate_limiter.check(client_key=client_key(request))
        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": RATE_LIMIT_MESSAGE},
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


def client_key(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"
