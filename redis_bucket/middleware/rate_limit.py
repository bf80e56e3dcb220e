"""Rate limiting middleware.

Applies a leaky bucket limiter to every request, keyed per API key when one
is presented and per client IP otherwise.
"""

import hashlib
import math
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from redis_bucket.core.logging import get_logger
from redis_bucket.limiter.codec import expiry_seconds
from redis_bucket.limiter.service import LeakyBucketLimiter, get_limiter

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


class ApiKeyTooLongError(Exception):
    """Raised when a bearer token exceeds MAX_API_KEY_LENGTH."""


def client_key(request: Request) -> str:
    """Get the bucket key for a request.

    Uses the API key if available, otherwise falls back to the IP address.
    Both are hashed with SHA-256 so raw keys never reach the store.

    Raises:
        ApiKeyTooLongError: If the bearer token is longer than 512 characters
    """
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        api_key = auth[7:].strip()
        if len(api_key) > MAX_API_KEY_LENGTH:
            raise ApiKeyTooLongError()
        key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
        return f"apikey:{key_hash}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    return f"ip:{ip_hash}"


class LeakyBucketMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce leaky bucket limits on requests.

    Denied requests are answered with 429 and a Retry-After header; allowed
    responses report the remaining free capacity in X-RateLimit-Free.
    Store failures are not masked and surface as server errors.
    """

    def __init__(
        self,
        app: ASGIApp,
        limiter: Optional[LeakyBucketLimiter] = None,
        key_func: Callable[[Request], str] = client_key,
        cost: float = 1,
    ):
        super().__init__(app)
        self._limiter = limiter
        self.key_func = key_func
        self.cost = cost

    def _reset_seconds(self) -> int:
        # Stored usage never exceeds burst, so the record (and its denial
        # count) has expired after this long without requests
        limits = self.limiter.limits
        return expiry_seconds(limits, [tier.burst + self.cost for tier in limits])

    @property
    def limiter(self) -> LeakyBucketLimiter:
        if self._limiter is None:
            self._limiter = get_limiter()
        return self._limiter

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        try:
            key = self.key_func(request)
        except ApiKeyTooLongError:
            return JSONResponse(
                status_code=400,
                content={"detail": f"API key too long (max {MAX_API_KEY_LENGTH} characters)"},
            )

        result = await self.limiter.check(key, self.cost)

        if not result.allow:
            wait = result.wait
            if not math.isfinite(wait):
                wait = float(self._reset_seconds())
            retry_after = max(1, math.ceil(wait))
            logger.info(f"Rate limit exceeded for {key}, retry after {retry_after}s")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": wait,
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Free"] = f"{result.free:g}"
        return response
