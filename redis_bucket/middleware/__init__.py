"""ASGI middleware applying the limiter to HTTP requests."""

from redis_bucket.middleware.rate_limit import LeakyBucketMiddleware, client_key

__all__ = ["LeakyBucketMiddleware", "client_key"]
