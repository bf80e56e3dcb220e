"""Redis-backed multi-tier leaky bucket rate limiter."""

from redis_bucket.exceptions import (
    BucketError,
    ConfigurationError,
    InvalidCostError,
    ProcedureReplyError,
    StateDecodeError,
)
from redis_bucket.limiter import (
    Allow,
    Capacity,
    Deny,
    InMemoryBucketStore,
    LeakyBucketLimiter,
    Rate,
    Result,
    SCALING,
    create_limiter,
)

__all__ = [
    "Allow",
    "BucketError",
    "Capacity",
    "ConfigurationError",
    "Deny",
    "InMemoryBucketStore",
    "InvalidCostError",
    "LeakyBucketLimiter",
    "ProcedureReplyError",
    "Rate",
    "Result",
    "SCALING",
    "StateDecodeError",
    "create_limiter",
]
