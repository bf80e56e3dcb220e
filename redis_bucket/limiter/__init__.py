"""Leaky bucket admission control backed by Redis.

This package provides multi-tier leaky bucket limits evaluated atomically
inside Redis by a Lua script, with an in-memory store for single-instance
use and tests.
"""

# Loaded before anything reaching core.config, which validates against SCALING
from .backoff import SCALING, Scaling, constant, exponential, get_scaling, linear, power
from .codec import decode_state, encode_state, expiry_seconds
from .dispatch import ScriptDispatcher, redis_client_provider, resolve_client
from .engine import Admission, admit
from .memory import InMemoryBucketStore
from .models import Allow, BucketState, Capacity, Deny, LimitSet, Outcome, Rate, Result, Tier
from .redis_lua import LEAKY_BUCKET_SCRIPT, LEAKY_BUCKET_SHA
from .service import LeakyBucketLimiter, create_limiter, get_limiter, reset_limiter
from .tiers import collect, flatten, from_capacity, from_rate, normalize
from .translate import parse_reply, translate

__all__ = [
    # Models
    "Allow",
    "BucketState",
    "Capacity",
    "Deny",
    "LimitSet",
    "Outcome",
    "Rate",
    "Result",
    "Tier",
    # Tiers
    "collect",
    "flatten",
    "from_capacity",
    "from_rate",
    "normalize",
    # Backoff
    "SCALING",
    "Scaling",
    "constant",
    "exponential",
    "get_scaling",
    "linear",
    "power",
    # Engine and codec
    "Admission",
    "admit",
    "decode_state",
    "encode_state",
    "expiry_seconds",
    "LEAKY_BUCKET_SCRIPT",
    "LEAKY_BUCKET_SHA",
    # Transport and stores
    "InMemoryBucketStore",
    "ScriptDispatcher",
    "redis_client_provider",
    "resolve_client",
    # Results
    "parse_reply",
    "translate",
    # Service
    "LeakyBucketLimiter",
    "create_limiter",
    "get_limiter",
    "reset_limiter",
]
