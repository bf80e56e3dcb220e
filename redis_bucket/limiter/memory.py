"""In-memory store for single-instance deployments and tests.

Speaks the small subset of the redis-py asyncio API the limiter relies on,
running the Python rendition of the admission script instead of Lua. Each
script execution holds the store lock for its whole duration, which gives
the same per-key atomicity Redis gives scripts.
"""

import asyncio
import hashlib
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from redis.exceptions import NoScriptError, ResponseError

from redis_bucket.exceptions import StateDecodeError

from .codec import decode_state, encode_state
from .engine import admit
from .models import Tier
from .redis_lua import LEAKY_BUCKET_SCRIPT, LEAKY_BUCKET_SHA


@dataclass
class _Entry:
    """Stored value with TTL tracking against the store clock."""

    value: bytes
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at


def _lua_number(value: float) -> bytes:
    # Same rendering as Lua's tostring()
    return format(value, ".14g").encode("utf-8")


class InMemoryBucketStore:
    """Process-local stand-in for Redis.

    Note: state is not shared between processes and is lost on restart.

    Args:
        clock: Source of the store's current time in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: dict[str, _Entry] = {}
        self._scripts: set[str] = set()
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        seconds, microseconds = self._split_clock()
        return seconds + microseconds / 1e6

    def _split_clock(self) -> tuple[int, int]:
        now = self._clock()
        seconds = int(now)
        return seconds, int(round((now - seconds) * 1e6))

    def _get(self, key: str, now: float) -> Optional[bytes]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._data[key]
            return None
        return entry.value

    async def time(self) -> tuple[int, int]:
        """Return the store time as ``(seconds, microseconds)``."""
        return self._split_clock()

    async def get(self, key: str) -> Optional[bytes]:
        async with self._lock:
            return self._get(key, self._now())

    async def set(self, key: str, value: bytes, ex: Optional[int] = None) -> bool:
        async with self._lock:
            expires_at = self._now() + ex if ex else None
            self._data[key] = _Entry(value=value, expires_at=expires_at)
            return True

    async def delete(self, *keys: str) -> int:
        async with self._lock:
            return sum(1 for key in keys if self._data.pop(key, None) is not None)

    async def ttl(self, key: str) -> int:
        """Remaining TTL in whole seconds, -1 without expiry, -2 if missing."""
        async with self._lock:
            now = self._now()
            if self._get(key, now) is None:
                return -2
            entry = self._data[key]
            if entry.expires_at is None:
                return -1
            return int(round(entry.expires_at - now))

    async def script_load(self, script: str) -> str:
        if script != LEAKY_BUCKET_SCRIPT:
            raise ResponseError("Only the leaky bucket script is supported")
        self._scripts.add(LEAKY_BUCKET_SHA)
        return LEAKY_BUCKET_SHA

    async def evalsha(self, sha: str, numkeys: int, *keys_and_args: Any) -> list:
        if sha not in self._scripts:
            raise NoScriptError("No matching script. Please use EVAL.")
        return await self._run(numkeys, keys_and_args)

    async def eval(self, script: str, numkeys: int, *keys_and_args: Any) -> list:
        sha = hashlib.sha1(script.encode("utf-8")).hexdigest()
        if sha != LEAKY_BUCKET_SHA:
            raise ResponseError("Only the leaky bucket script is supported")
        self._scripts.add(sha)
        return await self._run(numkeys, keys_and_args)

    async def _run(self, numkeys: int, keys_and_args: tuple) -> list:
        if numkeys != 1:
            raise ResponseError("The leaky bucket script takes exactly one key")
        key, args = keys_and_args[0], [float(arg) for arg in keys_and_args[1:]]
        if len(args) < 3 or len(args) % 2 != 1:
            raise ResponseError("Expected cost followed by flow/burst pairs")
        cost = args[0]
        limits = tuple(
            Tier(flow=args[i], burst=args[i + 1]) for i in range(1, len(args), 2)
        )

        async with self._lock:
            now = self._now()
            try:
                state = decode_state(self._get(key, now), tiers=len(limits))
            except StateDecodeError:
                state = None

            admission = admit(state, now, cost, limits)
            self._data[key] = _Entry(
                value=encode_state(admission.state),
                expires_at=now + admission.expiry,
            )

        outcome = admission.outcome
        return [int(outcome.allowed), _lua_number(outcome.value), outcome.tier_index]
