"""Distributed leaky bucket limiter backed by a shared Redis store.

Every instance configured with the same limits and prefix shares the same
buckets: decisions are made inside Redis by an atomic script, and nothing
about a bucket is cached in the calling process.

Redis key format:
- {prefix}{key} - MessagePack record of the bucket, expiring once drained
"""

from typing import Any, Optional, Sequence, Union

from redis_bucket.core.config import Settings, settings as default_settings
from redis_bucket.core.logging import get_log_context, get_logger
from redis_bucket.exceptions import InvalidCostError, StateDecodeError

from .backoff import Scaling, get_scaling, linear
from .codec import decode_state
from .dispatch import ClientProvider, ScriptDispatcher, redis_client_provider, resolve_client
from .models import BucketState, Result
from .tiers import CapacityInput, RateInput, collect, flatten
from .translate import parse_reply, translate

logger = get_logger(__name__)


class LeakyBucketLimiter:
    """Admission control against one or more leaky bucket tiers.

    Limits are validated and normalized once, here; ``check`` then costs a
    single script round trip. Store errors propagate to the caller as they
    are: the limiter never retries, and never turns a failure into an allow
    or a deny.

    Args:
        client: Redis client, or a callable providing one (possibly async),
            resolved on every call
        prefix: Prefix for every bucket key
        scaling: Backoff scaling function, or the name of a predefined one
        factor: Factor passed to the scaling function
        capacity: Window capacity limit(s)
        rate: Flow/burst limit(s)
        dispatcher: Script dispatcher, defaults to the leaky bucket script

    Raises:
        ConfigurationError: If no valid limit is configured
    """

    def __init__(
        self,
        client: ClientProvider,
        *,
        prefix: str = "",
        scaling: Union[Scaling, str] = linear,
        factor: float = 2.0,
        capacity: Optional[Union[CapacityInput, Sequence[CapacityInput]]] = None,
        rate: Optional[Union[RateInput, Sequence[RateInput]]] = None,
        dispatcher: Optional[ScriptDispatcher] = None,
    ) -> None:
        self.limits = collect(capacity=capacity, rate=rate)
        self.prefix = prefix
        self._client = client
        self._scaling = get_scaling(scaling) if isinstance(scaling, str) else scaling
        self._factor = factor
        self._params = flatten(self.limits)
        self._dispatcher = dispatcher or ScriptDispatcher()
        logger.info(
            f"Leaky bucket limiter ready with {len(self.limits)} tier(s): "
            + ", ".join(f"flow={t.flow:g}/s burst={t.burst:g}" for t in self.limits)
        )

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def check(self, key: str, cost: float = 1) -> Result:
        """Check whether an action of ``cost`` is currently allowed for ``key``.

        Returns:
            Allow with the remaining free capacity of the binding tier, or
            Deny with the suggested wait in seconds

        Raises:
            InvalidCostError: If cost is negative
        """
        if cost < 0:
            raise InvalidCostError(cost)

        client = await resolve_client(self._client)
        bucket_key = self._make_key(key)
        reply = await self._dispatcher(client, [bucket_key], [cost, *self._params])

        outcome = parse_reply(reply)
        result = translate(outcome, cost, self.limits, self._scaling, self._factor)
        if not outcome.allowed:
            logger.debug(
                "Admission denied",
                extra=get_log_context(
                    key=bucket_key,
                    cost=cost,
                    allow=False,
                    wait=result.wait,
                    tier_index=outcome.tier_index,
                ),
            )
        return result

    async def peek(self, key: str) -> Optional[BucketState]:
        """Read the stored bucket without changing it.

        Usage is reported as last written, before any decay since then.
        Returns None when the key has no usable record.
        """
        client = await resolve_client(self._client)
        data = await client.get(self._make_key(key))
        try:
            return decode_state(data, tiers=len(self.limits))
        except StateDecodeError:
            return None

    async def reset(self, key: str) -> bool:
        """Forget all usage recorded for ``key``."""
        client = await resolve_client(self._client)
        deleted = await client.delete(self._make_key(key))
        logger.info(f"Bucket reset for {self._make_key(key)}")
        return bool(deleted)


def create_limiter(
    settings: Optional[Settings] = None,
    client: Optional[ClientProvider] = None,
) -> LeakyBucketLimiter:
    """Build a limiter from settings.

    Args:
        settings: Settings to use, defaults to the global settings
        client: Client or provider, defaults to a lazily connected Redis
            client for ``settings.redis_url``
    """
    config = settings or default_settings
    return LeakyBucketLimiter(
        client if client is not None else redis_client_provider(config.redis_url),
        prefix=config.bucket_prefix,
        scaling=config.backoff_scaling,
        factor=config.backoff_factor,
        capacity=config.bucket_capacities,
        rate=config.bucket_rates,
    )


_limiter: Optional[LeakyBucketLimiter] = None


def get_limiter(client: Optional[Any] = None) -> LeakyBucketLimiter:
    """Get the global limiter instance, creating it from settings."""
    global _limiter
    if _limiter is None:
        _limiter = create_limiter(client=client)
    return _limiter


def reset_limiter() -> None:
    """Reset the global limiter instance."""
    global _limiter
    _limiter = None
