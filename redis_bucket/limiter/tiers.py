"""Validation and normalization of configured limits.

Limits are given either as window capacities or as flow/burst rates and are
reduced once, at limiter construction, to the ordered tier list that the
admission script consumes.
"""

import math
from collections.abc import Mapping
from typing import Any, Iterable, Optional, Sequence, Union

from redis_bucket.exceptions import ConfigurationError

from .models import Capacity, LimitSet, Rate, Tier

CapacityInput = Union[Capacity, Mapping[str, float]]
RateInput = Union[Rate, Mapping[str, float]]


def _validate(message: str, condition: bool) -> None:
    if not condition:
        raise ConfigurationError(message)


def from_capacity(window: float, min: float, max: float) -> Tier:
    """Translate a window capacity into a flow/burst tier.

    Raises:
        ConfigurationError: If a parameter is not finite, window or min is
            not positive, or max <= min
    """
    _validate(
        "All capacity parameters must be finite",
        all(math.isfinite(value) for value in (window, min, max)),
    )
    _validate(
        "All capacity parameters must be greater than zero",
        min > 0 and window > 0,
    )
    _validate(
        "Maximum capacity must be greater than minimum capacity",
        max > min,
    )
    return Tier(flow=min / window, burst=max - min)


def from_rate(flow: float, burst: float) -> Tier:
    """Validate a flow/burst pair.

    Raises:
        ConfigurationError: If flow or burst is not finite and positive
    """
    _validate(
        "All rate parameters must be finite",
        math.isfinite(flow) and math.isfinite(burst),
    )
    _validate(
        "All rate parameters must be greater than zero",
        flow > 0 and burst > 0,
    )
    return Tier(flow=flow, burst=burst)


def normalize(tiers: Sequence[Tier]) -> LimitSet:
    """Sort tiers slowest first and drop the dominated ones.

    Tiers are ordered by flow, then burst. Walking that order, a tier is only
    kept when its burst is strictly smaller than the burst of the last kept
    tier; otherwise a slower tier with no smaller burst is always at least
    as restrictive.

    Raises:
        ConfigurationError: If no tiers are given
    """
    _validate("At least one rate or capacity metric must be specified", len(tiers) > 0)

    ordered = sorted(tiers, key=lambda tier: (tier.flow, tier.burst))
    kept = [ordered[0]]
    for tier in ordered[1:]:
        if tier.burst < kept[-1].burst:
            kept.append(tier)
    return tuple(kept)


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (Mapping, Capacity, Rate)):
        return [value]
    return list(value)


def _fields(limit: Any, names: Iterable[str]) -> dict[str, float]:
    if isinstance(limit, Mapping):
        missing = [name for name in names if name not in limit]
        if missing:
            raise ConfigurationError(f"Limit is missing fields: {', '.join(missing)}")
        return {name: float(limit[name]) for name in names}
    return {name: float(getattr(limit, name)) for name in names}


def collect(
    capacity: Optional[Union[CapacityInput, Sequence[CapacityInput]]] = None,
    rate: Optional[Union[RateInput, Sequence[RateInput]]] = None,
) -> LimitSet:
    """Validate every configured limit and normalize their union.

    Each argument accepts a single limit or a sequence of them, as model
    instances or plain mappings.
    """
    tiers = [
        from_capacity(**_fields(limit, ("window", "min", "max")))
        for limit in _as_list(capacity)
    ]
    tiers += [
        from_rate(**_fields(limit, ("flow", "burst")))
        for limit in _as_list(rate)
    ]
    return normalize(tiers)


def flatten(limits: LimitSet) -> list[float]:
    """Flatten tiers into the script's positional ``flow, burst`` arguments."""
    params: list[float] = []
    for tier in limits:
        params.extend((tier.flow, tier.burst))
    return params
