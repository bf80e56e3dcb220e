"""Data models for leaky bucket admission control."""

from dataclasses import dataclass, field
from typing import Tuple, Union


@dataclass(frozen=True, order=True)
class Tier:
    """A single leaky bucket limit.

    Attributes:
        flow: Capacity units restored per second
        burst: Maximum outstanding usage before requests are denied
    """
    flow: float
    burst: float


@dataclass(frozen=True)
class Rate:
    """A limit expressed directly as a flow/burst pair."""
    flow: float
    burst: float


@dataclass(frozen=True)
class Capacity:
    """A limit expressed as a capacity over a time window.

    Attributes:
        window: Time window over which to apply this capacity (seconds)
        min: Minimum guaranteed capacity within the window
        max: Maximum tolerable capacity within the window
    """
    window: float
    min: float
    max: float


# Normalized, ordered and pruned tiers
LimitSet = Tuple[Tier, ...]


@dataclass
class BucketState:
    """Per-key record kept in the store.

    Attributes:
        last_update: Store time of the last admission check (seconds)
        denied: Cost accumulated by consecutive denials
        used: Outstanding usage per tier, in LimitSet order
    """
    last_update: float
    denied: float = 0.0
    used: list[float] = field(default_factory=list)

    @classmethod
    def fresh(cls, now: float, tiers: int) -> "BucketState":
        """Create the state of a bucket that has never been used."""
        return cls(last_update=now, denied=0.0, used=[0.0] * tiers)


@dataclass(frozen=True)
class Outcome:
    """Decoded reply of the admission procedure.

    Attributes:
        allowed: Whether the action was admitted
        value: Minimum free capacity when allowed, denied accumulator otherwise
        tier_index: 1-based index of the binding tier
    """
    allowed: bool
    value: float
    tier_index: int


@dataclass(frozen=True)
class Allow:
    """Result type for an allowed action."""
    free: float
    allow: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Deny:
    """Result type for a rejected action."""
    wait: float
    allow: bool = field(default=False, init=False)


Result = Union[Allow, Deny]
