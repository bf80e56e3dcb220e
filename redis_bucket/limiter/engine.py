"""Leaky bucket admission procedure.

This is the Python rendition of ``LEAKY_BUCKET_SCRIPT``: given the stored
state of one key, the store's current time and the cost of an action, it
decides whether the action fits every tier and computes the state to write
back. The caller must run it atomically per key, as Redis does for scripts.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .codec import expiry_seconds
from .models import BucketState, LimitSet, Outcome


@dataclass(frozen=True)
class Admission:
    """Everything an admission step produces.

    Attributes:
        outcome: Reply returned to the caller
        state: State to persist for the key
        expiry: TTL in whole seconds for the persisted state
    """
    outcome: Outcome
    state: BucketState
    expiry: int


def admit(
    state: Optional[BucketState],
    now: float,
    cost: float,
    limits: LimitSet,
) -> Admission:
    """Run one admission check.

    Args:
        state: Stored state, or None when absent or undecodable
        now: Current time according to the store (seconds)
        cost: Cost of the action being checked
        limits: Normalized tiers, slowest flow first

    Returns:
        Admission with the reply, the new state and its expiry
    """
    if state is None or len(state.used) != len(limits):
        state = BucketState.fresh(now, len(limits))

    # A store clock that went backwards must not add usage
    delta = max(0.0, now - state.last_update)

    decayed: list[float] = []
    pending: list[float] = []
    free, index = math.inf, 0
    for i, tier in enumerate(limits, start=1):
        used = max(0.0, state.used[i - 1] - delta * tier.flow)
        decayed.append(used)
        pending.append(used + cost)
        # Strict comparison keeps the slowest tier on ties
        if tier.burst - pending[-1] < free:
            free, index = tier.burst - pending[-1], i

    expiry = expiry_seconds(limits, pending)

    if free >= 0:
        return Admission(
            outcome=Outcome(allowed=True, value=free, tier_index=index),
            state=BucketState(last_update=now, denied=0.0, used=pending),
            expiry=expiry,
        )

    denied = state.denied + cost
    return Admission(
        outcome=Outcome(allowed=False, value=denied, tier_index=index),
        state=BucketState(last_update=now, denied=denied, used=decayed),
        expiry=expiry,
    )
