"""Translation of raw admission replies into caller-facing results."""

from typing import Any

from redis_bucket.exceptions import ProcedureReplyError

from .backoff import Scaling
from .models import Allow, Deny, LimitSet, Outcome, Result


def _to_float(value: Any) -> float:
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return float(value)


def parse_reply(reply: Any) -> Outcome:
    """Decode the script's ``[allowed, value, tier_index]`` reply.

    Raises:
        ProcedureReplyError: If the reply does not have that shape
    """
    if not isinstance(reply, (list, tuple)) or len(reply) != 3:
        raise ProcedureReplyError(reply)
    try:
        allowed = int(_to_float(reply[0]))
        value = _to_float(reply[1])
        tier_index = int(_to_float(reply[2]))
    except (TypeError, ValueError) as e:
        raise ProcedureReplyError(reply, f"Unreadable admission reply ({e})") from e
    if allowed not in (0, 1) or tier_index < 1:
        raise ProcedureReplyError(reply)
    return Outcome(allowed=bool(allowed), value=value, tier_index=tier_index)


def translate(
    outcome: Outcome,
    cost: float,
    limits: LimitSet,
    scaling: Scaling,
    factor: float,
) -> Result:
    """Turn an admission outcome into an Allow or Deny result.

    The wait of a denial is the time the binding tier needs to drain this
    request's cost, scaled by the accumulated denials measured in multiples
    of that cost.
    """
    if outcome.allowed:
        return Allow(free=outcome.value)

    if outcome.tier_index > len(limits):
        raise ProcedureReplyError(outcome, "Tier index out of range")
    if cost == 0:
        return Deny(wait=0.0)

    flow = limits[outcome.tier_index - 1].flow
    return Deny(wait=(cost / flow) * scaling(factor, outcome.value / cost))
