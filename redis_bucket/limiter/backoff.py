"""Backoff scaling functions applied to denied requests.

A scaling function receives the configured factor and the accumulated
denials expressed in multiples of the current request's cost, and returns
the multiplier applied to the base wait ``cost / flow``.
"""

import math
from typing import Callable

from redis_bucket.exceptions import ConfigurationError

Scaling = Callable[[float, float], float]


def constant(factor: float, denied: float) -> float:
    return factor


def linear(factor: float, denied: float) -> float:
    return factor * denied


def power(factor: float, denied: float) -> float:
    try:
        return denied ** factor
    except OverflowError:
        return math.inf


def exponential(factor: float, denied: float) -> float:
    # Grows past the float range after about a thousand denials
    try:
        return factor ** denied
    except OverflowError:
        return math.inf


SCALING: dict[str, Scaling] = {
    "constant": constant,
    "linear": linear,
    "power": power,
    "exponential": exponential,
}


def get_scaling(name: str) -> Scaling:
    """Resolve a scaling function by its configured name."""
    try:
        return SCALING[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown backoff scaling: {name}") from None
