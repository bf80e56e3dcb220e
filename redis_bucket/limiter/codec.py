"""MessagePack codec for stored bucket records.

A record is three consecutive MessagePack objects: the last update time, the
denied accumulator and the array of per-tier usage. This is the layout Lua's
``cmsgpack.pack(now, denied, used)`` produces, so records written by the
Redis script and by the in-memory store are interchangeable.
"""

import math
from numbers import Real
from typing import Optional, Sequence

import msgpack

from redis_bucket.exceptions import StateDecodeError

from .models import BucketState, LimitSet


def encode_state(state: BucketState) -> bytes:
    """Pack a bucket state into its stored representation."""
    return (
        msgpack.packb(float(state.last_update))
        + msgpack.packb(float(state.denied))
        + msgpack.packb([float(value) for value in state.used])
    )


def _number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def decode_state(data: Optional[bytes], tiers: Optional[int] = None) -> BucketState:
    """Unpack a stored record.

    Args:
        data: Raw record, or None when the key does not exist
        tiers: Expected number of tiers; a mismatch is a decode failure

    Raises:
        StateDecodeError: If the record is absent, malformed or has the
            wrong shape
    """
    if not data:
        raise StateDecodeError("No bucket record")

    unpacker = msgpack.Unpacker(raw=False, strict_map_key=False)
    unpacker.feed(data)
    try:
        values = list(unpacker)
    except (ValueError, msgpack.UnpackException) as e:
        raise StateDecodeError(f"Invalid bucket record: {e}") from e
    if unpacker.tell() != len(data):
        raise StateDecodeError("Bucket record ends in an incomplete object")

    if len(values) != 3:
        raise StateDecodeError(f"Expected 3 record fields, found {len(values)}")

    last_update, denied, used = values
    if not (_number(last_update) and _number(denied) and isinstance(used, list)):
        raise StateDecodeError("Bucket record fields have unexpected types")
    if not all(_number(value) and value >= 0 for value in used):
        raise StateDecodeError("Bucket usage must be non-negative numbers")
    if tiers is not None and len(used) != tiers:
        raise StateDecodeError(f"Bucket record has {len(used)} tiers, expected {tiers}")

    return BucketState(
        last_update=float(last_update),
        denied=float(denied),
        used=[float(value) for value in used],
    )


def expiry_seconds(limits: LimitSet, used: Sequence[float]) -> int:
    """Whole seconds until every tier has drained from its largest value."""
    return max(
        math.ceil(max(tier.burst, value) / tier.flow)
        for tier, value in zip(limits, used)
    )
