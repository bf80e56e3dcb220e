"""Custom exceptions for the leaky bucket limiter."""


class BucketError(Exception):
    """Base class for limiter exceptions.

    Errors raised by the Redis client itself are never wrapped in this
    hierarchy; they reach the caller of ``check`` unchanged.
    """

    def __init__(self, message: str = "Bucket error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(BucketError, ValueError):
    """Raised when limits supplied at construction are invalid.

    Covers a missing limit set, non-positive window/min/flow/burst values
    and capacities whose max does not exceed their min.
    """


class InvalidCostError(BucketError, ValueError):
    """Raised when a check is requested with a negative cost."""

    def __init__(self, cost: float):
        self.cost = cost
        super().__init__(f"Cost must be zero or greater, got {cost}")


class StateDecodeError(BucketError):
    """Raised when a stored bucket record cannot be decoded."""


class ProcedureReplyError(BucketError):
    """Raised when the admission script returns a malformed reply.

    Attributes:
        reply: The raw reply received from the store
    """

    def __init__(self, reply: object, detail: str = "Malformed admission reply"):
        self.reply = reply
        super().__init__(f"{detail}: {reply!r}")
