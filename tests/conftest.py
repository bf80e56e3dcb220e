"""Shared fixtures for limiter tests."""

import pytest

from redis_bucket.limiter import InMemoryBucketStore, reset_limiter


class FakeClock:
    """Controllable time source for the in-memory store."""

    def __init__(self, start: float = 1.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryBucketStore(clock=clock)


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the global limiter before and after each test."""
    reset_limiter()
    yield
    reset_limiter()
