import os

import pytest

# Set test environment before any src.config import reads it
os.environ["APP_ENV"] = "testing"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

from src.services.rate_limit_store import MemoryRateLimitStore


class FakeClock:
    """Manually advanced clock, injected wherever the code takes `clock=`."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryRateLimitStore(clock=clock)
