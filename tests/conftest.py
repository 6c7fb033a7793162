"""
Pytest configuration and fixtures for replica-lag-limiter.

Provides a fake clock for driving the replica barrier and loguru cleanup.
"""

import sys

import pytest
from loguru import logger


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 100.0):
        self.t = start
        self.sleeps = []

    def now(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


@pytest.fixture
def fake_clock():
    """Fresh fake clock for each test."""
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_loguru():
    """Restore loguru's default stderr handler after each test."""
    yield
    logger.remove()
    logger.add(sys.stderr)
