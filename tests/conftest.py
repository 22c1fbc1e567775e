"""Test configuration for pytest."""

from datetime import datetime, timedelta, timezone

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "conformance: API contract conformance tests")


class SteppingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.calls = 0

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        self.calls += 1
        return current


@pytest.fixture
def clock():
    return SteppingClock()
