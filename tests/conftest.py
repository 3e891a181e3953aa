"""Shared fixtures for the claims tests."""

from datetime import datetime, timedelta, timezone

import pytest

from src.storage import ClaimsRepository
from src.utils.config import Settings


class FakeClock:
    """Controllable stand-in for utc_now."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings():
    """Default settings, independent of any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def repo(settings, clock):
    return ClaimsRepository(settings=settings, clock=clock)
