"""Shared fixtures: isolated cache, fallback provider off, no notes backoff."""

import pytest

from draftwise.config.settings import settings
from draftwise.core.cache import response_cache

VALID_KEY = "AIzaSyA1234567890abcdefghijklmnop"


@pytest.fixture(autouse=True)
def _isolated(monkeypatch):
    response_cache.clear()
    monkeypatch.setattr(settings.openrouter, "api_key", "")
    monkeypatch.setattr("draftwise.services.slides.NOTES_BACKOFF_S", 0)
    yield
    response_cache.clear()


@pytest.fixture
def api_key():
    return VALID_KEY


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
