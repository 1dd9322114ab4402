"""Tests for the fixed-window rate limiter."""

from draftwise.core.rate_limit import RateLimiter

LIMITS = {"/api/gemini": (2, 60), "default": (3, 10)}


def test_allows_up_to_limit_then_blocks(clock):
    """Test the per-endpoint cap."""
    limiter = RateLimiter(LIMITS, clock=clock)
    assert limiter.hit("/api/gemini", "client-a")
    assert limiter.hit("/api/gemini", "client-a")
    assert not limiter.hit("/api/gemini", "client-a")


def test_clients_and_endpoints_are_independent(clock):
    """Test that windows are keyed by endpoint and client."""
    limiter = RateLimiter(LIMITS, clock=clock)
    limiter.hit("/api/gemini", "client-a")
    limiter.hit("/api/gemini", "client-a")
    assert limiter.hit("/api/gemini", "client-b")
    assert limiter.hit("/api/other", "client-a")
    assert len(limiter) == 3


def test_unknown_endpoint_uses_default(clock):
    """Test the default limit applies to unlisted paths."""
    limiter = RateLimiter(LIMITS, clock=clock)
    results = [limiter.hit("/api/slides/generate", "c") for _ in range(4)]
    assert results == [True, True, True, False]


def test_window_resets_after_expiry(clock):
    """Test that a new window opens once the old one ends."""
    limiter = RateLimiter(LIMITS, clock=clock)
    limiter.hit("/api/gemini", "c")
    limiter.hit("/api/gemini", "c")
    assert not limiter.hit("/api/gemini", "c")
    clock.advance(61)
    assert limiter.hit("/api/gemini", "c")


def test_retry_after_counts_down(clock):
    """Test seconds until reset."""
    limiter = RateLimiter(LIMITS, clock=clock)
    assert limiter.retry_after("/api/gemini", "c") == 0
    limiter.hit("/api/gemini", "c")
    clock.advance(15.5)
    assert limiter.retry_after("/api/gemini", "c") == 45


def test_cleanup_drops_reset_windows(clock):
    """Test cleanup removes only windows that have ended."""
    limiter = RateLimiter(LIMITS, clock=clock)
    limiter.hit("/api/gemini", "old")
    clock.advance(30)
    limiter.hit("/api/other", "recent")
    clock.advance(31)
    limiter.cleanup()
    assert len(limiter) == 0
    limiter.hit("/api/gemini", "new")
    clock.advance(5)
    limiter.cleanup()
    assert len(limiter) == 1
