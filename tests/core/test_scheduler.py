"""Tests for the maintenance scheduler wiring."""

import asyncio

import pytest

from draftwise.core.cache import ResponseCache
from draftwise.core.rate_limit import RateLimiter
from draftwise.core.scheduler import MaintenanceScheduler


@pytest.mark.asyncio
async def test_start_registers_cleanup_jobs():
    """Test both interval jobs are scheduled and stop shuts down."""
    cache = ResponseCache()
    limiter = RateLimiter({"default": (1, 1)})
    scheduler = MaintenanceScheduler(cache, limiter, cache_interval_s=600, limiter_interval_s=300)
    scheduler.start()
    try:
        jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}
        assert set(jobs) == {"response_cache_cleanup", "rate_limit_cleanup"}
        assert jobs["response_cache_cleanup"].trigger.interval.total_seconds() == 600
        assert jobs["rate_limit_cleanup"].trigger.interval.total_seconds() == 300
    finally:
        scheduler.stop()
    # AsyncIOScheduler finishes shutting down on the next loop iteration
    await asyncio.sleep(0)
    assert not scheduler.scheduler.running


def test_uses_given_components_even_when_empty():
    """Test an empty limiter is not swapped for the module default."""
    limiter = RateLimiter({"default": (1, 1)})
    scheduler = MaintenanceScheduler(ResponseCache(), limiter)
    assert scheduler.limiter is limiter


def test_stop_without_start_is_noop():
    """Test stop on a never-started scheduler."""
    MaintenanceScheduler(ResponseCache(), RateLimiter({})).stop()
