"""
APScheduler jobs for periodic in-memory housekeeping.
Why: the cache and rate limiter own no timers; their sweeps run from here.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from draftwise.config.settings import settings
from draftwise.core.cache import ResponseCache, response_cache
from draftwise.core.logging import get_logger
from draftwise.core.rate_limit import RateLimiter, rate_limiter

logger = get_logger(__name__)


class MaintenanceScheduler:
    """Periodic cache and rate-limit cleanup."""

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        limiter: Optional[RateLimiter] = None,
        cache_interval_s: Optional[int] = None,
        limiter_interval_s: Optional[int] = None,
    ):
        self.cache = cache if cache is not None else response_cache
        self.limiter = limiter if limiter is not None else rate_limiter
        self.cache_interval_s = cache_interval_s or settings.cache.cleanup_interval_s
        self.limiter_interval_s = (
            limiter_interval_s or settings.security.rate_limit_cleanup_interval_s
        )
        self.scheduler = AsyncIOScheduler()

    def start(self) -> None:
        self.scheduler.add_job(
            self.cache.cleanup,
            trigger=IntervalTrigger(seconds=self.cache_interval_s),
            id="response_cache_cleanup",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.limiter.cleanup,
            trigger=IntervalTrigger(seconds=self.limiter_interval_s),
            id="rate_limit_cleanup",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            f"Maintenance scheduler started cache_every={self.cache_interval_s}s "
            f"rate_limit_every={self.limiter_interval_s}s"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Maintenance scheduler stopped")
