"""
In-memory metrics for the /metrics endpoint (rough p50/p95).
Why: quick visibility into latency, cache use and provider fallbacks
without running Prometheus.
"""

import time
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, List, Optional, Union

_MAX_SAMPLES = 1000


def _percentile(values: List[int], p: float) -> int:
    if not values:
        return 0
    idx = max(0, min(len(values) - 1, int(len(values) * p)))
    return sorted(values)[idx]


class _Metrics:
    def __init__(self, max_samples: int = _MAX_SAMPLES) -> None:
        self.total_requests = 0
        self.total_errors = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.provider_fallbacks = 0
        self._latencies: Deque[int] = deque(maxlen=max_samples)
        self._custom: Dict[str, float] = {}

    def increment_requests(self) -> None:
        self.total_requests += 1

    def increment_errors(self) -> None:
        self.total_errors += 1

    def record_cache(self, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1

    def record_fallback(self) -> None:
        self.provider_fallbacks += 1

    def record_latency(self, ms: int) -> None:
        self._latencies.append(ms)

    def set_custom_metric(self, name: str, value: float) -> None:
        self._custom[name] = value

    def get_custom_metric(self, name: str) -> Optional[float]:
        return self._custom.get(name)

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        """Store the block's wall time in ms as custom metric `name`."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.set_custom_metric(name, round((time.perf_counter() - start) * 1000, 1))

    def snapshot(self) -> Dict[str, Union[int, float, Dict[str, float]]]:
        lat = list(self._latencies)
        lookups = self.cache_hits + self.cache_misses
        return {
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "p50_ms": _percentile(lat, 0.50),
            "p95_ms": _percentile(lat, 0.95),
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(self.cache_hits / lookups, 3) if lookups else 0.0,
            "provider_fallbacks": self.provider_fallbacks,
            "custom": dict(self._custom),
        }


metrics = _Metrics()
