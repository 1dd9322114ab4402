"""
In-memory TTL cache for generation responses.
Why: identical (endpoint, params) requests inside the TTL window skip the LLM.

Keys are built from the endpoint plus the params serialized as JSON with
sorted keys, so parameter order never changes the key. Expired entries read
as a miss and are dropped lazily; `cleanup()` sweeps the rest and is driven
by the app scheduler, never by the cache itself.
"""

import functools
import json
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from draftwise.config.settings import settings
from draftwise.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class _Miss:
    """Sentinel returned by `ResponseCache.get` when nothing usable is stored."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


def _canonical(value: Any) -> Any:
    """Stringify mapping keys (recursively) so any hashable key sorts and encodes."""
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def make_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Canonical cache key: `endpoint:` + params as sorted-key compact JSON."""
    encoded = json.dumps(
        _canonical(params or {}),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return f"{endpoint}:{encoded}"


class ResponseCache:
    def __init__(
        self, default_ttl: float = 300.0, clock: Callable[[], float] = time.time
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._data: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        key = make_key(endpoint, params)
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return MISS
            if self._clock() >= entry.expires_at:
                del self._data[key]
                return MISS
            return entry.value

    def set(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        value: Any,
        ttl: Optional[float] = None,
    ) -> None:
        key = make_key(endpoint, params)
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._data[key] = CacheEntry(key, value, self._clock() + ttl)

    def delete(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> None:
        key = make_key(endpoint, params)
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def cleanup(self) -> None:
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._data.items() if now >= e.expires_at]
            for key in expired:
                del self._data[key]
        if expired:
            logger.debug(f"cache cleanup removed={len(expired)}")

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            keys: List[str] = list(self._data.keys())
        return {"size": len(keys), "keys": keys}


def cached(
    endpoint: str,
    ttl: Optional[float] = None,
    cache: Optional[ResponseCache] = None,
    should_cache: Optional[Callable[[Any], bool]] = None,
    key_params: Optional[Callable[..., Mapping[str, Any]]] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Memoize an async function in the response cache.

    Args:
        endpoint: Cache namespace for this function
        ttl: Entry lifetime in seconds (cache default when None)
        cache: Cache to use (module cache when None)
        should_cache: Predicate on the result; falsy means do not store it
        key_params: Builds the cache params from the call arguments, for
            callers that must keep raw arguments (e.g. secrets) out of keys

    Exceptions propagate and are never cached.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            store = cache or response_cache
            if key_params is not None:
                params = key_params(*args, **kwargs)
            else:
                params = {"args": list(args), "kwargs": kwargs}
            hit = store.get(endpoint, params)
            if hit is not MISS:
                return hit
            result = await fn(*args, **kwargs)
            if should_cache is None or should_cache(result):
                store.set(endpoint, params, result, ttl)
            return result

        return wrapper

    return decorator


response_cache = ResponseCache(default_ttl=float(settings.cache.ttl_s))
