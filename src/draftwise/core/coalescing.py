"""Deduplicate identical in-flight generation requests."""

import asyncio
from typing import Awaitable, Callable, Dict, TypeVar

T = TypeVar("T")


class RequestCoalescer:
    """Callers that share a key while a request is in flight share its result.

    Lookup and insert happen without an await in between, so no lock is
    needed on a single event loop. A cancelled caller does not cancel the
    shared task.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Future] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._tasks[key] = task
            task.add_done_callback(lambda _t: self._tasks.pop(key, None))
        return await asyncio.shield(task)

    def pending_count(self) -> int:
        return len(self._tasks)


coalescer = RequestCoalescer()
