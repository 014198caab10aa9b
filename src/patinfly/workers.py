# src/patinfly/workers.py

import asyncio
import functools
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

def offload(func):
    """
    Turns a blocking method into a coroutine that runs on the default worker pool.
    Storage, HTTP, JSON parsing and hashing all go through here so the event loop never blocks.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)
    return wrapper


class SingleFlight:
    """
    Collapses concurrent calls that share a key into one in-flight task.
    Every caller awaits the same result (or the same exception).
    """
    def __init__(self):
        self._in_flight: dict[str, asyncio.Task] = {}

    def pending(self) -> int:
        return len(self._in_flight)

    async def do(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        # A cancelled caller must not cancel the fetch the others are waiting on
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Marks the exception as retrieved even if every caller was cancelled
        if not task.cancelled():
            task.exception()
