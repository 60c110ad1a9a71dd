import asyncio
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Coalesce concurrent calls into one underlying execution.

    The first caller starts the work as a task; callers arriving while it runs
    await the same task and receive its result or its exception. A waiter that
    is cancelled does not cancel the shared task.
    """

    def __init__(self) -> None:
        self._inflight: Optional[asyncio.Task] = None
        self.executions = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def do(self, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight
        if task is None or task.done():
            self.executions += 1
            task = asyncio.ensure_future(fn())
            task.add_done_callback(self._clear)
            self._inflight = task
        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
