import asyncio
from typing import Any, Awaitable, Optional


class SettleOnce:
    """
    a future that only listens to its first settlement.

    used where one operation can report completion more than once, e.g. through
    a callback and through a returned awaitable. later settlements are ignored.
    must be created while an event loop is running.
    """

    def __init__(self):
        self._loop = asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    def callback(self, error: Optional[BaseException], data: Any = None) -> None:
        """node-style completion callback."""
        if error is not None:
            self.reject(error)
        else:
            self.resolve(data)

    def follow(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        """settle from the outcome of `awaitable` once it finishes."""
        task = asyncio.ensure_future(awaitable)
        task.add_done_callback(self._settle_from)
        return task

    def _settle_from(self, task: asyncio.Future) -> None:
        if task.cancelled():
            self.reject(asyncio.CancelledError())
            return
        # reading the exception also marks it retrieved when we lost the race
        error = task.exception()
        if error is not None:
            self.reject(error)
        else:
            self.resolve(task.result())

    async def wait(self) -> Any:
        return await self._future
