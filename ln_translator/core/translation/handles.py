"""
Cancellation handles owned by one session.
"""

import asyncio
from typing import Coroutine, Optional, Set


class HandleRegistry:
    """Tracks every task a session spawns so they can be cancelled together."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Schedule a coroutine on the running loop and register its task."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> Set[asyncio.Task]:
        return {task for task in self._tasks if not task.done()}

    def is_idle(self) -> bool:
        return not self.pending

    def abort(self) -> int:
        """
        Cancel every registered task except the caller's own, then drain.

        Returns:
            Number of tasks cancelled
        """
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        cancelled = 0
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()
                cancelled += 1
        self._tasks.clear()
        return cancelled

    async def join(self):
        """Wait until no registered task is left, including tasks spawned meanwhile."""
        current = asyncio.current_task()
        while True:
            pending = [task for task in self.pending if task is not current]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
