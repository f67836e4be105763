"""
Headless asyncio driver for AppModel.

Used by tests and by anything that needs the dispatch loop without Qt. The
Qt shell uses gui.adapters.runtime_adapter.RuntimeAdapter instead; both follow
the same contract: update() runs on one thread, tasks run concurrently, each
finished task yields exactly one message, and messages are applied one at a
time in completion order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from gui.model import AppModel
from gui.tasks import Task, run_task

log = logging.getLogger(__name__)


class Runtime:
    """
    Drive an AppModel on the running event loop.

    Notes
    -----
    dispatch() is synchronous, so several messages dispatched back to back are
    all applied before any scheduled task gets to run.
    """

    def __init__(self, model: AppModel) -> None:
        self.model = model
        self.applied: list[Any] = []
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._pending)

    def start(self) -> list[Task]:
        """Schedule the model's startup tasks."""
        tasks = self.model.init()
        self._spawn(tasks)
        return tasks

    def dispatch(self, message: Any) -> list[Task]:
        """Apply one message now and spawn the tasks it returns."""
        self.applied.append(message)
        tasks = self.model.update(message)
        self._spawn(tasks)
        return tasks

    async def run_until_idle(self) -> None:
        """Apply completion messages until no task is pending and the queue is empty."""
        while self._pending or not self._queue.empty():
            if self._queue.empty():
                await asyncio.wait(set(self._pending), return_when=asyncio.FIRST_COMPLETED)
                continue
            self.dispatch(self._queue.get_nowait())

    async def shutdown(self) -> None:
        await self.run_until_idle()
        await self.model.shutdown()

    def _spawn(self, tasks: list[Task]) -> None:
        for task in tasks:
            handle = asyncio.create_task(self._complete(task), name=task.label)
            self._pending.add(handle)
            handle.add_done_callback(self._pending.discard)

    async def _complete(self, task: Task) -> None:
        self._queue.put_nowait(await run_task(task))
