"""Qt adapter driving AppModel.

The dispatch loop itself is framework-agnostic (gui.model). This adapter runs
it inside the Qt application.

Threading model
--------------
- AppModel.update runs on the GUI thread, one message at a time.
- A single worker QObject lives on a dedicated QThread and runs an asyncio
  event loop there. Tasks are submitted with run_coroutine_threadsafe.
- Each finished task emits exactly one message; a queued Qt connection carries
  it back to the GUI thread, where it is applied like any other message.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine

from PySide6.QtCore import QObject, Qt, QThread, Signal, Slot

from gui.model import AppModel
from gui.tasks import Task, run_task

log = logging.getLogger(__name__)

_SHUTDOWN_TIMEOUT_S = 5.0


class TaskLoopWorker(QObject):
    """Worker owning the asyncio loop that executes tasks off the GUI thread."""

    message_ready = Signal(object)  # completion message

    def __init__(self) -> None:
        super().__init__()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ready = threading.Event()

    @Slot()
    def run(self) -> None:
        """Run the event loop until stop() is called. Blocks the worker thread."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            log.debug("Task loop stopped")

    def wait_ready(self) -> None:
        self._ready.wait()

    def submit(self, task: Task) -> None:
        """Schedule task on the worker loop. Safe to call from any thread."""
        if self._loop is None:
            raise RuntimeError("Task loop is not running.")
        asyncio.run_coroutine_threadsafe(self._complete(task), self._loop)

    def stop(self, final: Coroutine[Any, Any, Any] | None = None) -> None:
        """Optionally run a final coroutine, then stop the loop."""
        if self._loop is None:
            return
        if final is not None:
            future = asyncio.run_coroutine_threadsafe(final, self._loop)
            try:
                future.result(timeout=_SHUTDOWN_TIMEOUT_S)
            except Exception as exc:
                log.warning("Shutdown step failed: %s", exc)
        self._loop.call_soon_threadsafe(self._loop.stop)

    async def _complete(self, task: Task) -> None:
        self.message_ready.emit(await run_task(task))


class RuntimeAdapter(QObject):
    """Qt adapter that applies messages on the GUI thread and runs tasks on a worker thread."""

    # Emitted after every applied message with the fresh gui.model.AppView.
    view_changed = Signal(object)

    def __init__(self, model: AppModel) -> None:
        super().__init__()
        self.model = model

        self._thread = QThread()
        self._worker = TaskLoopWorker()
        self._worker.moveToThread(self._thread)
        self._thread.started.connect(self._worker.run)

        # Completion messages cross back to the GUI thread.
        self._worker.message_ready.connect(
            self.dispatch, type=Qt.ConnectionType.QueuedConnection
        )

        self._thread.start()
        self._worker.wait_ready()

    def start(self) -> None:
        """Schedule the model's startup tasks and publish the initial view."""
        self._submit(self.model.init())
        self.view_changed.emit(self.model.view())

    @Slot(object)
    def dispatch(self, message: object) -> None:
        """Apply one message (GUI thread only)."""
        self._submit(self.model.update(message))
        self.view_changed.emit(self.model.view())

    def submit(self, task: Task) -> None:
        """Run an extra task whose completion message is dispatched like any other."""
        self._worker.submit(task)

    def shutdown(self) -> None:
        """Close storage and stop the worker thread cleanly."""
        self._worker.stop(self.model.shutdown())
        self._thread.quit()
        self._thread.wait()

    def _submit(self, tasks: list[Task]) -> None:
        for task in tasks:
            self._worker.submit(task)
