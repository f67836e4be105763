"""
Asynchronous task descriptions for the dispatch loop.

AppModel.update never performs I/O. It returns Task objects describing the
work; a runtime (gui.runtime.Runtime headless, or the Qt RuntimeAdapter)
executes them off the UI thread and feeds the single resulting message back
into the loop.

Completion boundary
-------------------
run_task always returns exactly one message. Any exception raised by the work
is converted into a failed TaskResult carrying a presentation-ready message
and an ErrorKind tag, so no task can end the application abnormally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from kit_engine.errors import ErrorKind, describe_error

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TaskFailure:
    """
    Display-ready description of a failed task.

    Attributes
    ----------
    kind:
        Classification used to decide presentation (e.g. offer a retry).
    message:
        Text suitable for showing to the user.
    """

    kind: ErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @staticmethod
    def from_exception(exc: BaseException) -> "TaskFailure":
        kind, message = describe_error(exc)
        return TaskFailure(kind=kind, message=message)


@dataclass(frozen=True, slots=True)
class TaskResult(Generic[T]):
    """Outcome of a task: either a value or a TaskFailure."""

    value: T | None = None
    failure: TaskFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @staticmethod
    def success(value: T) -> "TaskResult[T]":
        return TaskResult(value=value)

    @staticmethod
    def failed(exc: BaseException) -> "TaskResult[Any]":
        return TaskResult(failure=TaskFailure.from_exception(exc))


@dataclass(frozen=True, slots=True)
class Task:
    """
    A unit of asynchronous work scheduled by the dispatch loop.

    Build with Task.perform() or Task.done(); do not construct directly.
    """

    label: str
    work: Callable[[], Awaitable[Any]] | None = None
    on_result: Callable[[TaskResult[Any]], Any] | None = None
    message: Any = None

    @staticmethod
    def perform(
        label: str,
        work: Callable[[], Awaitable[T]],
        on_result: Callable[[TaskResult[T]], Any],
    ) -> "Task":
        """
        Describe work whose result is mapped into one message.

        Parameters
        ----------
        label:
            Short name used in logs.
        work:
            Zero-argument factory returning the awaitable to run.
        on_result:
            Maps the TaskResult into the message to enqueue.
        """
        return Task(label=label, work=work, on_result=on_result)

    @staticmethod
    def done(message: Any) -> "Task":
        """Describe a task that performs no work and just enqueues message."""
        return Task(label=f"done:{type(message).__name__}", message=message)


async def run_task(task: Task) -> Any:
    """
    Execute a task and return its completion message.

    Exceptions from the work are logged and turned into a failed TaskResult.
    """
    if task.work is None or task.on_result is None:
        return task.message

    try:
        value = await task.work()
    except Exception as exc:
        result: TaskResult[Any] = TaskResult.failed(exc)
        log.warning("Task %s failed: %s", task.label, result.failure.message)
    else:
        result = TaskResult.success(value)
        log.debug("Task %s completed", task.label)
    return task.on_result(result)
