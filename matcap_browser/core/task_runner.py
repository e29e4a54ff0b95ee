"""Single-threaded cooperative scheduler driven by an external tick.

A task is a generator. Whatever it yields decides what happens next:

    None            wait for the next tick
    a generator     run it as a nested step sequence; its return value is
                    sent back into the parent
    an operation    any object with ``done()`` (usually a
                    ``concurrent.futures.Future``); the task is suspended until
                    ``done()`` is true, then ``result()`` is sent back in, or
                    the operation's exception is thrown in

The host calls ``tick()`` once per frame. Each live task gets at most one
resume per tick and runs until its next suspension point.
"""
from __future__ import annotations

import enum
import inspect
import logging
from collections.abc import Generator
from typing import Any, Optional

logger = logging.getLogger(__name__)

Steps = Generator[Any, Any, Any]


class TaskState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    NESTED = "nested"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAULTED = "faulted"

    @property
    def finished(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAULTED)


class TaskHandle:
    """Identifies a started task and exposes its outcome."""

    def __init__(self, task_id: int, steps: Steps, name: str = "") -> None:
        self.task_id = task_id
        self.name = name or getattr(steps, "__name__", f"task-{task_id}")
        self.state = TaskState.PENDING
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self._stack: list[Steps] = [steps]
        self._waiting: Any = None

    @property
    def done(self) -> bool:
        return self.state.finished

    @property
    def depth(self) -> int:
        """Number of step sequences currently on the task's stack."""
        return len(self._stack)

    def __repr__(self) -> str:
        return f"<TaskHandle {self.task_id} {self.name} {self.state.value}>"


class TaskRunner:
    """Advances registered tasks, one resume per task per tick."""

    def __init__(self) -> None:
        self._tasks: list[TaskHandle] = []
        self._next_id = 1
        self._active: Optional[TaskHandle] = None

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    @property
    def has_pending(self) -> bool:
        return bool(self._tasks)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, steps: Steps, name: str = "") -> TaskHandle:
        """Register `steps` and run it up to its first suspension point.

        Raises:
            TypeError: If `steps` is not a generator.
        """
        if not inspect.isgenerator(steps):
            raise TypeError(f"expected a generator, got {type(steps).__name__}")
        handle = TaskHandle(self._next_id, steps, name)
        self._next_id += 1
        self._tasks.append(handle)
        self._advance(handle, None, None)
        return handle

    def tick(self) -> None:
        """Give every live task one chance to make progress."""
        # Tasks started during this tick already ran up to their first
        # suspension inside start(); they are polled from the next tick on.
        for handle in list(self._tasks):
            if handle.done:
                continue
            value: Any = None
            error: Optional[BaseException] = None
            op = handle._waiting
            if op is not None:
                if not op.done():
                    continue
                handle._waiting = None
                try:
                    value = op.result()
                except Exception as e:
                    error = e
            self._advance(handle, value, error)

    def cancel(self, handle: Optional[TaskHandle]) -> None:
        """Stop `handle` for good. No-op if it already finished."""
        if handle is None or handle.done:
            return
        handle.state = TaskState.CANCELLED
        handle._waiting = None
        if handle is not self._active:
            self._close_stack(handle)
        # A task cancelling itself is unwound by _advance once its step returns.
        self._unregister(handle)
        logger.debug("Cancelled %r", handle)

    def cancel_all(self) -> None:
        for handle in list(self._tasks):
            self.cancel(handle)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _advance(self, handle: TaskHandle, value: Any, error: Optional[BaseException]) -> None:
        """Resume `handle` until it suspends, finishes or faults."""
        handle.state = TaskState.RUNNING
        previous, self._active = self._active, handle
        try:
            while handle._stack:
                steps = handle._stack[-1]
                try:
                    if error is not None:
                        exc, error = error, None
                        yielded = steps.throw(exc)
                    else:
                        yielded = steps.send(value)
                except StopIteration as stop:
                    handle._stack.pop()
                    value = stop.value
                    if handle.state is TaskState.CANCELLED:
                        break
                    continue
                except Exception as e:
                    handle._stack.pop()
                    if handle.state is TaskState.CANCELLED:
                        break
                    if not handle._stack:
                        self._fault(handle, e)
                        return
                    # Re-raise inside the parent step sequence, like `yield from`.
                    error, value = e, None
                    continue

                if handle.state is TaskState.CANCELLED:
                    break
                value = None

                if yielded is None:
                    handle.state = TaskState.NESTED if len(handle._stack) > 1 else TaskState.RUNNING
                    return
                if inspect.isgenerator(yielded):
                    handle._stack.append(yielded)
                    continue
                if callable(getattr(yielded, "done", None)):
                    handle._waiting = yielded
                    handle.state = TaskState.SUSPENDED
                    return
                error = TypeError(f"task yielded unsupported value {yielded!r}")

            if handle.state is TaskState.CANCELLED:
                self._close_stack(handle)
                return
            handle.state = TaskState.COMPLETED
            handle.result = value
            self._unregister(handle)
        finally:
            self._active = previous

    def _fault(self, handle: TaskHandle, error: Exception) -> None:
        logger.error("Task %s failed", handle.name, exc_info=error)
        handle.state = TaskState.FAULTED
        handle.error = error
        handle._waiting = None
        self._close_stack(handle)
        self._unregister(handle)

    def _close_stack(self, handle: TaskHandle) -> None:
        while handle._stack:
            steps = handle._stack.pop()
            try:
                steps.close()
            except Exception:
                logger.warning("Error while closing a step of %s", handle.name, exc_info=True)

    def _unregister(self, handle: TaskHandle) -> None:
        if handle in self._tasks:
            self._tasks.remove(handle)
