"""
Cooperative tasks driven by the game loop.

A task wraps a generator. The generator yields wait instructions and the
TaskRunner resumes it when the instruction is satisfied:

    yield                       # resume next tick
    yield WaitForEndOfFrame()   # resume after the current frame is rendered
    yield WaitUntil(predicate)  # resume on the first tick predicate() is True

Nested coroutines are composed with ``yield from``. Everything runs on the
loop thread; only BackgroundWorker jobs run elsewhere, and tasks observe them
by waiting on the returned future.

Usage:
    def fade_out():
        yield WaitUntil(lambda: camera.is_idle)
        camera.fade()

    task = game.tasks.start(fade_out(), name="fade")
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum, auto
from typing import Any, Callable, Generator, Optional

logger = logging.getLogger(__name__)

Coroutine = Generator[Any, None, Any]


class WaitForEndOfFrame:
    """Suspend until the runner's next end_of_frame()."""


class WaitUntil:
    """Suspend until predicate() returns True."""

    def __init__(self, predicate: Callable[[], bool]):
        self.predicate = predicate


class WaitFrames:
    """Suspend for a fixed number of ticks."""

    def __init__(self, frames: int):
        self.remaining = max(0, frames)


class TaskState(Enum):
    RUNNING = auto()
    DONE = auto()
    FAILED = auto()
    CANCELLED = auto()


class Task:
    """Handle to a running coroutine."""

    def __init__(self, coroutine: Coroutine | None, name: str = ""):
        self.name = name
        self.state = TaskState.RUNNING
        self.result: Any = None
        self.exception: Optional[BaseException] = None
        self._coroutine = coroutine
        self._waiting: Any = None
        self._callbacks: list[Callable[[Task], None]] = []

    @classmethod
    def completed(cls, result: Any = None, exception: BaseException | None = None, name: str = "") -> Task:
        """A task that finished before it was ever scheduled."""
        task = cls(None, name)
        task._finish(TaskState.FAILED if exception else TaskState.DONE, result, exception)
        return task

    @property
    def done(self) -> bool:
        return self.state is not TaskState.RUNNING

    def cancel(self) -> None:
        if self.done:
            return
        if self._coroutine is not None:
            self._coroutine.close()
        self._finish(TaskState.CANCELLED)

    def add_done_callback(self, callback: Callable[[Task], None]) -> None:
        if self.done:
            callback(self)
        else:
            self._callbacks.append(callback)

    def _ready(self, end_of_frame: bool) -> bool:
        waiting = self._waiting
        if waiting is None:
            return True
        if isinstance(waiting, WaitForEndOfFrame):
            return end_of_frame
        if isinstance(waiting, WaitUntil):
            return bool(waiting.predicate())
        if isinstance(waiting, WaitFrames):
            waiting.remaining -= 1
            return waiting.remaining <= 0
        if isinstance(waiting, Future):
            return waiting.done()
        return True

    def _step(self, end_of_frame: bool = False) -> None:
        """Advance the coroutine until it yields an unsatisfied wait."""
        while not self.done and self._ready(end_of_frame):
            try:
                self._waiting = self._coroutine.send(None)
            except StopIteration as stop:
                self._finish(TaskState.DONE, stop.value)
                return
            except Exception as exc:
                logger.exception("Task %r failed", self.name)
                self._finish(TaskState.FAILED, exception=exc)
                return

            # These always give up the rest of this tick
            if self._waiting is None or isinstance(self._waiting, (WaitForEndOfFrame, WaitFrames)):
                return
            end_of_frame = False

    def _finish(self, state: TaskState, result: Any = None, exception: BaseException | None = None) -> None:
        self.state = state
        self.result = result
        self.exception = exception
        self._coroutine = None
        self._waiting = None
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def __repr__(self) -> str:
        return f"Task({self.name!r}, {self.state.name})"


class TaskRunner:
    """
    Runs cooperative tasks on the game loop.

    tick() is called once per fixed update; end_of_frame() after rendering.
    Tasks start immediately and run until their first suspension point.
    """

    def __init__(self):
        self._tasks: list[Task] = []

    def start(self, coroutine: Coroutine, name: str = "") -> Task:
        task = Task(coroutine, name)
        task._step()
        if not task.done:
            self._tasks.append(task)
        return task

    @property
    def active(self) -> list[Task]:
        return [t for t in self._tasks if not t.done]

    def tick(self) -> None:
        for task in list(self._tasks):
            task._step()
        self._prune()

    def end_of_frame(self) -> None:
        for task in list(self._tasks):
            if isinstance(task._waiting, WaitForEndOfFrame):
                task._step(end_of_frame=True)
        self._prune()

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._prune()

    def run_until_complete(self, task: Task, timeout: float = 5.0) -> Any:
        """
        Drive the runner headless until a task finishes.

        Intended for tools and tests; the game loop normally does this.
        """
        deadline = time.monotonic() + timeout
        while not task.done:
            if time.monotonic() > deadline:
                raise TimeoutError(f"{task!r} did not complete within {timeout}s")
            self.tick()
            self.end_of_frame()
            if not task.done:
                time.sleep(0)
        return task.result

    def _prune(self) -> None:
        self._tasks = [t for t in self._tasks if not t.done]


class BackgroundWorker:
    """Single worker thread for jobs that must not block the loop."""

    def __init__(self, name: str = "background-worker"):
        self._executor: ThreadPoolExecutor | None = None
        self._name = name

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self._name)
        return self._executor.submit(fn, *args)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
