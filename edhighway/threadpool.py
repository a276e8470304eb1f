"""A pool of worker threads running queued callables.

Each callable receives the index of the worker thread that runs it. A task
may carry a ``can_run`` predicate; while it returns ``False`` the task is
put back at the end of the queue.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from types import TracebackType
from typing import Any

__all__ = ["ThreadPool"]

_Task = tuple[Callable[[int], Any], Callable[[], bool], Future]


def _always() -> bool:
    return True


class ThreadPool:
    """Fixed-but-resizable pool of worker threads."""

    def __init__(self, n_threads: int) -> None:
        if n_threads < 0:
            raise ValueError("n_threads must be >= 0")
        self._cond = threading.Condition()
        self._queue: deque[_Task] = deque()
        self._threads: list[threading.Thread] = []
        self._flags: list[threading.Event] = []
        self._init()
        self.resize(n_threads)

    def _init(self) -> None:
        self._waiting = 0
        self._is_stop = False
        self._is_done = False
        self._stop_requested = False

    def size(self) -> int:
        """Number of running worker threads."""
        return len(self._threads)

    def tasks_count(self) -> int:
        """Number of tasks waiting in the queue."""
        with self._cond:
            return len(self._queue)

    def n_idle(self) -> int:
        """Number of workers waiting for a task."""
        with self._cond:
            return self._waiting

    def resize(self, n_threads: int) -> None:
        """Change the number of worker threads; ignored once stopped."""
        if n_threads < 0:
            raise ValueError("n_threads must be >= 0")
        if self._is_stop or self._is_done:
            return
        old = len(self._threads)
        if old <= n_threads:
            for index in range(old, n_threads):
                flag = threading.Event()
                self._flags.append(flag)
                thread = threading.Thread(
                    target=self._worker, args=(index, flag), daemon=True,
                    name=f"pool-worker-{index}",
                )
                self._threads.append(thread)
                thread.start()
        else:
            # Surplus workers finish their current task and leave on their own.
            for flag in self._flags[n_threads:]:
                flag.set()
            with self._cond:
                self._cond.notify_all()
            del self._threads[n_threads:]
            del self._flags[n_threads:]

    def reinit(self) -> None:
        """Abort everything and start again with the same number of threads."""
        old = len(self._threads)
        self.clear_queue()
        self.stop(False)
        self.resize(0)
        self._init()
        self.resize(old)

    def clear_queue(self) -> None:
        """Drop every queued task; their futures are cancelled."""
        with self._cond:
            dropped = list(self._queue)
            self._queue.clear()
        for _, _, future in dropped:
            future.cancel()

    def stop(self, wait: bool = False) -> None:
        """Stop all workers.

        With ``wait`` the queued tasks are run first; otherwise they are
        dropped. Running tasks are always allowed to finish.
        """
        self._stop_requested = True
        if not wait:
            if self._is_stop:
                return
            self._is_stop = True
            for flag in self._flags:
                flag.set()
            self.clear_queue()
        else:
            if self._is_done or self._is_stop:
                return
            self._is_done = True
        with self._cond:
            self._cond.notify_all()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()
        self.clear_queue()
        self._threads.clear()
        self._flags.clear()

    def push(
        self, func: Callable[[int], Any], can_run: Callable[[], bool] | None = None
    ) -> Future:
        """Queue ``func``; it is called with the worker index.

        Returns a future holding the result or the raised exception.
        """
        future: Future = Future()
        with self._cond:
            self._queue.append((func, can_run or _always, future))
            self._cond.notify()
        return future

    def stopped(self) -> bool:
        """Tell whether a stop has been requested."""
        return self._stop_requested

    def _pop(self) -> _Task | None:
        with self._cond:
            return self._queue.popleft() if self._queue else None

    @staticmethod
    def _run(task: _Task, index: int) -> None:
        func, _, future = task
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = func(index)
        except BaseException as exc:  # noqa: BLE001 - delivered through the future
            future.set_exception(exc)
        else:
            future.set_result(result)

    def _worker(self, index: int, flag: threading.Event) -> None:
        task = self._pop()
        while True:
            while task is not None:
                if task[1]():
                    self._run(task, index)
                    if flag.is_set():
                        return
                else:
                    with self._cond:
                        self._queue.append(task)
                    time.sleep(0)
                task = self._pop()
            with self._cond:
                self._waiting += 1
                self._cond.wait_for(lambda: self._queue or self._is_done or flag.is_set())
                self._waiting -= 1
                task = self._queue.popleft() if self._queue else None
            if task is None:
                return

    def __enter__(self) -> ThreadPool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop(False)