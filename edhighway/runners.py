"""Helpers for running work on background threads."""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import wait
from types import TracebackType
from typing import Any, TypeVar

from edhighway.threadpool import ThreadPool

__all__ = ["Runner", "start_new_runner", "current_thread_id", "for_each_parallel"]

T = TypeVar("T")


class Runner:
    """Runs ``func`` on its own thread, handing it a stop event.

    ``stop`` sets the event and waits for the thread to finish, so one
    runner always owns at most one running thread.
    """

    def __init__(self, func: Callable[[threading.Event], Any]) -> None:
        self.stop_event = threading.Event()
        self._thread = threading.Thread(target=func, args=(self.stop_event,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the function to stop and wait for its thread."""
        self.stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join()

    def is_alive(self) -> bool:
        """Tell whether the thread is still running."""
        return self._thread.is_alive()

    def __enter__(self) -> Runner:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()


def start_new_runner(func: Callable[[threading.Event], Any]) -> Runner:
    """Start ``func`` on a new thread and return its ``Runner``."""
    return Runner(func)


def current_thread_id() -> int:
    """Return an identifier of the calling thread."""
    return threading.get_ident()


def for_each_parallel(pool: ThreadPool, items: Iterable[T], todo: Callable[[T], Any]) -> int:
    """Call ``todo`` on every item, spreading slices over ``pool``.

    An exception stops the rest of its slice and is reported on stderr.
    Blocks until all slices are finished and returns how many calls
    completed.
    """
    values = list(items)
    if pool.size() == 0:
        raise ValueError("pool has no threads")
    slice_size = len(values) // pool.size() + 1
    done = 0
    lock = threading.Lock()

    def make_job(chunk: list[T]) -> Callable[[int], None]:
        def job(_tid: int) -> None:
            nonlocal done
            try:
                for value in chunk:
                    todo(value)
                    with lock:
                        done += 1
            except Exception as exc:  # noqa: BLE001 - reported, not raised
                print(f"Exception into ForEachParallel: {exc}", file=sys.stderr)

        return job

    futures = [
        pool.push(make_job(values[start : start + slice_size]))
        for start in range(0, len(values), slice_size)
    ]
    wait(futures)
    return done