"""A boolean flag with atomic compare-and-set style updates."""

from __future__ import annotations

import threading

__all__ = ["AtomicFlag"]


class AtomicFlag:
    """A thread-safe boolean."""

    def __init__(self, value: bool = False) -> None:
        self._value = bool(value)
        self._lock = threading.Lock()

    def __bool__(self) -> bool:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"AtomicFlag({bool(self)})"

    def store(self, value: bool) -> None:
        """Set the flag to ``value``."""
        with self._lock:
            self._value = bool(value)

    def test_and_flip(self, expected: bool) -> bool:
        """If the flag equals ``expected``, invert it and return ``True``."""
        with self._lock:
            if self._value == bool(expected):
                self._value = not self._value
                return True
            return False

    def or_equal(self, value: bool) -> None:
        """Atomically perform ``flag = flag or value``."""
        with self._lock:
            if not self._value:
                self._value = bool(value)

    def and_equal(self, value: bool) -> None:
        """Atomically perform ``flag = flag and value``."""
        with self._lock:
            if self._value:
                self._value = bool(value)