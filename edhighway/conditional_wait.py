"""A one-shot confirmation that cannot be missed by a late waiter."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

__all__ = ["ConfirmedPass"]


class ConfirmedPass:
    """Lets threads wait until ``confirm`` has been called.

    A confirmation that happens before anyone waits is remembered.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._confirmed = False

    def confirm(self) -> None:
        """Mark as confirmed and wake every waiter."""
        with self._cond:
            self._confirmed = True
            self._cond.notify_all()

    def try_wait_confirm(self, millis: int) -> bool:
        """Wait up to ``millis`` milliseconds; return whether confirmed."""
        with self._cond:
            if not self._confirmed:
                self._cond.wait_for(lambda: self._confirmed, timeout=max(millis, 0) / 1000)
            return self._confirmed

    def wait_confirm(self, is_stopped: Any = None, period_ms: int = 500) -> bool:
        """Wait until confirmed, or until ``is_stopped`` reports true.

        ``is_stopped`` may be a callable or any object with a truth value
        (such as an ``AtomicFlag``); it is checked every ``period_ms``
        milliseconds. Without it the wait is unbounded. Returns whether
        the confirmation arrived.
        """
        if is_stopped is None:
            with self._cond:
                self._cond.wait_for(lambda: self._confirmed)
                return True
        check: Callable[[], Any] = is_stopped if callable(is_stopped) else lambda: bool(is_stopped)
        while not self.try_wait_confirm(period_ms):
            if check():
                return False
        return True