"""Scope guards: run code on exit, or use the classic locale for a while."""

from __future__ import annotations

import contextlib
import locale
from collections.abc import Callable, Iterator
from typing import Any

__all__ = ["exec_on_exit", "classic_locale"]


@contextlib.contextmanager
def exec_on_exit(func: Callable[[], Any]) -> Iterator[None]:
    """Call ``func`` when the ``with`` block is left, however it is left."""
    try:
        yield
    finally:
        func()


@contextlib.contextmanager
def classic_locale() -> Iterator[None]:
    """Switch to the "C" locale so numbers print with a decimal point.

    The previous locale is restored on exit.
    """
    previous = locale.setlocale(locale.LC_ALL)
    locale.setlocale(locale.LC_ALL, "C")
    try:
        yield
    finally:
        locale.setlocale(locale.LC_ALL, previous)