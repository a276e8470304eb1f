"""Generic helpers for working with containers."""

from __future__ import annotations

import random
from collections.abc import (
    Callable,
    Hashable,
    Iterable,
    Mapping,
    MutableMapping,
    MutableSequence,
    MutableSet,
    Sequence,
)
from itertools import chain, islice
from typing import Any, TypeVar

__all__ = [
    "hash_combine",
    "point3d_hash",
    "shuffle_container",
    "pick_random",
    "remove_if",
    "generate_seq",
    "find_or_empty",
    "findif_value",
    "findif_value_and_index",
    "keyset",
    "for_each_many",
    "for_each_many_breakable",
    "foreach_container_breakable",
    "join",
]

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MASK64 = (1 << 64) - 1
_GOLDEN = 0x9E3779B9


def hash_combine(seed: int, value: Hashable) -> int:
    """Mix the hash of ``value`` into ``seed`` and return the new 64-bit seed."""
    seed &= _MASK64
    mixed = (hash(value) + _GOLDEN + (seed << 6) + (seed >> 2)) & _MASK64
    return seed ^ mixed


def point3d_hash(point: Any) -> int:
    """Hash any object with numeric ``x``, ``y`` and ``z`` attributes."""
    seed = hash(float(point.x)) & _MASK64
    seed = hash_combine(seed, float(point.y))
    return hash_combine(seed, float(point.z))


def shuffle_container(items: MutableSequence[Any]) -> None:
    """Shuffle ``items`` in place."""
    random.shuffle(items)


def pick_random(container: Iterable[Any]) -> Any:
    """Return a random element; for a mapping, a random value.

    Raises ``IndexError`` when the container is empty.
    """
    if isinstance(container, Mapping):
        pool: Sequence[Any] = list(container.values())
    elif isinstance(container, Sequence):
        pool = container
    else:
        pool = list(container)
    if not pool:
        raise IndexError("cannot pick from an empty container")
    return random.choice(pool)


def remove_if(container: Any, pred: Callable[[Any], bool]) -> int:
    """Remove in place every element for which ``pred`` is true.

    For a mapping the predicate is given each value. Returns how many
    elements were removed.
    """
    if isinstance(container, MutableMapping):
        doomed = [key for key, value in container.items() if pred(value)]
        for key in doomed:
            del container[key]
        return len(doomed)
    if isinstance(container, MutableSet):
        doomed_items = [value for value in container if pred(value)]
        for value in doomed_items:
            container.discard(value)
        return len(doomed_items)
    if isinstance(container, MutableSequence):
        kept = [value for value in container if not pred(value)]
        removed = len(container) - len(kept)
        container.clear()
        container.extend(kept)
        return removed
    raise TypeError(f"unsupported container type: {type(container).__name__}")


def generate_seq(start: int, size: int) -> list[int]:
    """Return ``size`` consecutive numbers beginning with ``start``."""
    return list(range(start, start + size))


def find_or_empty(mapping: Mapping[K, V], key: K, empty: Any = None) -> Any:
    """Return the value stored under ``key`` or ``empty``."""
    return mapping.get(key, empty)


def findif_value(items: Iterable[T], default: Any, pred: Callable[[T], bool]) -> Any:
    """Return the first item matching ``pred``, or ``default``."""
    return next((value for value in items if pred(value)), default)


def findif_value_and_index(
    items: Iterable[T], default: Any, pred: Callable[[T], bool]
) -> tuple[Any, int]:
    """Return the first matching item with its index, or ``(default, -1)``."""
    return next(
        ((value, index) for index, value in enumerate(items) if pred(value)),
        (default, -1),
    )


def keyset(mapping: Mapping[K, Any]) -> set[K]:
    """Return the set of keys of ``mapping``."""
    return set(mapping)


def _rows(count: int, iterables: tuple[Iterable[Any], ...]) -> Iterable[tuple[Any, ...]]:
    if count < 0:
        raise ValueError("count must be >= 0")
    try:
        yield from zip(*(islice(it, count) for it in iterables), strict=True)
    except ValueError as exc:
        raise ValueError("an iterable is shorter than count") from exc


def for_each_many(func: Callable[..., Any], count: int, *args: Iterable[Any]) -> None:
    """Call ``func`` with the items at the same position of every iterable.

    Exactly ``count`` positions are visited; a shorter iterable raises
    ``ValueError``.
    """
    for row in _rows(count, args):
        func(*row)


def for_each_many_breakable(func: Callable[..., Any], count: int, *args: Iterable[Any]) -> bool:
    """Like ``for_each_many`` but stops once ``func`` returns a true value.

    Returns ``True`` if it was stopped that way.
    """
    return any(func(*row) for row in _rows(count, args))


def foreach_container_breakable(callback: Callable[[Any], Any], *args: Iterable[Any]) -> bool:
    """Walk several containers as one, stopping when ``callback`` returns true.

    Returns ``True`` if the walk was stopped early.
    """
    return any(callback(value) for value in chain.from_iterable(args))


def join(*args: Iterable[T]) -> list[T]:
    """Concatenate the given iterables into one list."""
    return list(chain.from_iterable(args))