"""String, path and stream helpers."""

from __future__ import annotations

import os
import string
from collections.abc import Iterable, MutableMapping, Sequence
from typing import IO, Any, Hashable, TypeVar

__all__ = [
    "string_sprintf",
    "base_file_name",
    "absolute_path",
    "stream_size_to_end",
    "read_stream",
    "to_lower",
    "to_upper",
    "ends_with",
    "remove_extension",
    "filename_stem",
    "ltrim",
    "rtrim",
    "trim",
    "join",
    "find_contained",
    "remove_duplicates_keep_order",
    "remove_duplicates_keep_order_reverse",
]

T = TypeVar("T", bound=Hashable)

# Whitespace as classified by the "C" locale.
_SPACES = " \t\n\v\f\r"
_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


def string_sprintf(fmt: str, *args: Any) -> str:
    """Format ``args`` with a printf-style format string."""
    return fmt % args


def base_file_name(pathname: str) -> str:
    """Return the file name with its extension but without any directory part."""
    cut = max(pathname.rfind("/"), pathname.rfind("\\"))
    return pathname[cut + 1 :]


def absolute_path(file_name: str) -> str:
    """Resolve ``file_name`` to a canonical absolute path.

    When the path cannot be resolved (for example it does not exist) the
    name is returned unchanged.
    """
    try:
        return os.path.realpath(file_name, strict=True)
    except (OSError, ValueError):
        return file_name


def stream_size_to_end(stream: IO[Any]) -> int:
    """Count the items left in a seekable stream without moving its position."""
    try:
        start = stream.tell()
        remaining = len(stream.read())
        stream.seek(start)
    except (OSError, ValueError) as exc:
        raise OSError("error") from exc
    return remaining


def read_stream(stream: IO[Any]) -> Any:
    """Read everything left in a seekable stream."""
    size = stream_size_to_end(stream)
    data = stream.read(size)
    if len(data) != size:
        raise OSError("File size differs")
    return data


def to_lower(text: str) -> str:
    """Lower-case ASCII letters, leaving every other character alone."""
    return text.translate(_LOWER)


def to_upper(text: str) -> str:
    """Upper-case ASCII letters, leaving every other character alone."""
    return text.translate(_UPPER)


def ends_with(text: str, ending: str) -> bool:
    """Tell whether ``text`` ends with ``ending``."""
    return text.endswith(ending)


def remove_extension(file_name: str) -> str:
    """Drop everything from the last dot onwards."""
    index = file_name.rfind(".")
    return file_name if index < 0 else file_name[:index]


def filename_stem(file_name: str) -> str:
    """Return the file name without its directory part and extension."""
    return remove_extension(base_file_name(file_name))


def ltrim(text: str) -> str:
    """Strip leading whitespace."""
    return text.lstrip(_SPACES)


def rtrim(text: str) -> str:
    """Strip trailing whitespace."""
    return text.rstrip(_SPACES)


def trim(text: str) -> str:
    """Strip whitespace from both ends."""
    return text.strip(_SPACES)


def join(items: Iterable[str], sep: str) -> str:
    """Join strings with a separator."""
    return sep.join(items)


def find_contained(text: str, candidates: Iterable[str]) -> str | None:
    """Return the first candidate that occurs in ``text``, or ``None``."""
    for candidate in candidates:
        if candidate in text:
            return candidate
    return None


def _count(counter: MutableMapping[T, int] | None, value: T) -> None:
    if counter is not None:
        counter[value] = counter.get(value, 0) + 1


def remove_duplicates_keep_order(
    items: Sequence[T], counter: MutableMapping[T, int] | None = None
) -> list[T]:
    """Return ``items`` with repeats removed, keeping first occurrences.

    When ``counter`` is given every item seen is tallied into it.
    """
    seen: set[T] = set()
    result: list[T] = []
    for value in items:
        _count(counter, value)
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def remove_duplicates_keep_order_reverse(
    items: Sequence[T], counter: MutableMapping[T, int] | None = None
) -> list[T]:
    """Return ``items`` with repeats removed, keeping last occurrences.

    When ``counter`` is given every item seen is tallied into it.
    """
    kept = remove_duplicates_keep_order(list(reversed(items)), counter)
    kept.reverse()
    return kept