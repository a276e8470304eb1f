"""Persistent on-disk string cache with compressed, expiring values.

Each value lives in its own file together with its expiry time, much like
a memcache that survives restarts. An index file maps keys to file names.
"""

from __future__ import annotations

import json
import os
import shutil
import struct
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import TracebackType

from edhighway.lzo import LzoError, compress_worst_size, decompress
from edhighway.lzo_compress import compress

__all__ = ["CacheIndex", "CompressedBlob", "StringsFileCache"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)
_BLOB_HEADER = struct.Struct("<QqQ")
_INDEX_VERSION = 1
_LIST_FILE = "list.bin"
_DUMP_EVERY = 10
_MAX_NAME_ATTEMPTS = 5000


@dataclass
class CacheIndex:
    """Mapping of cache keys to the file names holding their values."""

    key2filename: dict[str, str] = field(default_factory=dict)

    def file_name_or_empty(self, key: str) -> str:
        """Return the file name for ``key`` or an empty string."""
        return self.key2filename.get(key, "")

    def remove(self, key: str) -> None:
        """Forget ``key`` if present."""
        self.key2filename.pop(key, None)

    def clear(self) -> None:
        """Forget every key."""
        self.key2filename.clear()

    def to_bytes(self) -> bytes:
        """Serialise the index."""
        payload = {"version": _INDEX_VERSION, "entries": self.key2filename}
        return json.dumps(payload, ensure_ascii=False, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> CacheIndex:
        """Load an index; raises ``ValueError`` if the data is malformed."""
        payload = json.loads(data.decode("utf-8"))
        if not isinstance(payload, dict) or payload.get("version") != _INDEX_VERSION:
            raise ValueError("unsupported cache index")
        entries = payload.get("entries")
        if not isinstance(entries, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in entries.items()
        ):
            raise ValueError("malformed cache index entries")
        return cls(dict(entries))


@dataclass
class CompressedBlob:
    """A compressed string value with the time it stays valid until."""

    unpacked_size: int = 0
    data: bytes = b""
    valid_till: datetime = _EPOCH

    @classmethod
    def from_text(cls, source: str, time_to_keep: timedelta = timedelta(hours=24)) -> CompressedBlob:
        """Compress ``source``; the blob expires after ``time_to_keep``."""
        valid_till = datetime.now(timezone.utc) + time_to_keep
        raw = source.encode("utf-8")
        try:
            packed = compress(raw, compress_worst_size(len(raw)))
        except LzoError:
            return cls(0, b"", valid_till)
        return cls(len(raw), packed, valid_till)

    def is_valid_yet(self) -> bool:
        """Tell whether the blob has not expired and holds data."""
        return datetime.now(timezone.utc) < self.valid_till and bool(self.data)

    def unpack(self) -> str | None:
        """Return the stored string, or ``None`` if the data is corrupt."""
        try:
            raw = decompress(self.data, self.unpacked_size)
        except LzoError:
            return None
        return raw.decode("utf-8", errors="replace")

    def to_bytes(self) -> bytes:
        """Serialise the blob."""
        micros = (self.valid_till - _EPOCH) // _MICROSECOND
        return _BLOB_HEADER.pack(self.unpacked_size, micros, len(self.data)) + self.data

    @classmethod
    def from_bytes(cls, data: bytes) -> CompressedBlob:
        """Load a blob; raises ``ValueError`` if the data is malformed."""
        if len(data) < _BLOB_HEADER.size:
            raise ValueError("truncated blob header")
        unpacked_size, micros, length = _BLOB_HEADER.unpack_from(data)
        body = data[_BLOB_HEADER.size :]
        if len(body) != length:
            raise ValueError("blob length mismatch")
        try:
            valid_till = _EPOCH + micros * _MICROSECOND
        except OverflowError as exc:
            raise ValueError("blob expiry out of range") from exc
        return cls(unpacked_size, bytes(body), valid_till)


class StringsFileCache:
    """Thread-safe key/value string cache persisted under ``cache_dir``.

    An unreadable index on start wipes the whole directory. Recently read
    values are also kept in memory, up to ``ram_size`` entries.
    """

    def __init__(self, cache_dir: str | os.PathLike[str], ram_size: int = 500) -> None:
        self._dir = Path(cache_dir)
        self._ram_size = ram_size
        self._ram: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()
        self._adds = 0
        try:
            self._index = CacheIndex.from_bytes((self._dir / _LIST_FILE).read_bytes())
        except (OSError, ValueError):
            self._index = CacheIndex()
            shutil.rmtree(self._dir, ignore_errors=True)
        self._dir.mkdir(parents=True, exist_ok=True)

    # --- internal helpers, called with the lock held --------------------

    def _dump_list_file(self) -> None:
        (self._dir / _LIST_FILE).write_bytes(self._index.to_bytes())

    def _drop_key(self, key: str) -> None:
        self._ram.pop(key, None)
        name = self._index.file_name_or_empty(key)
        if name:
            (self._dir / name).unlink(missing_ok=True)
            self._index.remove(key)

    def _add_to_ram(self, key: str, value: str) -> None:
        self._ram[key] = value
        self._ram.move_to_end(key)
        while len(self._ram) > self._ram_size:
            self._ram.popitem(last=False)

    def _new_file_name(self) -> str:
        # Several processes may write at once, so the name mixes time and pid.
        base = f"value_{time.time_ns() // 1_000_000}_{os.getpid()}"
        name = base
        for counter in range(_MAX_NAME_ATTEMPTS):
            if not (self._dir / name).exists():
                break
            name = f"{base}_{counter}"
        return name

    # --- public API ----------------------------------------------------

    def add_data(self, key: str, value: str, time_to_keep: timedelta = timedelta(hours=24)) -> bool:
        """Store ``value`` under ``key``; an empty value deletes the key.

        Returns ``False`` only for an empty key.
        """
        if not key:
            return False
        with self._lock:
            if not value:
                self._drop_key(key)
            else:
                name = self._new_file_name()
                blob = CompressedBlob.from_text(value, time_to_keep)
                self._drop_key(key)
                (self._dir / name).write_bytes(blob.to_bytes())
                self._index.key2filename[key] = name
            self._adds += 1
            if self._adds % _DUMP_EVERY == 0:
                self._dump_list_file()
        return True

    def get_data(self, key: str) -> str:
        """Return the value for ``key``, or an empty string.

        Missing, expired or corrupt entries are dropped from the cache.
        """
        if not key:
            return ""
        with self._lock:
            cached = self._ram.get(key)
            if cached is not None:
                self._ram.move_to_end(key)
                return cached
            name = self._index.file_name_or_empty(key)
            if name:
                try:
                    blob = CompressedBlob.from_bytes((self._dir / name).read_bytes())
                except (OSError, ValueError):
                    blob = None
                if blob is not None and blob.is_valid_yet():
                    text = blob.unpack()
                    if text is not None:
                        self._add_to_ram(key, text)
                        return text
            self._drop_key(key)
        return ""

    def clean_all(self) -> None:
        """Remove every entry and all cache files."""
        with self._lock:
            self._index.clear()
            self._ram.clear()
            shutil.rmtree(self._dir, ignore_errors=True)
            self._dir.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        """Write the index to disk."""
        with self._lock:
            self._dump_list_file()

    def __enter__(self) -> StringsFileCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()