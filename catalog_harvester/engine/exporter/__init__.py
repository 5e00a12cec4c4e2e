"""Key-value store SPI and implementations."""

from __future__ import annotations

from pathlib import Path

from .base import KeyValueStore
from .file_store import FileKeyValueStore
from .sqlite_store import SQLiteKeyValueStore

_BACKENDS = {
    "file": FileKeyValueStore,
    "sqlite": SQLiteKeyValueStore,
}
STORAGE_BACKENDS = tuple(_BACKENDS)


def open_key_value_store(name: str, storage_dir: Path, backend: str = "file") -> KeyValueStore:
    try:
        factory = _BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unknown storage backend: {backend}") from None
    return factory(storage_dir, name)


__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "STORAGE_BACKENDS",
    "open_key_value_store",
]
