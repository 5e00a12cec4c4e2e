"""Key-value store Service Provider Interface."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

_UNSAFE_NAME = re.compile(r"[^0-9A-Za-z_.-]+")


def safe_name(name: str, fallback: str) -> str:
    """Reduce a store name or key to characters safe for file names and tables."""

    return _UNSAFE_NAME.sub("_", name.strip()).strip(".") or fallback


class KeyValueStore(ABC):
    """Uniform sink contract: one JSON-serialisable value per key."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        """Durably store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or ``default``."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["KeyValueStore", "safe_name"]
