"""Key-based deduplication of merged page results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Hashable, Iterable, TypeVar

T = TypeVar("T")


@dataclass
class DeduplicationResult:
    items: list
    total: int

    @property
    def duplicates(self) -> int:
        return self.total - len(self.items)


def deduplicate_by_key(records: Iterable[T], key: Callable[[T], Hashable]) -> DeduplicationResult:
    """Keep one record per key.

    The last record seen for a key wins, but it stays at the position where the
    key first appeared (plain ``dict`` insertion order is not changed by
    overwriting a value).
    """

    unique: dict[Hashable, T] = {}
    total = 0
    for record in records:
        unique[key(record)] = record
        total += 1
    return DeduplicationResult(items=list(unique.values()), total=total)


__all__ = ["DeduplicationResult", "deduplicate_by_key"]
