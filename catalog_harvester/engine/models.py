"""Value objects passed between the fetch, pool and dedup stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

# Deferred unit of async work consumed exactly once by the pool.
Task = Callable[[], Awaitable[T]]


@dataclass(frozen=True, slots=True)
class Item:
    """One catalog entry. ``url`` is the natural key."""

    name: str
    url: str
    icon: str

    def as_record(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url, "icon": self.icon}


@dataclass(frozen=True, slots=True)
class PagePlan:
    """Offsets to request once the total item count is known."""

    total_items: int
    page_size: int
    page_count: int
    offsets: tuple[int, ...]

    @classmethod
    def build(cls, total_items: int, page_size: int) -> "PagePlan":
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if total_items < 0:
            raise ValueError("total_items must be >= 0")
        page_count = -(-total_items // page_size)
        offsets = tuple(index * page_size for index in range(page_count))
        return cls(
            total_items=total_items,
            page_size=page_size,
            page_count=page_count,
            offsets=offsets,
        )


@dataclass(slots=True)
class PoolStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    peak_in_flight: int = 0


__all__ = ["Item", "PagePlan", "PoolStats", "Task"]
