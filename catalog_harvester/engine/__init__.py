"""Engine components orchestrating probe → fan-out → dedup → store."""

from .dedup import DeduplicationResult, deduplicate_by_key
from .fetcher import PageFetcher
from .models import Item, PagePlan, PoolStats, Task
from .pool import ConcurrencyPool
from .transport import RetryingTransport, RetryPolicy

__all__ = [
    "ConcurrencyPool",
    "DeduplicationResult",
    "Item",
    "PageFetcher",
    "PagePlan",
    "PoolStats",
    "RetryPolicy",
    "RetryingTransport",
    "Task",
    "deduplicate_by_key",
]
