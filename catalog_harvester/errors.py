"""Exception hierarchy shared by the harvesting pipeline."""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for all failures surfaced by a harvest run."""


class ConfigError(HarvestError):
    """Raised before any fetching when input or configuration is unusable."""


class TransportError(HarvestError):
    """A request failed for good, either non-retryable or out of retries."""

    def __init__(self, message: str, *, status_code: int | None = None, attempts: int = 1) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


class FetchError(HarvestError):
    """A page (or the stats probe) could not be fetched or understood."""

    def __init__(self, message: str, *, offset: int | str) -> None:
        super().__init__(f"[{offset}] {message}")
        self.offset = offset


class PoolError(HarvestError):
    """Wrap the first task failure observed by the concurrency pool."""

    def __init__(self, cause: BaseException, *, index: int) -> None:
        super().__init__(f"Task {index} failed: {cause}")
        self.cause = cause
        self.index = index


__all__ = ["ConfigError", "FetchError", "HarvestError", "PoolError", "TransportError"]
