"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ApiConfig,
    FetchConfig,
    GlobalConfig,
    HarvestInput,
    MissingFieldPolicy,
    RetryConfig,
    StorageConfig,
)

__all__ = [
    "ApiConfig",
    "ConfigLocator",
    "ConfigRepository",
    "FetchConfig",
    "GlobalConfig",
    "HarvestInput",
    "MissingFieldPolicy",
    "RetryConfig",
    "StorageConfig",
]
