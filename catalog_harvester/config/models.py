"""Pydantic models used across the harvester configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ENDPOINT = "https://zapier.com/explore-api"
DEFAULT_KV_STORE_KEY = "zapier"
DEFAULT_KV_STORE_NAME = "default"


class MissingFieldPolicy(str, Enum):
    """How a result row lacking an expected field is handled."""

    DEFAULT = "default"
    SKIP = "skip"
    FAIL = "fail"


class ApiConfig(BaseModel):
    """Remote listing endpoint and the query variables sent with every page."""

    endpoint: str = DEFAULT_ENDPOINT
    category_slug: str = "all"
    order_by: str = "POPULARITY"
    filter_by: str = ""
    timeout: float = 30.0
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value


class RetryConfig(BaseModel):
    """Retry budget applied to each individual request."""

    max_retries: int = 3
    backoff_step: float = 1.0

    @field_validator("max_retries")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries must be >= 0")
        return value

    @field_validator("backoff_step")
    @classmethod
    def _non_negative_step(cls, value: float) -> float:
        if value < 0:
            raise ValueError("backoff_step must be >= 0")
        return value


class StorageConfig(BaseModel):
    """Where and how the key-value store persists the final dataset."""

    backend: Literal["file", "sqlite"] = "file"
    storage_dir: Path = Field(default=Path("storage"))

    @field_validator("storage_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_dir(self, base_dir: Path) -> Path:
        """Return the storage directory relative to the project home."""

        if not self.storage_dir.is_absolute():
            return (base_dir / self.storage_dir).resolve()
        return self.storage_dir


class FetchConfig(BaseModel):
    missing_field_policy: MissingFieldPolicy = MissingFieldPolicy.DEFAULT


class GlobalConfig(BaseModel):
    """Settings shared by every run."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)


class HarvestInput(BaseModel):
    """Per-run input. Accepts both snake_case names and the camelCase input keys."""

    model_config = ConfigDict(populate_by_name=True)

    key_value_store: str | None = Field(default=None, alias="keyValueStore")
    key: str = DEFAULT_KV_STORE_KEY
    page_size: int = Field(default=25, alias="pageSize")
    max_concurrent_requests: int = Field(default=5, alias="maxConcurrentRequests")

    @field_validator("page_size", "max_concurrent_requests")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("key")
    @classmethod
    def _non_empty_key(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("key cannot be empty")
        return value

    @property
    def store_name(self) -> str:
        return self.key_value_store or DEFAULT_KV_STORE_NAME


__all__ = [
    "ApiConfig",
    "DEFAULT_ENDPOINT",
    "DEFAULT_KV_STORE_KEY",
    "DEFAULT_KV_STORE_NAME",
    "FetchConfig",
    "GlobalConfig",
    "HarvestInput",
    "MissingFieldPolicy",
    "RetryConfig",
    "StorageConfig",
]
