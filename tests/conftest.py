"""Pytest fixtures: an in-memory catalog API behind ``httpx.MockTransport``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from catalog_harvester.config import ApiConfig, ConfigLocator, ConfigRepository, GlobalConfig
from catalog_harvester.engine import RetryingTransport, RetryPolicy

TEST_ENDPOINT = "https://catalog.test/explore-api"


def make_rows(count: int, start: int = 0) -> list[dict[str, Any]]:
    return [
        {
            "id": str(index),
            "name": f"App {index}",
            "profileUrl": f"https://zapier.com/apps/app-{index}/integrations",
            "logo": {"mainUrl": f"https://cdn.zapier.com/app-{index}.png"},
            "slug": f"app-{index}",
        }
        for index in range(start, start + count)
    ]


class FakeCatalogApi:
    """Serve ``CategoryAppsBFFQuery`` requests from a fixed list of rows.

    ``failures`` maps ``(offset, limit)`` to outcomes consumed one per request
    before the real page is served: an int is returned as that status code,
    an exception instance is raised as a network failure.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]],
        count: int | None = None,
        failures: dict[tuple[int, int], list[Any]] | None = None,
    ) -> None:
        self.rows = rows
        self.count = len(rows) if count is None else count
        self.failures = {key: list(value) for key, value in (failures or {}).items()}
        self.calls: list[tuple[int, int]] = []
        self.bodies: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.bodies.append(body)
        variables = body["variables"]
        offset, limit = variables["offset"], variables["limit"]
        self.calls.append((offset, limit))
        pending = self.failures.get((offset, limit))
        if pending:
            outcome = pending.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, json={"errors": [{"message": "upstream failure"}]})
        page = self.rows[offset : offset + limit]
        return httpx.Response(
            200,
            json={"data": {"appCategory": {"apps": {"results": page, "count": self.count}}}},
        )

    @property
    def page_calls(self) -> list[tuple[int, int]]:
        return self.calls[1:]


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(endpoint=TEST_ENDPOINT)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_transport(sleeps: list[float]) -> Callable[..., RetryingTransport]:
    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _builder(handler: Callable[[httpx.Request], httpx.Response], policy: RetryPolicy | None = None) -> RetryingTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RetryingTransport(client, policy=policy, sleep=record_sleep)

    return _builder


@pytest.fixture
def catalog_api() -> Callable[..., FakeCatalogApi]:
    def _builder(rows: Iterable[dict[str, Any]] | int, **kwargs: Any) -> FakeCatalogApi:
        if isinstance(rows, int):
            rows = make_rows(rows)
        return FakeCatalogApi(list(rows), **kwargs)

    return _builder


@pytest.fixture
def global_config(api_config: ApiConfig) -> GlobalConfig:
    return GlobalConfig(api=api_config)


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigRepository:
    monkeypatch.setenv("CATALOG_HARVESTER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    return ConfigRepository(locator)
