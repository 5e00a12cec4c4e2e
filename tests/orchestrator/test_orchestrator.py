from __future__ import annotations

import json

import httpx
import pytest

from catalog_harvester.config import GlobalConfig, HarvestInput, StorageConfig
from catalog_harvester.engine import ConcurrencyPool, PageFetcher
from catalog_harvester.engine.exporter import open_key_value_store
from catalog_harvester.errors import FetchError, PoolError
from catalog_harvester.orchestrator import Harvester, PaginationOrchestrator


@pytest.mark.asyncio
async def test_end_to_end_fan_out(make_transport, catalog_api, api_config) -> None:
    api = catalog_api(57)
    pool = ConcurrencyPool()
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(
            PageFetcher(transport, api_config), pool, page_size=25, concurrency_limit=2
        )
        items = await orchestrator.run()

    assert orchestrator.plan.page_count == 3
    assert api.calls[0] == (0, 1)
    assert sorted(api.page_calls) == [(0, 25), (25, 25), (50, 25)]
    assert pool.stats.submitted == 3
    assert pool.stats.peak_in_flight <= 2
    assert orchestrator.fetched == 57
    assert len(items) == 57
    assert len({item.url for item in items}) == 57


@pytest.mark.asyncio
async def test_empty_dataset_only_probes(make_transport, catalog_api, api_config) -> None:
    api = catalog_api(0)
    plans = []
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(PageFetcher(transport, api_config))
        items = await orchestrator.run(on_plan=plans.append)

    assert items == []
    assert api.calls == [(0, 1)]
    assert plans[0].page_count == 0


@pytest.mark.asyncio
async def test_duplicates_across_pages_are_merged(make_transport, catalog_api, api_config) -> None:
    rows = [
        {"name": "Slack", "profileUrl": "https://zapier.com/apps/slack", "logo": {"mainUrl": "a.png"}},
        {"name": "Gmail", "profileUrl": "https://zapier.com/apps/gmail", "logo": {"mainUrl": "b.png"}},
        {"name": "Slack v2", "profileUrl": "https://zapier.com/apps/slack", "logo": {"mainUrl": "c.png"}},
    ]
    api = catalog_api(rows)
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(
            PageFetcher(transport, api_config), page_size=1, concurrency_limit=1
        )
        items = await orchestrator.run()

    # limit 1 keeps settlement order equal to page order
    assert [item.name for item in items] == ["Slack v2", "Gmail"]
    assert orchestrator.fetched == 3


@pytest.mark.asyncio
async def test_probe_failure_aborts_before_fan_out(make_transport, catalog_api, api_config, sleeps) -> None:
    api = catalog_api(10, failures={(0, 1): [404]})
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(PageFetcher(transport, api_config))
        with pytest.raises(FetchError) as excinfo:
            await orchestrator.run()

    assert excinfo.value.offset == "stats"
    assert api.calls == [(0, 1)]
    assert sleeps == []


@pytest.mark.asyncio
async def test_page_failure_surfaces_as_pool_error(make_transport, catalog_api, api_config) -> None:
    api = catalog_api(125, failures={(25, 25): [503, 503, 503, 503]})
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(
            PageFetcher(transport, api_config), page_size=25, concurrency_limit=2
        )
        with pytest.raises(PoolError) as excinfo:
            await orchestrator.run()

    assert excinfo.value.index == 1
    assert isinstance(excinfo.value.cause, FetchError)
    assert excinfo.value.cause.offset == 25


@pytest.mark.asyncio
async def test_transient_page_failure_recovers(make_transport, catalog_api, api_config, sleeps) -> None:
    api = catalog_api(
        60, failures={(25, 25): [503, httpx.ConnectError("connection reset")]}
    )
    async with make_transport(api) as transport:
        orchestrator = PaginationOrchestrator(PageFetcher(transport, api_config), page_size=25)
        items = await orchestrator.run()

    assert len(items) == 60
    assert sleeps == [1.0, 2.0]


def test_rejects_invalid_sizes(make_transport, catalog_api, api_config) -> None:
    fetcher = PageFetcher(make_transport(catalog_api(1)), api_config)
    with pytest.raises(ValueError):
        PaginationOrchestrator(fetcher, page_size=0)
    with pytest.raises(ValueError):
        PaginationOrchestrator(fetcher, concurrency_limit=0)


# ----------------------------------------------------------------------
# Harvester: single store write per successful run
# ----------------------------------------------------------------------
def _harvester(tmp_path, global_config, make_transport, api) -> Harvester:
    return Harvester(
        global_config,
        tmp_path / "storage",
        transport_factory=lambda _config, _limit: make_transport(api),
    )


@pytest.mark.asyncio
async def test_harvester_stores_deduplicated_items(tmp_path, global_config, make_transport, catalog_api) -> None:
    api = catalog_api(57)
    harvester = _harvester(tmp_path, global_config, make_transport, api)
    settled = []
    summary = await harvester.run(
        HarvestInput(keyValueStore="catalog", pageSize=25, maxConcurrentRequests=2),
        on_settled=lambda index, _outcome: settled.append(index),
    )

    assert summary.total_items == 57
    assert summary.page_count == 3
    assert summary.stored == 57
    assert summary.key == "zapier"
    assert sorted(settled) == [0, 1, 2]
    stored_path = tmp_path / "storage" / "key_value_stores" / "catalog" / "zapier.json"
    records = json.loads(stored_path.read_text(encoding="utf-8"))
    assert len(records) == 57
    assert records[0].keys() == {"name", "url", "icon"}


@pytest.mark.asyncio
async def test_harvester_writes_empty_collection(tmp_path, global_config, make_transport, catalog_api) -> None:
    harvester = _harvester(tmp_path, global_config, make_transport, catalog_api(0))
    summary = await harvester.run(HarvestInput())

    assert summary.stored == 0
    store = open_key_value_store("default", tmp_path / "storage")
    assert store.get("zapier") == []


@pytest.mark.asyncio
async def test_harvester_failure_skips_store_write(tmp_path, global_config, make_transport, catalog_api) -> None:
    api = catalog_api(125, failures={(25, 25): [500, 500, 500, 500]})
    harvester = _harvester(tmp_path, global_config, make_transport, api)

    with pytest.raises(PoolError):
        await harvester.run(HarvestInput(pageSize=25, maxConcurrentRequests=2))

    assert not (tmp_path / "storage" / "key_value_stores" / "default" / "zapier.json").exists()


@pytest.mark.asyncio
async def test_harvester_sqlite_backend(tmp_path, api_config, make_transport, catalog_api) -> None:
    config = GlobalConfig(api=api_config, storage=StorageConfig(backend="sqlite"))
    harvester = _harvester(tmp_path, config, make_transport, catalog_api(30))
    summary = await harvester.run(HarvestInput(key="apps", pageSize=10))

    assert summary.backend == "sqlite"
    store = open_key_value_store("default", tmp_path / "storage", "sqlite")
    try:
        assert len(store.get("apps")) == 30
    finally:
        store.close()
