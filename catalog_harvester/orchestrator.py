"""Run coordinator wiring together probing, fan-out, dedup and storage."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import structlog

from .config import GlobalConfig, HarvestInput
from .engine import ConcurrencyPool, Item, PageFetcher, PagePlan, RetryingTransport, Task, deduplicate_by_key
from .engine.exporter import STORAGE_BACKENDS, open_key_value_store
from .engine.pool import SettledCallback
from .errors import ConfigError

PlanCallback = Callable[[PagePlan], None]
TransportFactory = Callable[[GlobalConfig, int], RetryingTransport]


class PaginationOrchestrator:
    """Probe the total, fan out one task per page and merge the pages."""

    def __init__(
        self,
        fetcher: PageFetcher,
        pool: ConcurrencyPool[list[Item]] | None = None,
        page_size: int = 25,
        concurrency_limit: int = 5,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self.fetcher = fetcher
        self.pool = pool or ConcurrencyPool()
        self.page_size = page_size
        self.concurrency_limit = concurrency_limit
        self.logger = logger or structlog.get_logger("catalog_harvester.orchestrator")
        self.plan: PagePlan | None = None
        self.fetched = 0

    async def run(
        self,
        on_plan: PlanCallback | None = None,
        on_settled: SettledCallback | None = None,
    ) -> list[Item]:
        total = await self.fetcher.probe_count()
        plan = PagePlan.build(total, self.page_size)
        self.plan = plan
        self.fetched = 0
        self.logger.info("plan_ready", total_items=plan.total_items, page_count=plan.page_count)
        if on_plan is not None:
            on_plan(plan)
        if plan.page_count == 0:
            return []

        tasks = [self._page_task(offset) for offset in plan.offsets]
        pages = await self.pool.run_all(tasks, self.concurrency_limit, on_settled=on_settled)

        flattened = [item for page in pages for item in page]
        self.fetched = len(flattened)
        result = deduplicate_by_key(flattened, key=lambda item: item.url)
        self.logger.info(
            "dedup_complete",
            fetched=result.total,
            unique=len(result.items),
            duplicates=result.duplicates,
            peak_in_flight=self.pool.stats.peak_in_flight,
        )
        return result.items

    def _page_task(self, offset: int) -> Task[list[Item]]:
        return lambda: self.fetcher.fetch_page(offset, self.page_size)


@dataclass(slots=True)
class HarvestSummary:
    total_items: int
    page_count: int
    fetched: int
    stored: int
    store_name: str
    key: str
    backend: str


def _default_transport(config: GlobalConfig, max_connections: int) -> RetryingTransport:
    return RetryingTransport.from_config(config.api, config.retry, max_connections=max_connections)


class Harvester:
    """Top-level run: build collaborators, harvest, then write the store once."""

    def __init__(
        self,
        global_config: GlobalConfig,
        storage_dir: Path,
        transport_factory: TransportFactory | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.global_config = global_config
        self.storage_dir = storage_dir
        self.transport_factory = transport_factory or _default_transport
        self.logger = logger or structlog.get_logger("catalog_harvester.harvester")

    async def run(
        self,
        harvest_input: HarvestInput,
        on_plan: PlanCallback | None = None,
        on_settled: SettledCallback | None = None,
        backend: str | None = None,
    ) -> HarvestSummary:
        """Harvest every page and write the records once.

        ``backend`` overrides ``storage.backend`` from the global config for this run.
        """

        backend = backend or self.global_config.storage.backend
        if backend not in STORAGE_BACKENDS:
            raise ConfigError(f"Unknown storage backend: {backend} (choose from {', '.join(STORAGE_BACKENDS)})")
        log =self.logger.bind(store=harvest_input.store_name, key=harvest_input.key)
        log.info(
            "harvest_started",
            page_size=harvest_input.page_size,
            max_concurrent_requests=harvest_input.max_concurrent_requests,
        )
        limit = harvest_input.max_concurrent_requests
        async with self.transport_factory(self.global_config, limit) as transport:
            fetcher = PageFetcher(
                transport,
                self.global_config.api,
                missing_field_policy=self.global_config.fetch.missing_field_policy,
            )
            orchestrator = PaginationOrchestrator(
                fetcher,
                page_size=harvest_input.page_size,
                concurrency_limit=limit,
            )
            items = await orchestrator.run(on_plan=on_plan, on_settled=on_settled)

        store = open_key_value_store(harvest_input.store_name, self.storage_dir, backend)
        try:
            store.put(harvest_input.key, [item.as_record() for item in items])
        finally:
            store.close()
        log.info("store_written", stored=len(items), backend=backend)

        plan = orchestrator.plan
        return HarvestSummary(
            total_items=plan.total_items if plan else 0,
            page_count=plan.page_count if plan else 0,
            fetched=orchestrator.fetched,
            stored=len(items),
            store_name=harvest_input.store_name,
            key=harvest_input.key,
            backend=backend,
        )


__all__ = ["HarvestSummary", "Harvester", "PaginationOrchestrator"]
