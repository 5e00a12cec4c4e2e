"""Map the catalog listing API onto count probes and typed pages."""

from __future__ import annotations

from typing import Any

import structlog

from ..config import ApiConfig, MissingFieldPolicy
from ..errors import FetchError, TransportError
from .models import Item
from .transport import RetryingTransport

STATS_MARKER = "stats"
OPERATION_NAME = "CategoryAppsBFFQuery"

CATEGORY_APPS_QUERY = """
    query CategoryAppsBFFQuery(
        $categorySlug: String = "all",
        $limit: Int = 10,
        $offset: Int = 0,
        $orderBy: AppSortOrder,
        $filterBy: String
    ) {
        appCategory: appCategoryWithSlug(slug: $categorySlug) {
            apps(
                orderBy: $orderBy
                limit: $limit
                offset: $offset
                additionalCategorySlug: $filterBy
            ) {
                results {
                    id
                    name
                    logo {
                        mainUrl
                    }
                    description
                    slug
                    profileUrl
                }
                count
            }
        }
    }
"""


def build_query(api: ApiConfig, offset: int, limit: int) -> dict[str, Any]:
    return {
        "operationName": OPERATION_NAME,
        "variables": {
            "categorySlug": api.category_slug,
            "offset": offset,
            "limit": limit,
            "orderBy": api.order_by,
            "filterBy": api.filter_by,
        },
        "query": CATEGORY_APPS_QUERY,
    }


class PageFetcher:
    """Issue the stats probe and page requests, mapping rows into ``Item``s."""

    def __init__(
        self,
        transport: RetryingTransport,
        api: ApiConfig | None = None,
        missing_field_policy: MissingFieldPolicy = MissingFieldPolicy.DEFAULT,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.transport = transport
        self.api = api or ApiConfig()
        self.missing_field_policy = MissingFieldPolicy(missing_field_policy)
        self.logger = logger or structlog.get_logger("catalog_harvester.fetcher")

    async def probe_count(self) -> int:
        apps = await self._query(0, 1, STATS_MARKER)
        count = apps.get("count")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise FetchError(f"Response carries no usable count: {count!r}", offset=STATS_MARKER)
        self.logger.info("probe_complete", total_items=count)
        return count

    async def fetch_page(self, offset: int, limit: int) -> list[Item]:
        apps = await self._query(offset, limit, offset)
        rows = apps.get("results")
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise FetchError(f"Expected a list of results, got {type(rows).__name__}", offset=offset)
        items: list[Item] = []
        for row in rows:
            item = self._map_row(row, offset)
            if item is not None:
                items.append(item)
        self.logger.debug("page_fetched", offset=offset, rows=len(rows), items=len(items))
        return items

    # ------------------------------------------------------------------
    async def _query(self, offset: int, limit: int, marker: int | str) -> dict[str, Any]:
        body = build_query(self.api, offset, limit)
        try:
            response = await self.transport.post(self.api.endpoint, json=body)
        except TransportError as exc:
            raise FetchError(str(exc), offset=marker) from exc
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Response is not valid JSON: {exc}", offset=marker) from exc
        return self._extract_apps(payload, marker)

    @staticmethod
    def _extract_apps(payload: Any, marker: int | str) -> dict[str, Any]:
        data = payload.get("data") if isinstance(payload, dict) else None
        category = data.get("appCategory") if isinstance(data, dict) else None
        apps = category.get("apps") if isinstance(category, dict) else None
        if not isinstance(apps, dict):
            errors = payload.get("errors") if isinstance(payload, dict) else None
            if errors:
                messages = "; ".join(
                    str(error.get("message", error)) if isinstance(error, dict) else str(error)
                    for error in errors
                )
                raise FetchError(f"API returned errors: {messages}", offset=marker)
            raise FetchError("Unexpected response shape: missing data.appCategory.apps", offset=marker)
        return apps

    def _map_row(self, row: Any, offset: int) -> Item | None:
        if not isinstance(row, dict):
            row = {}
        logo = row.get("logo")
        fields = {
            "name": row.get("name"),
            "url": row.get("profileUrl"),
            "icon": logo.get("mainUrl") if isinstance(logo, dict) else None,
        }
        missing = [name for name, value in fields.items() if value is None]
        if missing:
            if self.missing_field_policy is MissingFieldPolicy.FAIL:
                raise FetchError(f"Result row is missing {', '.join(missing)}", offset=offset)
            if self.missing_field_policy is MissingFieldPolicy.SKIP and fields["url"] is None:
                self.logger.warning("row_skipped", offset=offset, missing=missing)
                return None
            self.logger.debug("row_defaulted", offset=offset, missing=missing)
        return Item(
            name=_as_text(fields["name"]),
            url=_as_text(fields["url"]),
            icon=_as_text(fields["icon"]),
        )


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


__all__ = ["CATEGORY_APPS_QUERY", "PageFetcher", "STATS_MARKER", "build_query"]
