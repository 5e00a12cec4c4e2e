"""HTTP transport with linear-backoff retry around each request."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx
import structlog

from ..config import ApiConfig, RetryConfig
from ..errors import TransportError

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(slots=True)
class RetryPolicy:
    """Decide whether a failed attempt is repeated and how long to wait first."""

    max_retries: int = 3
    backoff_step: float = 1.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(max_retries=config.max_retries, backoff_step=config.backoff_step)

    def backoff(self, retry_number: int) -> float:
        """Delay in seconds before retry ``retry_number`` (1-based): 1s, 2s, 3s..."""

        return retry_number * self.backoff_step

    def should_retry(self, error: Exception) -> bool:
        # No response at all: connection reset, timeout, protocol error.
        # Every request here is a read-only query, so it is safe to repeat.
        if isinstance(error, httpx.TransportError):
            return True
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code >= 500
        return False


class RetryingTransport:
    """Send requests through a shared async client, retrying transient failures."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: RetryPolicy | None = None,
        sleep: Sleep | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or structlog.get_logger("catalog_harvester.transport")

    @classmethod
    def from_config(
        cls,
        api: ApiConfig,
        retry: RetryConfig,
        max_connections: int = 10,
        **kwargs: Any,
    ) -> "RetryingTransport":
        client = httpx.AsyncClient(
            timeout=api.timeout,
            headers={"Content-Type": "application/json", **api.headers},
            limits=httpx.Limits(max_connections=max_connections),
            follow_redirects=True,
        )
        return cls(client, RetryPolicy.from_config(retry), **kwargs)

    async def __aenter__(self) -> "RetryingTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def post(self, url: str, json: Any) -> httpx.Response:
        return await self.execute("POST", url, json=json)

    async def execute(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        retries = 0
        while True:
            attempt = retries + 1
            try:
                response = await self._client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPError as exc:
                status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
                retryable = self.policy.should_retry(exc)
                if not retryable or retries >= self.policy.max_retries:
                    self.logger.warning(
                        "request_failed",
                        url=url,
                        attempt=attempt,
                        status=status,
                        error=str(exc),
                        retryable=retryable,
                    )
                    raise TransportError(
                        f"{method} {url} failed after {attempt} attempt(s): {exc}",
                        status_code=status,
                        attempts=attempt,
                    ) from exc
                retries += 1
                delay = self.policy.backoff(retries)
                self.logger.info(
                    "request_retry",
                    url=url,
                    attempt=attempt,
                    status=status,
                    error=str(exc),
                    delay=delay,
                )
                await self._sleep(delay)


__all__ = ["RetryPolicy", "RetryingTransport"]
