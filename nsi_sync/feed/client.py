"""
Upstream Feed Client -- how the engine talks to the accounting system (UH).

Contract:
    ``get_delta(since_version)`` returns every reference item changed after
    ``since_version`` plus the new cursor.  ``get_warehouse_delta()`` returns
    warehouses only; its cursor is independent of the general one.

HttpFeedClient:
    GET {base_url}{delta_path}?version=N
    GET {base_url}{warehouse_delta_path}[?version=N]

    Every request carries an explicit timeout.  Connection failures are
    retried by the transport (``httpx.HTTPTransport(retries=...)``); HTTP
    error statuses are not retried.

Failure modes:
    - FeedUnavailableError: connect/read failure, timeout, non-2xx status.
    - FeedMalformedError: body is not JSON or does not have the expected shape.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from portal_kernel.exceptions import FeedMalformedError, FeedUnavailableError
from portal_kernel.logging_config import get_logger

from nsi_sync.domain.types import DeltaBatch, WarehouseDelta
from nsi_sync.feed.parsing import parse_delta_batch, parse_warehouse_delta

logger = get_logger("nsi.feed")


class UpstreamFeedClient(Protocol):
    """What the sync service needs from the upstream feed."""

    def get_delta(self, since_version: int) -> DeltaBatch:
        ...

    def get_warehouse_delta(self, since_version: int | None = None) -> WarehouseDelta:
        ...


class HttpFeedClient:
    """UpstreamFeedClient over HTTP/JSON using a synchronous httpx.Client."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        retries: int = 2,
        api_key: str | None = None,
        delta_path: str = "/nsi/delta",
        warehouse_delta_path: str = "/nsi/warehouses/delta",
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        self._delta_path = delta_path
        self._warehouse_delta_path = warehouse_delta_path
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport or httpx.HTTPTransport(retries=retries),
            headers=headers,
        )

    @classmethod
    def from_settings(cls, settings: Any, transport: httpx.BaseTransport | None = None) -> HttpFeedClient:
        """Build from ``portal_config.FeedSettings``."""
        return cls(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            retries=settings.retries,
            api_key=settings.api_key,
            delta_path=settings.delta_path,
            warehouse_delta_path=settings.warehouse_delta_path,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # UpstreamFeedClient
    # ------------------------------------------------------------------

    def get_delta(self, since_version: int) -> DeltaBatch:
        payload = self._get_json(self._delta_path, {"version": since_version})
        batch = parse_delta_batch(payload)
        logger.debug(
            "feed_delta_fetched",
            extra={"since_version": since_version, "version": batch.version, "items": len(batch.items)},
        )
        return batch

    def get_warehouse_delta(self, since_version: int | None = None) -> WarehouseDelta:
        params = {"version": since_version} if since_version is not None else None
        payload = self._get_json(self._warehouse_delta_path, params)
        delta = parse_warehouse_delta(payload)
        logger.debug(
            "feed_warehouse_delta_fetched",
            extra={"since_version": since_version, "items": len(delta.items)},
        )
        return delta

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFeedClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_json(self, path: str, params: dict[str, Any] | None) -> Any:
        endpoint = f"{self._client.base_url}{path.lstrip('/')}"
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FeedUnavailableError(
                endpoint,
                exc.response.reason_phrase or "HTTP error",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise FeedUnavailableError(endpoint, str(exc) or type(exc).__name__) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise FeedMalformedError(f"response from {endpoint} is not JSON") from exc
