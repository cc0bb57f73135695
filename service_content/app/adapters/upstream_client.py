"""
Async HTTP client for the upstream content API.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, TYPE_CHECKING

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger
from ..resources.options import ResourceType
from ..resources.resolver import RequestDescriptor

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class UpstreamClient:
    """Fetches raw payloads for request descriptors.

    No retries happen here; a failed call becomes an ``UpstreamError`` that
    keeps the upstream status so clients see the upstream's own semantics.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.metrics = metrics
        self.logger = get_logger("content.upstream")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def fetch(self, descriptor: RequestDescriptor) -> Any:
        """Retrieve the raw payload for ``descriptor``."""
        start = time.perf_counter()
        try:
            return await self._fetch(descriptor)
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "upstream_fetch_duration_seconds",
                    time.perf_counter() - start,
                    resource_type=descriptor.resource_type.value,
                )

    async def _fetch(self, descriptor: RequestDescriptor) -> Any:
        params = list(descriptor.query)
        if descriptor.resource_type is ResourceType.MULTI:
            paths = descriptor.upstream_paths
            payloads = await asyncio.gather(
                *(self._get(path, params) for path in paths.values())
            )
            return dict(zip(paths, payloads))
        return await self._get(descriptor.upstream_path, params)

    async def _get(self, path: str, params) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            self._record_error("timeout")
            self.logger.error("Upstream request timed out", path=path, error=str(exc))
            raise UpstreamError(message="Upstream request timed out", details={"path": path}) from exc
        except httpx.HTTPError as exc:
            self._record_error("transport")
            self.logger.error("Upstream request failed", path=path, error=str(exc))
            raise UpstreamError(message="Upstream unreachable", details={"path": path}) from exc

        if not response.is_success:
            self._record_error(str(response.status_code))
            self.logger.error(
                "Upstream returned an error",
                path=path,
                status_code=response.status_code,
            )
            raise UpstreamError(
                status=response.status_code,
                body=response.text,
                message=f"Upstream responded with {response.status_code}",
                details={"path": path},
            )

        try:
            payload = response.json()
        except ValueError as exc:
            self._record_error("decode")
            self.logger.error("Upstream returned invalid JSON", path=path)
            raise UpstreamError(
                body=response.text,
                message="Upstream returned invalid JSON",
                details={"path": path},
            ) from exc

        self.logger.debug("Upstream payload retrieved", path=path, status_code=response.status_code)
        return payload

    def _record_error(self, status: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("upstream_errors_total", status=status)
