from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

import httpx

from ...errors import QuotaExceeded, TransientUpstreamError, UpstreamNotFound
from ..models import Platform, ResolvedMetadata

DEFAULT_TIMEOUT = 10.0


class MetadataAdapter(Protocol):
    """One upstream platform behind the resolver's normalized contract."""

    platform: Platform

    async def resolve(self, resource_id: str, is_live: bool = False) -> ResolvedMetadata: ...


class HttpJsonAdapter:
    """Shared httpx plumbing: status codes and transport errors become typed failures."""

    platform: Platform = Platform.UNKNOWN
    quota_statuses: frozenset[int] = frozenset()

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.logger = logger or logging.getLogger(type(self).__module__)

    async def _send(self, url: str, headers: Mapping[str, str], params: Mapping[str, Any] | None) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=headers, params=params)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=headers, params=params)

    async def _get_json(
        self,
        url: str,
        *,
        resource_id: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        name = self.platform.value
        try:
            response = await self._send(url, dict(headers or {}), params)
        except httpx.HTTPError as exc:
            self.logger.warning("%s request for %s failed: %s", name, resource_id, exc)
            raise TransientUpstreamError(name, resource_id, str(exc)) from exc

        status = response.status_code
        if status in self.quota_statuses:
            raise QuotaExceeded(name, f"HTTP {status}")
        if status == 429 or status >= 500:
            self.logger.warning("%s returned HTTP %s for %s", name, status, resource_id)
            raise TransientUpstreamError(name, resource_id, f"HTTP {status}")
        if status >= 400:
            self.logger.info("%s returned HTTP %s for %s", name, status, resource_id)
            raise UpstreamNotFound(name, resource_id)

        try:
            data = response.json()
        except ValueError as exc:
            raise TransientUpstreamError(name, resource_id, "response body is not JSON") from exc
        if not isinstance(data, dict):
            raise TransientUpstreamError(name, resource_id, "response body is not a JSON object")
        return data
