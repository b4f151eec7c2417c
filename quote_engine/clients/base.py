"""Shared HTTP plumbing for collaborator service clients."""

import logging
import time
from typing import Any, Optional

import httpx

from quote_engine import metrics

logger = logging.getLogger(__name__)


class ServiceClient:
    """
    Base for clients of other platform services.

    Every call goes through one lazily created httpx.AsyncClient with a
    bounded timeout. Outcome and latency are recorded per service.
    """

    service: str = "collaborator"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        service_name: str = "quote-service",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.service_name = service_name
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"X-Service": self.service_name, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and record the call; transport errors propagate."""
        client = await self._get_client()
        start = time.perf_counter()
        success = False
        try:
            response = await client.request(method, path, **kwargs)
            success = response.is_success
            return response
        finally:
            metrics.record_collaborator_call(self.service, success, time.perf_counter() - start)


def unwrap(payload: Any) -> dict:
    """Accept both bare objects and {"data": {...}} envelopes."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload if isinstance(payload, dict) else {}
