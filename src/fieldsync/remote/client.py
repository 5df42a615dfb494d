"""
Remote-apply boundary: sends one queued mutation to the backend.

Any exception raised by apply_mutation is treated by the sync driver as a
retryable failure. The backend deduplicates on the Idempotency-Key header,
so resending a mutation after a lost response is safe.
"""
import asyncio
import logging
from typing import Optional, Protocol

import httpx

from fieldsync.config import Settings
from fieldsync.errors import RemoteApplyError
from fieldsync.models.mutation import MutationOperation, MutationRecord

logger = logging.getLogger(__name__)


class RemoteApplier(Protocol):
    async def apply_mutation(self, record: MutationRecord) -> None:
        ...


class MockRemoteApplier:
    """
    Development stand-in for the backend: waits a short delay per item and
    always succeeds. Lets the queue be exercised without a server.
    """

    def __init__(self, delay_ms: int = 300):
        self.delay_ms = delay_ms
        self.applied_count = 0

    async def apply_mutation(self, record: MutationRecord) -> None:
        await asyncio.sleep(self.delay_ms / 1000)
        self.applied_count += 1
        logger.debug("Mock applied %s %s/%s", record.operation.value, record.resource, record.record_id)


class HttpRemoteApplier:
    """
    Applies mutations over HTTP.

      create  -> POST   {base_url}/{resource}
      update  -> PATCH  {base_url}/{resource}/{record_id}
      delete  -> DELETE {base_url}/{resource}/{record_id}
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Backend API root, e.g. "https://api.example.com/v1".
            api_token: Bearer token; omitted from requests when empty.
            timeout: Per-request timeout in seconds.
            client: Pre-built AsyncClient (tests pass one with a MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client = client

    def _request_for(self, record: MutationRecord):
        op = MutationOperation(record.operation)
        if op == MutationOperation.CREATE:
            return "POST", f"{self.base_url}/{record.resource}"
        if op == MutationOperation.UPDATE:
            return "PATCH", f"{self.base_url}/{record.resource}/{record.record_id}"
        return "DELETE", f"{self.base_url}/{record.resource}/{record.record_id}"

    def _headers(self, record: MutationRecord) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": record.idempotency_key,
            "X-Tenant-Id": record.tenant_id,
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def apply_mutation(self, record: MutationRecord) -> None:
        method, url = self._request_for(record)
        kwargs = {"headers": self._headers(record)}
        if method != "DELETE":
            kwargs["json"] = record.payload

        if self._client is not None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)

        if response.is_error:
            raise RemoteApplyError(
                f"{method} {record.resource}/{record.record_id} failed: "
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Applied %s %s (%s)", method, url, record.idempotency_key)


def build_remote_applier(settings: Settings) -> RemoteApplier:
    """Pick the applier for the configured remote_mode."""
    if settings.remote_mode == "http":
        if not settings.remote_base_url:
            raise ValueError("FIELDSYNC_REMOTE_BASE_URL is required when remote_mode=http")
        return HttpRemoteApplier(
            base_url=settings.remote_base_url,
            api_token=settings.remote_api_token,
            timeout=settings.remote_timeout_seconds,
        )
    if settings.remote_mode == "mock":
        return MockRemoteApplier(delay_ms=settings.mock_item_delay_ms)
    raise ValueError(f"Unknown remote_mode: {settings.remote_mode!r}")
