"""Gateway client used by the synchronizer."""

from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from lease_relay.models.lease import LeaseAction


class GatewayClientError(Exception):
    """A lease request or status read did not succeed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class GatewayClient(Protocol):
    async def send_action(
        self,
        session_id: str,
        action: LeaseAction,
        ttl_hours: Optional[int] = None,
    ) -> dict:
        ...

    async def fetch_status(self, session_id: str) -> dict:
        ...


class HttpGatewayClient:
    """Talks to the Lease Request Gateway over HTTP."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            raise GatewayClientError(
                f"Request timed out after {self.timeout_seconds:g}s", status_code=504
            )
        except httpx.HTTPError as e:
            logger.warning(f"Gateway unreachable: {e}")
            raise GatewayClientError(f"Gateway unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        # the gateway relays engine failures under the engine's own status,
        # which may be 2xx with an ok:false body
        failed = isinstance(data, dict) and data.get("ok") is False
        if not response.is_success or failed:
            message = None
            if isinstance(data, dict):
                message = data.get("error")
            raise GatewayClientError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                details=data.get("details") if isinstance(data, dict) else None,
            )
        return data if isinstance(data, dict) else {}

    async def send_action(
        self,
        session_id: str,
        action: LeaseAction,
        ttl_hours: Optional[int] = None,
    ) -> dict:
        body = {"sessionId": session_id, "action": LeaseAction(action).value}
        if ttl_hours is not None:
            body["ttlHours"] = ttl_hours
        return await self._request("POST", "/lease", json=body)

    async def fetch_status(self, session_id: str) -> dict:
        return await self._request("GET", f"/lease/{session_id}")
