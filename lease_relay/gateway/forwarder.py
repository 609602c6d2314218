"""
Webhook Forwarder: the gateway's single outbound call to the automation engine.

Behavioral Contract:
- Exactly one attempt per request; retry policy belongs to the caller
- Every call is bounded by a timeout; expiry is reported as UpstreamUnavailable
- A non-2xx status, or a payload carrying ``ok: false``, is a failure
- Non-JSON bodies are treated as an empty object
"""

from typing import Any, Optional

import httpx
from loguru import logger

from lease_relay.gateway.auth import outbound_authorization
from lease_relay.gateway.errors import UpstreamUnavailable
from lease_relay.models.gateway import LeaseCommand


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _check(response: httpx.Response, data: Any) -> Any:
    """Raise UpstreamUnavailable for a failed engine response."""
    payload_failed = isinstance(data, dict) and data.get("ok") is False
    if response.is_success and not payload_failed:
        return data

    message = None
    if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
        message = data["error"]
    if not message:
        message = f"Webhook error (HTTP {response.status_code})"
    logger.error(f"Webhook answered with failure: HTTP {response.status_code}")
    raise UpstreamUnavailable(message, status_code=response.status_code, details=data)


class WebhookForwarder:
    """Posts lease commands and status queries to an owner's webhooks."""

    def __init__(
        self,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        )

    @staticmethod
    def _headers(auth_token: Optional[str]) -> dict:
        headers = {"Content-Type": "application/json"}
        authorization = outbound_authorization(auth_token)
        if authorization:
            headers["Authorization"] = authorization
        return headers

    async def forward(
        self,
        url: str,
        command: LeaseCommand,
        auth_token: Optional[str] = None,
    ) -> Any:
        """Send one lease command; return the engine's decoded body."""
        logger.info(
            f"Forwarding {command.action.value} for session {command.session_id}"
        )
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    json=command.to_payload(),
                    headers=self._headers(auth_token),
                )
        except httpx.TimeoutException:
            logger.error(f"Webhook timed out after {self.timeout_seconds}s")
            raise UpstreamUnavailable(
                f"Webhook timed out after {self.timeout_seconds:g}s",
                status_code=504,
            )
        except httpx.HTTPError as e:
            logger.error(f"Webhook call failed: {e}")
            raise UpstreamUnavailable(f"Webhook unreachable: {e}", status_code=500)

        data = _decode(response)
        logger.info(f"Webhook answered HTTP {response.status_code}")
        return _check(response, data)

    async def fetch_status(
        self,
        url: str,
        session_id: str,
        auth_token: Optional[str] = None,
    ) -> Any:
        """Query the status webhook for one session."""
        try:
            async with self._client() as client:
                response = await client.get(
                    url,
                    params={"session_id": session_id},
                    headers=self._headers(auth_token),
                )
        except httpx.TimeoutException:
            logger.error(f"Status webhook timed out after {self.timeout_seconds}s")
            raise UpstreamUnavailable(
                f"Webhook timed out after {self.timeout_seconds:g}s",
                status_code=504,
            )
        except httpx.HTTPError as e:
            logger.error(f"Status webhook call failed: {e}")
            raise UpstreamUnavailable(f"Webhook unreachable: {e}", status_code=500)

        return _check(response, _decode(response))
