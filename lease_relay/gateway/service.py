"""
Lease Request Gateway: authorize, validate, forward, relay.

Behavioral Contract:
- Stateless: holds no session state between requests
- Fails fast on Unauthorized / InvalidArgument before any outbound call
- Performs a single forward attempt per request, never retries
- Relays the engine body verbatim on success
"""

from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from lease_relay.config import AppConfig
from lease_relay.gateway.auth import TokenDirectory
from lease_relay.gateway.errors import InvalidArgument, LeaseGatewayError
from lease_relay.gateway.forwarder import WebhookForwarder
from lease_relay.gateway.validation import build_command, validate_session_id
from lease_relay.models.gateway import GatewayResult
from lease_relay.models.lease import Lease, LeaseStatus, utcnow
from lease_relay.owner_config.store import OwnerConfigStore, require_url


class LeaseGateway:
    """Turns authenticated lease requests into single webhook calls."""

    def __init__(
        self,
        app_config: AppConfig,
        owner_store: OwnerConfigStore,
        token_directory: TokenDirectory,
        forwarder: Optional[WebhookForwarder] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.app_config = app_config
        self.owner_store = owner_store
        self.tokens = token_directory
        self.forwarder = forwarder or WebhookForwarder(
            timeout_seconds=app_config.webhook_timeout_seconds
        )
        self._clock = clock or utcnow

    async def handle(self, authorization: Optional[str], body: Any) -> GatewayResult:
        """
        Process one lease request. Gateway errors are folded into a
        structured failure result; anything else propagates.
        """
        try:
            data = await self.submit(authorization, body)
        except LeaseGatewayError as e:
            return GatewayResult(
                status_code=e.status_code,
                body=e.to_response().model_dump(exclude_none=True),
            )
        return GatewayResult(status_code=200, body=data)

    async def submit(self, authorization: Optional[str], body: Any) -> Any:
        """Authorize, validate and forward; raise LeaseGatewayError on failure."""
        owner_id = self.tokens.resolve(authorization)
        owner = self.owner_store.resolve(owner_id, self.app_config)

        try:
            command = build_command(body, owner.defaultTTLHours)
        except InvalidArgument as e:
            logger.info(f"Rejected lease request from owner {owner_id}: {e.message}")
            raise

        url = require_url(owner.webhookUrl, "lease")
        return await self.forwarder.forward(url, command, owner.authToken)

    async def status(self, authorization: Optional[str], session_id: Any) -> LeaseStatus:
        """Authoritative route and expiry for one session."""
        owner_id = self.tokens.resolve(authorization)
        session_id = validate_session_id(session_id)
        owner = self.owner_store.resolve(owner_id, self.app_config)
        url = require_url(owner.statusWebhookUrl, "status")

        data = await self.forwarder.fetch_status(url, session_id, owner.authToken)
        if not isinstance(data, dict):
            data = {}
        lease = Lease.from_remote(
            data.get("route"),
            data.get("lock_until", data.get("lockUntil")),
            self._clock(),
        )
        return LeaseStatus.from_lease(session_id, lease)
