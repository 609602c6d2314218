"""
Lease Relay API: FastAPI endpoints.

Exposes the Lease Request Gateway over HTTP:
- Lease commands (lock / unlock / extend)
- Lease status reads
- Per-owner live-chat settings
"""

from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from lease_relay.config import AppConfig, get_config
from lease_relay.gateway.auth import TokenDirectory
from lease_relay.gateway.errors import LeaseGatewayError
from lease_relay.gateway.forwarder import WebhookForwarder
from lease_relay.gateway.service import LeaseGateway
from lease_relay.log import configure_logging
from lease_relay.models.owner import OwnerConfigUpdate
from lease_relay.owner_config.store import OwnerConfigStore


# --- Application Factory ---

def create_app(
    app_config: Optional[AppConfig] = None,
    owner_store: Optional[OwnerConfigStore] = None,
    token_directory: Optional[TokenDirectory] = None,
    forwarder: Optional[WebhookForwarder] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = app_config or get_config()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Lease Relay API",
        description="Routes conversations between the bot and the human inbox",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    store = owner_store or OwnerConfigStore(db_path=config.owner_db_path)
    tokens = token_directory or TokenDirectory(config.api_tokens)
    gateway = LeaseGateway(
        app_config=config,
        owner_store=store,
        token_directory=tokens,
        forwarder=forwarder,
        clock=clock,
    )

    app.state.config = config
    app.state.owner_store = store
    app.state.tokens = tokens
    app.state.gateway = gateway

    @app.exception_handler(LeaseGatewayError)
    async def gateway_error_handler(request: Request, exc: LeaseGatewayError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(exclude_none=True),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": str(exc) or "Unknown error"},
        )

    # === LEASE ===

    @app.post("/lease")
    async def lease_command(
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ):
        """Lock, unlock or extend a session's live-chat lease."""
        try:
            body = await request.json()
        except ValueError:
            body = {}
        result = await gateway.handle(authorization, body)
        return JSONResponse(status_code=result.status_code, content=result.body)

    @app.get("/lease/{session_id}")
    async def lease_status(
        session_id: str,
        authorization: Optional[str] = Header(default=None),
    ):
        """Authoritative route and expiry for a session."""
        status = await gateway.status(authorization, session_id)
        return status.model_dump(mode="json")

    # === SETTINGS ===

    @app.get("/settings/live-chat")
    def get_settings(authorization: Optional[str] = Header(default=None)):
        """Caller's effective live-chat settings (token masked)."""
        owner_id = tokens.resolve(authorization)
        return store.resolve(owner_id, config).masked()

    @app.put("/settings/live-chat")
    def put_settings(
        req: OwnerConfigUpdate,
        authorization: Optional[str] = Header(default=None),
    ):
        """Save the caller's live-chat settings."""
        owner_id = tokens.resolve(authorization)
        saved = store.upsert(owner_id, req)
        return saved.masked()

    # === HEALTH ===

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


# Default application instance
app = create_app()
