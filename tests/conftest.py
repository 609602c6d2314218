"""Shared fixtures: a fake automation engine, a fake gateway client, fake time."""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest

from lease_relay.config import AppConfig
from lease_relay.gateway.auth import TokenDirectory
from lease_relay.gateway.forwarder import WebhookForwarder
from lease_relay.gateway.service import LeaseGateway
from lease_relay.models.lease import LeaseAction, format_timestamp
from lease_relay.owner_config.store import OwnerConfigStore

LEASE_URL = "https://engine.test/webhook/lease"
STATUS_URL = "https://engine.test/webhook/status"
OPERATOR_TOKEN = "op-token"
OWNER_ID = "owner-1"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self, on_sleep=None):
        self.calls = []
        self.on_sleep = on_sleep

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)


class FakeEngine:
    """
    Automation engine behind the lease and status webhooks. Keeps one
    expiry per session and answers with ``{route, lock_until}``.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.leases = {}
        self.requests = []
        self.failure: Optional[tuple] = None
        self.error: Optional[Exception] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def posted(self) -> list:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def view(self, session_id: str) -> dict:
        expiry = self.leases.get(session_id)
        if expiry is None or expiry <= self.clock():
            return {"route": "bot", "lock_until": None}
        return {"route": "inbox", "lock_until": format_timestamp(expiry)}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.failure is not None:
            status, body = self.failure
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        if request.method == "GET":
            return httpx.Response(200, json=self.view(request.url.params["session_id"]))

        payload = json.loads(request.content)
        session_id = payload["session_id"]
        now = self.clock()
        if payload["action"] == "lock":
            self.leases[session_id] = now + timedelta(hours=payload["ttl_hours"])
        elif payload["action"] == "unlock":
            self.leases.pop(session_id, None)
        elif payload["action"] == "extend":
            base = max(self.leases.get(session_id, now), now)
            self.leases[session_id] = min(
                base + timedelta(hours=payload["ttl_hours"]), now + timedelta(hours=48)
            )
        return httpx.Response(200, json=self.view(session_id))


class FakeGatewayClient:
    """In-process stand-in for HttpGatewayClient."""

    def __init__(self):
        self.calls = []
        self.status_calls = 0
        self.status = {"route": "bot", "lockUntil": None}
        self.action_result: Optional[dict] = None
        self.action_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None
        self.release = None
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_action(self, session_id, action, ttl_hours=None) -> dict:
        self.calls.append((session_id, LeaseAction(action).value, ttl_hours))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.release is not None:
                await self.release.wait()
            if self.action_error is not None:
                raise self.action_error
            return dict(self.action_result or {})
        finally:
            self.in_flight -= 1

    async def fetch_status(self, session_id) -> dict:
        self.status_calls += 1
        if self.status_error is not None:
            raise self.status_error
        return dict(self.status)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 12, 31, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def sleeper():
    return FakeSleep()


@pytest.fixture
def engine(clock):
    return FakeEngine(clock)


@pytest.fixture
def fake_client():
    return FakeGatewayClient()


@pytest.fixture
def app_config():
    return AppConfig(
        default_webhook_url=LEASE_URL,
        default_status_webhook_url=STATUS_URL,
        api_tokens={OPERATOR_TOKEN: OWNER_ID},
        log_level="DEBUG",
    )


@pytest.fixture
def owner_store():
    store = OwnerConfigStore(db_path=":memory:")
    yield store
    store.close()


@pytest.fixture
def gateway(app_config, owner_store, engine, clock):
    return LeaseGateway(
        app_config=app_config,
        owner_store=owner_store,
        token_directory=TokenDirectory(app_config.api_tokens),
        forwarder=WebhookForwarder(transport=engine.transport),
        clock=clock,
    )
