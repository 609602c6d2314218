"""Gateway request/response shapes."""

from typing import Any, Optional

from pydantic import BaseModel

from lease_relay.models.lease import LeaseAction


class LeaseCommand(BaseModel):
    """A validated, normalized command ready to be forwarded to the engine."""

    session_id: str
    action: LeaseAction
    ttl_hours: Optional[int] = None    # Never set for unlock

    def to_payload(self) -> dict:
        payload = {"session_id": self.session_id, "action": self.action.value}
        if self.ttl_hours is not None:
            payload["ttl_hours"] = self.ttl_hours
        return payload


class GatewayFailure(BaseModel):
    ok: bool = False
    error: str
    details: Optional[Any] = None


class GatewayResult(BaseModel):
    """What the gateway hands back to the HTTP layer."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return self.status_code < 400
