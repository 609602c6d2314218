"""
Request validation for the Lease Request Gateway.

Every check here runs before any outbound call; a failure raises
InvalidArgument and the request has no side effects.
"""

from typing import Any, Optional

from lease_relay.gateway.errors import InvalidArgument
from lease_relay.models.gateway import LeaseCommand
from lease_relay.models.lease import LeaseAction
from lease_relay.models.owner import MAX_TTL_HOURS, MIN_TTL_HOURS
from lease_relay.session_ids import is_valid_session_id

TTL_ACTIONS = (LeaseAction.LOCK, LeaseAction.EXTEND)


def validate_session_id(session_id: Any) -> str:
    if not is_valid_session_id(session_id):
        raise InvalidArgument(
            "Invalid sessionId. Use E.164 digits (may start with +)."
        )
    return session_id


def validate_action(action: Any) -> LeaseAction:
    try:
        return LeaseAction(action)
    except (TypeError, ValueError):
        raise InvalidArgument("Invalid action. Must be lock | unlock | extend")


def resolve_ttl(action: LeaseAction, ttl_hours: Any, default_ttl: int) -> Optional[int]:
    """
    TTL carried by the forwarded command: the explicit value, else the
    owner default, always within [1, 48]. Unlock never carries one.
    """
    if action not in TTL_ACTIONS:
        return None

    value = default_ttl if ttl_hours is None else ttl_hours
    # bool is an int subclass; reject it along with strings and fractions
    if isinstance(value, bool):
        raise InvalidArgument("ttlHours must be an integer between 1 and 48")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidArgument("ttlHours must be an integer between 1 and 48")
        value = int(value)
    if not isinstance(value, int):
        raise InvalidArgument("ttlHours must be an integer between 1 and 48")
    if value < MIN_TTL_HOURS or value > MAX_TTL_HOURS:
        raise InvalidArgument(
            "ttlHours must be between 1 and 48",
            details={"ttlHours": value},
        )
    return value


def build_command(body: Any, default_ttl: int) -> LeaseCommand:
    """Validate a raw request body into a normalized LeaseCommand."""
    if not isinstance(body, dict):
        body = {}
    session_id = validate_session_id(body.get("sessionId"))
    action = validate_action(body.get("action"))
    ttl = resolve_ttl(action, body.get("ttlHours"), default_ttl)
    return LeaseCommand(session_id=session_id, action=action, ttl_hours=ttl)
