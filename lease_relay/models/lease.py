"""Lease: the time-bounded grant of a session to the human inbox."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Route(str, Enum):
    BOT = "bot"       # Automated responder handles the conversation
    INBOX = "inbox"   # A human operator holds the lease until expiry


class LeaseAction(str, Enum):
    LOCK = "lock"
    UNLOCK = "unlock"
    EXTEND = "extend"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as sent by the automation engine."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Lease(BaseModel):
    """
    Route plus expiry for one session.

    Invariant: route == INBOX if and only if expiry is set. A lease whose
    expiry has passed is logically BOT even before anyone writes it back.
    """

    model_config = ConfigDict(frozen=True)

    route: Route = Route.BOT
    expiry: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_invariant(self) -> "Lease":
        if self.route == Route.BOT and self.expiry is not None:
            raise ValueError("bot route cannot carry an expiry")
        if self.route == Route.INBOX and self.expiry is None:
            raise ValueError("inbox route requires an expiry")
        return self

    @classmethod
    def bot(cls) -> "Lease":
        return cls(route=Route.BOT, expiry=None)

    @classmethod
    def inbox(cls, expiry: datetime) -> "Lease":
        return cls(route=Route.INBOX, expiry=expiry)

    @classmethod
    def from_remote(
        cls,
        route,
        lock_until,
        current_time: Optional[datetime] = None,
    ) -> "Lease":
        """
        Build a lease from an engine payload, coercing anything that breaks
        the invariant (inbox without a usable expiry, stale expiry) to BOT.
        """
        now = current_time or utcnow()
        expiry = parse_timestamp(lock_until)
        if route == Route.INBOX.value or route == Route.INBOX:
            if expiry is None or now >= expiry:
                return cls.bot()
            return cls.inbox(expiry)
        return cls.bot()

    def is_expired(self, current_time: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        return (current_time or utcnow()) >= self.expiry

    def effective(self, current_time: Optional[datetime] = None) -> "Lease":
        """The lease as it must be treated at ``current_time``."""
        if self.route == Route.INBOX and self.is_expired(current_time):
            return Lease.bot()
        return self


class LeaseStatus(BaseModel):
    """Normalized answer of the status read path."""

    sessionId: str
    route: Route
    lockUntil: Optional[str] = None

    @classmethod
    def from_lease(cls, session_id: str, lease: Lease) -> "LeaseStatus":
        return cls(
            sessionId=session_id,
            route=lease.route,
            lockUntil=format_timestamp(lease.expiry),
        )
