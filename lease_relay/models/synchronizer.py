"""Client-side mirror state and synchronizer configuration."""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

from lease_relay.models.lease import Lease, Route


class SynchronizerConfig(BaseModel):
    """Timing knobs for the Lease State Synchronizer."""

    settle_seconds: float = 10.0
    poll_interval_seconds: float = 60.0
    countdown_interval_seconds: float = 1.0
    skew_tolerance_seconds: float = 5.0
    extend_hours: int = Field(ge=1, le=48, default=4)
    max_ttl_hours: int = 48
    default_ttl_hours: int = Field(ge=1, le=48, default=24)
    lock_ttl_hours: Optional[int] = Field(ge=1, le=48, default=None)
    request_timeout_seconds: float = 20.0


class ClientMirror(BaseModel):
    """
    Advisory per-session copy of the lease.

    ``lease`` is what the UI shows (possibly an optimistic overlay);
    ``last_known_good`` is the last state confirmed by the remote side.
    """

    session_id: str
    lease: Lease = Lease()
    last_known_good: Optional[Lease] = None
    pending_action: bool = False
    settle_started_at: Optional[datetime] = None
    settle_seconds: float = 10.0
    error: Optional[str] = None

    @property
    def route(self) -> Route:
        return self.lease.route

    @property
    def expiry(self) -> Optional[datetime]:
        return self.lease.expiry

    @property
    def settle_window_active(self) -> bool:
        return self.settle_started_at is not None

    def remaining_ms(self, current_time: datetime) -> int:
        if self.lease.route != Route.INBOX or self.lease.expiry is None:
            return 0
        remaining = (self.lease.expiry - current_time).total_seconds() * 1000
        return max(int(remaining), 0)

    def settle_progress(self, current_time: datetime) -> float:
        """Percent of the settle window elapsed, 0 when no window is open."""
        if self.settle_started_at is None or self.settle_seconds <= 0:
            return 0.0
        elapsed = (current_time - self.settle_started_at).total_seconds()
        return round(min(100.0, max(0.0, elapsed / self.settle_seconds * 100)), 1)

    def settle_ends_at(self) -> Optional[datetime]:
        if self.settle_started_at is None:
            return None
        return self.settle_started_at + timedelta(seconds=self.settle_seconds)


class ActionOutcome(BaseModel):
    """Result of a lock/unlock/extend intent as seen by the caller."""

    action: str
    ok: bool
    forwarded: bool = False
    blocked: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None
    lease: Lease = Lease()
