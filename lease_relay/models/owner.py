"""Owner configuration: per-owner parameters for forwarding lease commands."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

MIN_TTL_HOURS = 1
MAX_TTL_HOURS = 48
DEFAULT_TTL_HOURS = 24


class OwnerConfig(BaseModel):
    """Effective settings the gateway uses for one authenticated owner."""

    ownerId: str
    webhookUrl: Optional[str] = None
    statusWebhookUrl: Optional[str] = None
    authToken: Optional[str] = None
    defaultTTLHours: int = Field(
        ge=MIN_TTL_HOURS, le=MAX_TTL_HOURS, default=DEFAULT_TTL_HOURS
    )
    updatedAt: Optional[datetime] = None

    def masked(self) -> dict:
        """Serializable view that never exposes the webhook token."""
        data = self.model_dump(mode="json")
        if self.authToken:
            data["authToken"] = "***" + self.authToken[-4:] if len(self.authToken) > 8 else "***"
        return data


class OwnerConfigUpdate(BaseModel):
    """Body of PUT /settings/live-chat."""

    webhookUrl: Optional[str] = None
    statusWebhookUrl: Optional[str] = None
    authToken: Optional[str] = None
    defaultTTLHours: int = DEFAULT_TTL_HOURS
