"""
Owner Configuration Store: per-owner webhook settings.

Read by the gateway on every request; written only through the settings
endpoint. Prototype: SQLite.
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from lease_relay.config import AppConfig
from lease_relay.gateway.errors import ConfigurationMissing, InvalidArgument
from lease_relay.models.owner import (
    DEFAULT_TTL_HOURS,
    MAX_TTL_HOURS,
    MIN_TTL_HOURS,
    OwnerConfig,
    OwnerConfigUpdate,
)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class OwnerConfigStore:
    """One row per owner, keyed by owner id."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS owner_settings (
                owner_id TEXT PRIMARY KEY,
                webhook_url TEXT,
                status_webhook_url TEXT,
                webhook_auth_token TEXT,
                live_chat_ttl INTEGER,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, owner_id: str) -> Optional[OwnerConfig]:
        """Stored row for an owner, or None if the owner never saved settings."""
        row = self._conn.execute(
            "SELECT * FROM owner_settings WHERE owner_id = ?", (owner_id,)
        ).fetchone()
        if row is None:
            return None
        ttl = row["live_chat_ttl"]
        return OwnerConfig(
            ownerId=row["owner_id"],
            webhookUrl=row["webhook_url"],
            statusWebhookUrl=row["status_webhook_url"],
            authToken=row["webhook_auth_token"],
            defaultTTLHours=ttl if ttl is not None else DEFAULT_TTL_HOURS,
            updatedAt=datetime.fromisoformat(row["updated_at"]),
        )

    def upsert(self, owner_id: str, update: OwnerConfigUpdate) -> OwnerConfig:
        """Insert or replace an owner's settings."""
        if not (MIN_TTL_HOURS <= update.defaultTTLHours <= MAX_TTL_HOURS):
            raise InvalidArgument("defaultTTLHours must be between 1 and 48")

        updated_at = datetime.now(timezone.utc)
        self._conn.execute(
            """
            INSERT INTO owner_settings (
                owner_id, webhook_url, status_webhook_url,
                webhook_auth_token, live_chat_ttl, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(owner_id) DO UPDATE SET
                webhook_url = excluded.webhook_url,
                status_webhook_url = excluded.status_webhook_url,
                webhook_auth_token = excluded.webhook_auth_token,
                live_chat_ttl = excluded.live_chat_ttl,
                updated_at = excluded.updated_at
            """,
            (
                owner_id,
                _blank_to_none(update.webhookUrl),
                _blank_to_none(update.statusWebhookUrl),
                _blank_to_none(update.authToken),
                update.defaultTTLHours,
                updated_at.isoformat(),
            ),
        )
        self._conn.commit()
        logger.info(f"Saved live-chat settings for owner {owner_id}")
        return self.get(owner_id)

    def resolve(self, owner_id: str, app_config: AppConfig) -> OwnerConfig:
        """
        Effective settings for an owner: the stored row with documented
        fallbacks applied. A missing row is not an error.
        """
        stored = self.get(owner_id)
        if stored is None:
            logger.debug(f"No settings row for owner {owner_id}; using defaults")
            return OwnerConfig(
                ownerId=owner_id,
                webhookUrl=app_config.default_webhook_url,
                statusWebhookUrl=app_config.default_status_webhook_url,
                defaultTTLHours=app_config.default_ttl_hours,
            )
        return stored.model_copy(update={
            "webhookUrl": stored.webhookUrl or app_config.default_webhook_url,
            "statusWebhookUrl": (
                stored.statusWebhookUrl or app_config.default_status_webhook_url
            ),
        })

    def close(self) -> None:
        self._conn.close()


def require_url(url: Optional[str], kind: str = "lease") -> str:
    if not url:
        raise ConfigurationMissing(f"No {kind} webhook URL configured")
    return url
