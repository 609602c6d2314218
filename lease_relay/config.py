"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lease_relay.models.owner import DEFAULT_TTL_HOURS, MAX_TTL_HOURS, MIN_TTL_HOURS


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    default_webhook_url: Optional[str] = Field(
        default=None,
        description="Lease webhook used when an owner has not configured one",
    )
    default_status_webhook_url: Optional[str] = Field(
        default=None,
        description="Status webhook used when an owner has not configured one",
    )
    default_ttl_hours: int = Field(
        default=DEFAULT_TTL_HOURS,
        ge=MIN_TTL_HOURS,
        le=MAX_TTL_HOURS,
        description="Lease duration applied when neither request nor owner sets one",
    )
    webhook_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for a single outbound webhook call",
    )
    owner_db_path: str = Field(
        default=":memory:",
        description="SQLite database holding owner configuration rows",
    )
    api_tokens: Dict[str, str] = Field(
        default_factory=dict,
        description="Caller bearer token -> owner id",
    )
    log_level: str = Field(default="INFO")

    @field_validator("default_webhook_url", "default_status_webhook_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Optional[str]) -> str:
        if not value:
            return "INFO"
        level = str(value).upper().strip()
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if level not in allowed:
            raise ValueError(f"LEASE_RELAY_LOG_LEVEL must be one of {sorted(allowed)}, got: {value!r}")
        return level


def parse_api_tokens(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``token:owner,token:owner`` into a mapping."""
    tokens: Dict[str, str] = {}
    if not raw:
        return tokens
    for item in raw.split(","):
        token, sep, owner = item.strip().partition(":")
        if not sep or not token.strip() or not owner.strip():
            continue
        tokens[token.strip()] = owner.strip()
    return tokens


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    return AppConfig(
        default_webhook_url=_read_env("LEASE_RELAY_DEFAULT_WEBHOOK_URL"),
        default_status_webhook_url=_read_env("LEASE_RELAY_DEFAULT_STATUS_WEBHOOK_URL"),
        default_ttl_hours=_read_env("LEASE_RELAY_DEFAULT_TTL_HOURS", str(DEFAULT_TTL_HOURS)),
        webhook_timeout_seconds=_read_env("LEASE_RELAY_WEBHOOK_TIMEOUT", "15"),
        owner_db_path=_read_env("LEASE_RELAY_OWNER_DB", ":memory:"),
        api_tokens=parse_api_tokens(_read_env("LEASE_RELAY_API_TOKENS")),
        log_level=_read_env("LEASE_RELAY_LOG_LEVEL", "INFO"),
    )
