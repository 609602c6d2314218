"""Tests for the owner configuration store."""

import pytest

from lease_relay.config import AppConfig
from lease_relay.gateway.errors import ConfigurationMissing, InvalidArgument
from lease_relay.models.owner import OwnerConfigUpdate
from lease_relay.owner_config.store import OwnerConfigStore, require_url


@pytest.fixture
def store():
    s = OwnerConfigStore(db_path=":memory:")
    yield s
    s.close()


class TestOwnerConfigStore:
    def test_missing_row(self, store):
        assert store.get("owner-1") is None

    def test_upsert_and_get(self, store):
        saved = store.upsert("owner-1", OwnerConfigUpdate(
            webhookUrl="https://engine.test/lease",
            authToken="tok",
            defaultTTLHours=12,
        ))
        assert saved.webhookUrl == "https://engine.test/lease"
        assert saved.authToken == "tok"
        assert saved.defaultTTLHours == 12
        assert saved.updatedAt is not None

    def test_upsert_replaces(self, store):
        store.upsert("owner-1", OwnerConfigUpdate(webhookUrl="https://a.test", defaultTTLHours=12))
        store.upsert("owner-1", OwnerConfigUpdate(webhookUrl="https://b.test", defaultTTLHours=6))
        row = store.get("owner-1")
        assert row.webhookUrl == "https://b.test"
        assert row.defaultTTLHours == 6

    def test_blank_strings_stored_as_null(self, store):
        saved = store.upsert("owner-1", OwnerConfigUpdate(webhookUrl="  ", authToken=""))
        assert saved.webhookUrl is None
        assert saved.authToken is None

    @pytest.mark.parametrize("ttl", [0, 49])
    def test_rejects_out_of_range_ttl(self, store, ttl):
        with pytest.raises(InvalidArgument):
            store.upsert("owner-1", OwnerConfigUpdate(defaultTTLHours=ttl))
        assert store.get("owner-1") is None

    def test_owners_are_isolated(self, store):
        store.upsert("owner-1", OwnerConfigUpdate(webhookUrl="https://a.test"))
        assert store.get("owner-2") is None


class TestResolve:
    def test_defaults_without_row(self, store):
        config = AppConfig(default_webhook_url="https://default.test", default_ttl_hours=24)
        resolved = store.resolve("owner-1", config)
        assert resolved.webhookUrl == "https://default.test"
        assert resolved.authToken is None
        assert resolved.defaultTTLHours == 24

    def test_row_wins_over_defaults(self, store):
        store.upsert("owner-1", OwnerConfigUpdate(
            webhookUrl="https://owner.test", defaultTTLHours=8,
        ))
        config = AppConfig(default_webhook_url="https://default.test")
        resolved = store.resolve("owner-1", config)
        assert resolved.webhookUrl == "https://owner.test"
        assert resolved.defaultTTLHours == 8

    def test_row_without_url_falls_back(self, store):
        store.upsert("owner-1", OwnerConfigUpdate(authToken="tok"))
        config = AppConfig(
            default_webhook_url="https://default.test",
            default_status_webhook_url="https://status.test",
        )
        resolved = store.resolve("owner-1", config)
        assert resolved.webhookUrl == "https://default.test"
        assert resolved.statusWebhookUrl == "https://status.test"
        assert resolved.authToken == "tok"

    def test_require_url(self):
        assert require_url("https://x.test") == "https://x.test"
        with pytest.raises(ConfigurationMissing) as exc:
            require_url(None, "status")
        assert "status" in exc.value.message
        assert exc.value.status_code == 500
