"""
Tests for environment configuration.
"""

import pytest

from reserve_delivery.config import load_settings, resolve_flag, resolve_number, resolve_ratio
from reserve_delivery.core.database import DatabaseBackend


class TestResolveNumber:
    """Numeric settings: finite and positive, floored, else the default."""

    @pytest.mark.parametrize("raw,expected", [
        (None, 10),
        ("25", 25),
        ("2.9", 2),
        (" 7 ", 7),
        ("0", 10),
        ("-5", 10),
        ("abc", 10),
        ("", 10),
        ("inf", 10),
        ("nan", 10),
    ])
    def test_resolution(self, raw, expected):
        assert resolve_number(raw, 10) == expected


class TestResolveFlag:

    @pytest.mark.parametrize("raw", ["1", "true", "TRUE", "yes", "on"])
    def test_truthy(self, raw):
        assert resolve_flag(raw, False) is True

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", "maybe"])
    def test_falsy(self, raw):
        assert resolve_flag(raw, True) is False

    def test_unset_uses_default(self):
        assert resolve_flag(None, True) is True
        assert resolve_flag("  ", False) is False


class TestResolveRatio:

    def test_in_range(self):
        assert resolve_ratio("0.25") == 0.25

    def test_out_of_range_uses_default(self):
        assert resolve_ratio("2") == 0.0
        assert resolve_ratio("-0.1") == 0.0


class TestLoadSettings:
    """Test settings loaded from an explicit environment mapping."""

    def test_defaults(self):
        settings = load_settings({})

        assert settings.notifications.enabled is False
        assert settings.notifications.poll_interval_ms == 5000
        assert settings.notifications.batch_size == 10
        assert settings.notifications.max_attempts == 5
        assert settings.webhooks.enabled is True
        assert settings.webhooks.max_attempts == 8
        assert settings.webhooks.secret is None
        assert settings.webhooks.user_agent == "ReservePlatformWebhook/1.0"
        assert settings.outbox.backoff_cap_minutes == 30
        assert settings.admin_api_key is None
        assert settings.database.backend == DatabaseBackend.SQLITE

    def test_overrides(self):
        settings = load_settings({
            "NOTIFICATIONS_ENABLED": "yes",
            "NOTIFICATIONS_BATCH_SIZE": "50",
            "WEBHOOKS_MAX_ATTEMPTS": "3.7",
            "WEBHOOKS_POLL_INTERVAL_MS": "-1",
            "WEBHOOK_SECRET": "  whsec_live  ",
            "DATABASE_BACKEND": "postgres",
            "LOG_LEVEL": "debug",
        })

        assert settings.notifications.enabled is True
        assert settings.notifications.batch_size == 50
        assert settings.webhooks.max_attempts == 3
        assert settings.webhooks.poll_interval_ms == 5000
        assert settings.webhooks.secret == "whsec_live"
        assert settings.database.backend == DatabaseBackend.POSTGRESQL
        assert settings.observability.log_level == "DEBUG"

    def test_blank_secret_is_unset(self):
        assert load_settings({"WEBHOOK_SECRET": "   "}).webhooks.secret is None

    def test_twilio_requires_all_credentials(self):
        partial = load_settings({"TWILIO_ACCOUNT_SID": "AC123", "TWILIO_AUTH_TOKEN": "tok"})
        full = load_settings({
            "TWILIO_ACCOUNT_SID": "AC123",
            "TWILIO_AUTH_TOKEN": "tok",
            "TWILIO_FROM_NUMBER": "+15550001111",
        })

        assert partial.notifications.twilio.is_configured is False
        assert full.notifications.twilio.is_configured is True

    def test_claim_lease_must_outlast_delivery_timeout(self):
        with pytest.raises(ValueError, match="OUTBOX_CLAIM_LEASE_SECONDS"):
            load_settings({
                "OUTBOX_CLAIM_LEASE_SECONDS": "10",
                "OUTBOX_DELIVERY_TIMEOUT_SECONDS": "30",
            })

        settings = load_settings({
            "OUTBOX_CLAIM_LEASE_SECONDS": "31",
            "OUTBOX_DELIVERY_TIMEOUT_SECONDS": "30",
        })
        assert settings.outbox.claim_lease_seconds == 31
