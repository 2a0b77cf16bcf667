"""Tests for environment-driven settings."""

from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from marketplace.domain.exceptions import ValidationError
from marketplace.infrastructure.config import DEFAULT_DATA_DIR, Settings


class TestSettingsFromEnv:

    def test_defaults(self):
        settings = Settings.from_env({})

        assert settings.data_dir == DEFAULT_DATA_DIR
        assert settings.store_path == DEFAULT_DATA_DIR / "marketplace.json"
        assert settings.log_dir is None
        assert settings.reservation.hold_minutes == 30
        assert (settings.fraud.review_above, settings.fraud.block_at) == (30, 75)
        assert settings.pricing.tax_rate == Decimal("0.18")
        assert settings.pricing.currency == "INR"
        assert settings.lifecycle.return_window_days == 7
        assert settings.processing.step_log_retention == timedelta(minutes=60)
        assert settings.declined_payment_methods == frozenset()

    def test_overrides(self, tmp_path):
        settings = Settings.from_env({
            "MARKETPLACE_DATA_DIR": str(tmp_path),
            "MARKETPLACE_LOG_DIR": str(tmp_path / "logs"),
            "MARKETPLACE_RESERVATION_HOLD_MINUTES": "15",
            "MARKETPLACE_FRAUD_HIGH_VALUE": "20000",
            "MARKETPLACE_COMMISSION_RATE": "0.07",
            "MARKETPLACE_PAYMENT_TIMEOUT_SECONDS": "2.5",
            "MARKETPLACE_DECLINE_METHODS": " Card, upi ,",
        })

        assert settings.store_path == Path(tmp_path) / "marketplace.json"
        assert settings.log_dir == tmp_path / "logs"
        assert settings.reservation.hold_minutes == 15
        assert settings.fraud.high_value_threshold == Decimal("20000")
        assert settings.pricing.default_commission_rate == Decimal("0.07")
        assert settings.processing.payment_timeout_seconds == 2.5
        assert settings.declined_payment_methods == frozenset({"card", "upi"})

    def test_blank_integer_falls_back_to_default(self):
        settings = Settings.from_env({"MARKETPLACE_RETURN_WINDOW_DAYS": ""})
        assert settings.lifecycle.return_window_days == 7

    def test_bad_integer(self):
        with pytest.raises(ValidationError, match="MARKETPLACE_RESERVATION_HOLD_MINUTES"):
            Settings.from_env({"MARKETPLACE_RESERVATION_HOLD_MINUTES": "soon"})

    def test_bad_number(self):
        with pytest.raises(ValidationError, match="MARKETPLACE_TAX_RATE must be a number"):
            Settings.from_env({"MARKETPLACE_TAX_RATE": "eighteen"})
