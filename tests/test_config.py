"""
Tests for configuration loading
"""

from rental_billing import config as config_module
from rental_billing.config import RentalBillingConfig, get_config, reload_config


class TestRentalBillingConfig:

    def test_defaults(self, monkeypatch):
        for name in ("STORAGE_TYPE", "BATCH_SIZE", "CURRENCY"):
            monkeypatch.delenv(f"RENTAL_BILLING_{name}", raising=False)

        config = RentalBillingConfig(_env_file=None)

        assert config.storage_type == "memory"
        assert config.currency == "QAR"
        assert config.default_daily_late_fee == "120.00"
        assert config.late_fee_cap == "3000.00"
        assert config.reconcile_due_day_policy == "first_of_month"
        assert config.operation_timeout_seconds == 15.0
        assert config.retries == 2
        assert config.batch_size == 10
        assert config.max_concurrency == 3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RENTAL_BILLING_BATCH_SIZE", "25")
        monkeypatch.setenv("RENTAL_BILLING_STORAGE_TYPE", "sqlite")

        config = RentalBillingConfig(_env_file=None)

        assert config.batch_size == 25
        assert config.storage_type == "sqlite"

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("RENTAL_BILLING_MAX_CONCURRENCY", "7")
        try:
            reloaded = reload_config()
            assert reloaded.max_concurrency == 7
            assert get_config() is reloaded
        finally:
            config_module.config = original
