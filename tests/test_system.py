"""
Tests for wiring the rental billing system from configuration
"""

import pytest
from decimal import Decimal
from datetime import date

from rental_billing.async_storage import AsyncInMemoryStorage, AsyncSQLiteStorage
from rental_billing.clock import FixedClock
from rental_billing.config import RentalBillingConfig
from rental_billing.currency import Currency
from rental_billing.reconciliation import DueDayPolicy
from rental_billing.system import RentalBillingSystem


class TestRentalBillingSystem:

    def test_components_follow_config(self):
        config = RentalBillingConfig(
            storage_type="memory",
            currency="usd",
            default_daily_late_fee="75.50",
            late_fee_cap="1000",
            reconcile_due_day_policy="rent_due_day",
            default_term_months=6
        )

        system = RentalBillingSystem(config, clock=FixedClock(date(2024, 3, 1)))

        assert isinstance(system.storage, AsyncInMemoryStorage)
        assert system.agreements.currency == Currency.USD
        assert system.payments.currency == Currency.USD
        assert system.reconciler.due_day_policy == DueDayPolicy.RENT_DUE_DAY
        assert system.generator.default_daily_late_fee == Decimal("75.50")
        assert system.generator.late_fee_cap == Decimal("1000")
        assert system.generator.default_term_months == 6
        assert system.runner.config is config

    def test_sqlite_storage_from_config(self, tmp_path):
        config = RentalBillingConfig(storage_type="sqlite", database_url=str(tmp_path / "b.db"))

        assert isinstance(RentalBillingSystem(config).storage, AsyncSQLiteStorage)

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValueError):
            RentalBillingSystem(RentalBillingConfig(reconcile_due_day_policy="last_day"))

    @pytest.mark.asyncio
    async def test_monthly_run_end_to_end(self):
        clock = FixedClock(date(2024, 3, 1))
        system = RentalBillingSystem(RentalBillingConfig(storage_type="memory"), clock=clock)
        await system.start()
        await system.agreements.create_agreement(
            agreement_id="lease_001", start_date=date(2024, 1, 1), rent_amount=Decimal("1500")
        )

        summary = await system.runner.check_and_generate_monthly_payments()
        backfill = await system.reconciler.find_missing_months("lease_001", None, date(2024, 1, 1))

        assert summary.generated == 1
        assert backfill.created_due_dates == [date(2024, 2, 1)]
        assert len(await system.payments.list_for_lease("lease_001")) == 2
        await system.stop()
