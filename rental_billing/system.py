"""
Rental Billing System

Wires storage, repositories and payment services together from configuration.
"""

from decimal import Decimal
from typing import Optional
import logging

from .agreements import AgreementRepository
from .async_storage import AsyncStorageInterface, create_async_storage
from .clock import Clock, SystemClock
from .config import RentalBillingConfig, get_config
from .currency import Currency
from .generation import PaymentGenerator
from .payments import PaymentRecordStore
from .reconciliation import DueDayPolicy, MissingPaymentReconciler
from .runner import MonthlyPaymentRunner


logger = logging.getLogger("rental_billing.system")


class RentalBillingSystem:
    """Rental billing components built over a single storage backend"""

    def __init__(
        self,
        config: Optional[RentalBillingConfig] = None,
        storage: Optional[AsyncStorageInterface] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_async_storage(
            self.config.storage_type,
            self.config.database_url,
            self.config.database_pool_size
        )
        self.clock = clock or SystemClock()

        currency = Currency[self.config.currency.upper()]
        self.agreements = AgreementRepository(self.storage, currency)
        self.payments = PaymentRecordStore(self.storage, currency)

        self.reconciler = MissingPaymentReconciler(
            self.agreements, self.payments, self.clock,
            due_day_policy=DueDayPolicy(self.config.reconcile_due_day_policy)
        )
        self.generator = PaymentGenerator(
            self.agreements, self.payments, self.clock,
            default_daily_late_fee=Decimal(self.config.default_daily_late_fee),
            late_fee_cap=Decimal(self.config.late_fee_cap),
            default_term_months=self.config.default_term_months
        )
        self.runner = MonthlyPaymentRunner(
            self.agreements, self.payments, self.generator, self.clock, self.config
        )

    async def start(self) -> None:
        await self.storage.initialize()
        logger.info(f"Rental billing storage ready ({self.config.storage_type})")

    async def stop(self) -> None:
        await self.storage.close()
