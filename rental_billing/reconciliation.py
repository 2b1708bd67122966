"""
Missing Payment Reconciliation Module

Backfills monthly rent rows between a lease's last known payment and the
current date. Each month is checked and inserted on its own, oldest first,
with no transaction around the loop: a failure part way leaves the rows
already written, and a rerun picks up where the previous one stopped.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union
import logging

from .agreements import Agreement, AgreementRepository
from .clock import Clock, SystemClock
from .currency import Money
from .logging_config import log_action
from .payments import PaymentRecord, PaymentRecordStore
from .results import Outcome
from .schedule import due_date_for_month, iter_months, month_label
from .storage import DuplicateRecordError


logger = logging.getLogger("rental_billing.reconciliation")


class DueDayPolicy(Enum):
    """Which day of a backfilled month the row is due on"""
    FIRST_OF_MONTH = "first_of_month"   # Always the 1st, whatever the lease says
    RENT_DUE_DAY = "rent_due_day"       # The lease's rent_due_day, clamped


@dataclass
class ReconciliationResult:
    success: bool
    message: str
    generated: int = 0
    created_due_dates: List[date] = field(default_factory=list)
    outcome: Outcome = Outcome.NOTHING_TO_DO


class MissingPaymentReconciler:
    """
    Creates the rent rows missing between a last payment date and today
    """

    def __init__(
        self,
        agreements: AgreementRepository,
        payments: PaymentRecordStore,
        clock: Optional[Clock] = None,
        due_day_policy: DueDayPolicy = DueDayPolicy.FIRST_OF_MONTH
    ):
        self.agreements = agreements
        self.payments = payments
        self.clock = clock or SystemClock()
        self.due_day_policy = due_day_policy

    async def find_missing_months(
        self,
        lease_id: str,
        rent_amount: Optional[Union[Money, Decimal]],
        last_payment_date: date,
        current_date: Optional[date] = None
    ) -> ReconciliationResult:
        """
        Insert a pending rent row for every month from the month of
        ``last_payment_date`` through the month of ``current_date`` that has
        no rent row yet, whatever day an existing row is due on.

        The month of ``last_payment_date`` itself is skipped only when that
        date is the 1st: the payment then is that month's rent. A last payment
        later in the month does not cover the month, which is still checked.

        Args:
            lease_id: Agreement to reconcile
            rent_amount: Amount to use when the agreement has none on record
            last_payment_date: Date of the last payment known to be recorded
            current_date: Reconcile through this date (defaults to today)
        """
        current_date = current_date or self.clock.today()

        try:
            agreement = await self.agreements.get_agreement(lease_id)
        except Exception as e:
            logger.error(f"Error fetching agreement {lease_id}: {e}", exc_info=True)
            return ReconciliationResult(
                success=False,
                message=f"Error fetching agreement: {e}",
                outcome=Outcome.STORAGE_ERROR
            )

        if agreement is None:
            return ReconciliationResult(
                success=False,
                message=f"Agreement {lease_id} not found",
                outcome=Outcome.NOT_FOUND
            )

        if not agreement.is_active:
            logger.info(f"Skipping reconciliation for {lease_id}: status is {agreement.status.value}")
            return ReconciliationResult(
                success=True,
                message=f"Agreement is not active (status: {agreement.status.value})",
                outcome=Outcome.INVALID_STATE
            )

        payment_amount = self._resolve_amount(agreement, rent_amount)
        if payment_amount is None:
            return ReconciliationResult(
                success=True,
                message="Agreement has no rent amount",
                outcome=Outcome.INVALID_STATE
            )

        created: List[date] = []
        try:
            billed = await self.payments.billed_months(lease_id)

            for month in iter_months(last_payment_date, current_date):
                if (month.year, month.month) == (last_payment_date.year, last_payment_date.month) \
                        and last_payment_date.day == 1:
                    continue

                if (month.year, month.month) in billed:
                    continue
                due_date = self._due_date(month, agreement)

                record = PaymentRecord.new_rent(
                    lease_id=lease_id,
                    due_date=due_date,
                    amount=payment_amount,
                    description=f"Monthly Rent - {month_label(due_date)}"
                )
                try:
                    await self.payments.insert(record)
                except DuplicateRecordError:
                    # Another writer created it after our read
                    logger.info(f"Payment for {lease_id} due {due_date} already created concurrently")
                    billed.add((month.year, month.month))
                    continue

                billed.add((month.year, month.month))
                created.append(due_date)
                log_action(
                    logger, "info", f"Created missing payment due {due_date.isoformat()}",
                    lease_id=lease_id, action="missing_payment_created",
                    extra={"amount": str(payment_amount.amount)}
                )
        except Exception as e:
            logger.error(f"Reconciliation of {lease_id} failed after {len(created)} inserts: {e}",
                         exc_info=True)
            return ReconciliationResult(
                success=False,
                message=f"Failed to generate missing payments: {e}",
                generated=len(created),
                created_due_dates=created,
                outcome=Outcome.STORAGE_ERROR
            )

        if created:
            message = f"Generated {len(created)} missing monthly payments"
            outcome = Outcome.CREATED
        else:
            message = "No missing payments found"
            outcome = Outcome.NOTHING_TO_DO

        return ReconciliationResult(
            success=True,
            message=message,
            generated=len(created),
            created_due_dates=created,
            outcome=outcome
        )

    def _resolve_amount(
        self,
        agreement: Agreement,
        rent_amount: Optional[Union[Money, Decimal]]
    ) -> Optional[Money]:
        if agreement.has_rent:
            return agreement.rent_amount
        if rent_amount is None:
            return None
        if not isinstance(rent_amount, Money):
            rent_amount = Money(Decimal(str(rent_amount)), self.payments.currency)
        return rent_amount if rent_amount.is_positive() else None

    def _due_date(self, month: date, agreement: Agreement) -> date:
        if self.due_day_policy == DueDayPolicy.RENT_DUE_DAY:
            return due_date_for_month(month.year, month.month, agreement.rent_due_day or 1)
        return month
