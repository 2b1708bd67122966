"""
Payment Generation Module

On-demand creation of rent rows for a single agreement: the current (or a
given) month with overdue days and late fine, and the agreement's full
due-date schedule. Both paths check for an existing row first and rely on the
store's insert-only write as a backstop, so repeating a call never produces a
second rent row for the same month.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Tuple
import logging

from .agreements import Agreement, AgreementRepository
from .clock import Clock, SystemClock
from .currency import Money
from .late_fees import (
    DEFAULT_DAILY_LATE_FEE, DEFAULT_LATE_FEE_CAP,
    calculate_days_overdue, calculate_late_fee
)
from .logging_config import log_action
from .payments import PaymentRecord, PaymentRecordStore, PaymentStatus
from .results import Outcome, ServiceResult
from .schedule import due_date_for_month, generate_schedule, month_label
from .storage import DuplicateRecordError


logger = logging.getLogger("rental_billing.generation")


class PaymentGenerator:
    """
    Generates rent payment rows for one agreement at a time
    """

    def __init__(
        self,
        agreements: AgreementRepository,
        payments: PaymentRecordStore,
        clock: Optional[Clock] = None,
        default_daily_late_fee: Decimal = DEFAULT_DAILY_LATE_FEE,
        late_fee_cap: Decimal = DEFAULT_LATE_FEE_CAP,
        default_term_months: int = 12
    ):
        self.agreements = agreements
        self.payments = payments
        self.clock = clock or SystemClock()
        self.default_daily_late_fee = Decimal(str(default_daily_late_fee))
        self.late_fee_cap = Decimal(str(late_fee_cap))
        self.default_term_months = default_term_months

    async def force_generate_payment_for_agreement(
        self,
        agreement_id: str,
        specific_date: Optional[date] = None
    ) -> ServiceResult:
        """
        Create the rent row of one month for an agreement.

        The month is that of ``specific_date`` (default: today); the row is
        due on the agreement's rent due day. A due date before today makes the
        row ``overdue`` with ``days_overdue`` and a late fine of the daily fee
        per day, capped. An existing rent row due anywhere in that month is
        returned as is, including one backfilled on the 1st.

        Returns:
            ServiceResult whose ``data`` is the created or existing PaymentRecord
        """
        agreement, failure = await self._load_billable_agreement(agreement_id)
        if failure:
            return failure

        today = self.clock.today()
        payment_month = specific_date or today
        due_date = due_date_for_month(payment_month.year, payment_month.month,
                                      agreement.rent_due_day or 1)
        label = month_label(due_date)

        try:
            existing = await self.payments.find_for_month(agreement.id, due_date)
        except Exception as e:
            logger.error(f"Error checking existing payments for {agreement.id}: {e}", exc_info=True)
            return ServiceResult.fail(f"Error checking existing payments: {e}", error=e)

        if existing:
            logger.info(f"Payment already exists for {agreement.id} for {label}")
            return ServiceResult.skipped(
                f"Payment already exists for {label}",
                outcome=Outcome.ALREADY_EXISTS,
                data=existing
            )

        currency = agreement.rent_amount.currency
        daily_late_fee = agreement.daily_late_fee or Money(self.default_daily_late_fee, currency)
        days_overdue = calculate_days_overdue(due_date, today)
        late_fee = calculate_late_fee(
            days_overdue,
            daily_late_fee=daily_late_fee,
            cap=Money(self.late_fee_cap, currency)
        )

        record = PaymentRecord.new_rent(
            lease_id=agreement.id,
            due_date=due_date,
            amount=agreement.rent_amount,
            description=f"Monthly Rent - {label}",
            status=PaymentStatus.OVERDUE if due_date < today else PaymentStatus.PENDING,
            days_overdue=days_overdue,
            late_fine_amount=late_fee,
            daily_late_fee=daily_late_fee
        )

        try:
            await self.payments.insert(record)
        except DuplicateRecordError:
            try:
                existing = await self.payments.find_for_month(agreement.id, due_date)
            except Exception as e:
                logger.error(f"Error reading concurrently created payment for {agreement.id}: {e}",
                             exc_info=True)
                return ServiceResult.fail(f"Error checking existing payments: {e}", error=e)
            return ServiceResult.skipped(
                f"Payment already exists for {label}",
                outcome=Outcome.ALREADY_EXISTS,
                data=existing
            )
        except Exception as e:
            logger.error(f"Error creating payment for {agreement.id}: {e}", exc_info=True)
            return ServiceResult.fail(f"Error creating payment: {e}", error=e)

        log_action(
            logger, "info", f"Generated payment for {label}",
            agreement_id=agreement.id, action="payment_generated",
            extra={
                "due_date": due_date.isoformat(),
                "status": record.status.value,
                "days_overdue": days_overdue,
                "late_fine_amount": str(late_fee.amount)
            }
        )
        return ServiceResult.ok(record, message=f"Successfully generated payment for {label}")

    async def generate_payment_schedule(self, agreement_id: str) -> ServiceResult:
        """
        Store every due date of the agreement's schedule whose month has no rent row yet.

        Rows are plain pending installments without late fines.

        Returns:
            ServiceResult whose ``data`` is the list of created PaymentRecords
        """
        agreement, failure = await self._load_billable_agreement(agreement_id)
        if failure:
            return failure

        schedule = generate_schedule(agreement, self.default_term_months)
        if not schedule:
            return ServiceResult.skipped("Agreement schedule has no due dates")

        created = []
        try:
            billed = await self.payments.billed_months(agreement.id)
            for entry in schedule:
                if (entry.due_date.year, entry.due_date.month) in billed:
                    continue
                record = PaymentRecord.new_rent(
                    lease_id=entry.lease_id,
                    due_date=entry.due_date,
                    amount=entry.amount,
                    description=f"Rent Payment - {month_label(entry.due_date)}"
                )
                try:
                    await self.payments.insert(record)
                except DuplicateRecordError:
                    continue
                created.append(record)
        except Exception as e:
            logger.error(f"Schedule generation for {agreement.id} stopped after "
                         f"{len(created)} inserts: {e}", exc_info=True)
            return ServiceResult.fail(f"Failed to create payment schedule: {e}", error=e)

        if not created:
            return ServiceResult.skipped(
                "Payments already exist for this agreement",
                outcome=Outcome.ALREADY_EXISTS
            )

        logger.info(f"Created {len(created)} scheduled payments for agreement {agreement.id}")
        return ServiceResult.ok(
            created,
            message=f"Payment schedule generated: {len(created)} payments created"
        )

    async def _load_billable_agreement(
        self,
        agreement_id: str
    ) -> Tuple[Optional[Agreement], Optional[ServiceResult]]:
        """Agreement if it is active with a positive rent, else the result to return"""
        try:
            agreement = await self.agreements.get_agreement(agreement_id)
        except Exception as e:
            logger.error(f"Error fetching agreement {agreement_id}: {e}", exc_info=True)
            return None, ServiceResult.fail(f"Error fetching agreement: {e}", error=e)

        if agreement is None:
            return None, ServiceResult.fail("Agreement not found", outcome=Outcome.NOT_FOUND)

        if not agreement.is_active:
            return None, ServiceResult.skipped(
                f"Agreement is not active (status: {agreement.status.value})",
                outcome=Outcome.INVALID_STATE
            )

        if not agreement.has_rent:
            return None, ServiceResult.skipped(
                "Agreement has no rent amount",
                outcome=Outcome.INVALID_STATE
            )

        return agreement, None
