"""
Monthly Payment Runner

Start-up and heartbeat jobs that make sure every active agreement has its
current month's rent row. Agreements are processed one call at a time with a
timeout each; a failing agreement is counted and the run moves on.
"""

from typing import Awaitable, Callable, List, Optional, Sequence
import logging

from .agreements import Agreement, AgreementRepository
from .clock import Clock, SystemClock
from .concurrency import process_batches, with_timeout, with_timeout_and_retry
from .config import RentalBillingConfig, get_config
from .generation import PaymentGenerator
from .payments import PaymentRecordStore
from .results import BatchItemResult, BatchResult, Outcome, RunSummary, ServiceResult


logger = logging.getLogger("rental_billing.runner")


class MonthlyPaymentRunner:
    """
    Generates the current month's payment for active agreements
    """

    def __init__(
        self,
        agreements: AgreementRepository,
        payments: PaymentRecordStore,
        generator: PaymentGenerator,
        clock: Optional[Clock] = None,
        config: Optional[RentalBillingConfig] = None
    ):
        self.agreements = agreements
        self.payments = payments
        self.generator = generator
        self.clock = clock or SystemClock()
        self.config = config or get_config()

    async def check_and_generate_monthly_payments(self) -> RunSummary:
        """
        Gated run: only on the 1st of the month.

        Covers active agreements whose lease window contains today and that
        carry a positive rent.
        """
        today = self.clock.today()
        if today.day != 1:
            logger.debug(f"Monthly payment generation skipped: {today} is not the first of the month")
            return RunSummary(message=f"Not the first of the month ({today.isoformat()}), nothing to do")

        logger.info(f"Checking for monthly payments to generate for {today.isoformat()}")
        try:
            agreements = await self.agreements.list_active_agreements(as_of=today)
        except Exception as e:
            logger.error(f"Error fetching active agreements: {e}", exc_info=True)
            return RunSummary(success=False, message=f"Error fetching agreements: {e}")

        summary = await self._run(
            [a for a in agreements if a.has_rent],
            lambda agreement: self.generator.force_generate_payment_for_agreement(agreement.id)
        )
        summary.message = f"Successfully generated {summary.generated} monthly payments"
        logger.info(summary.message)
        return summary

    async def force_check_all_agreements_for_payments(self) -> RunSummary:
        """
        Ungated run over every active agreement; the generator re-checks each
        agreement's status before writing.
        """
        try:
            agreements = await self.agreements.list_active_agreements()
        except Exception as e:
            logger.error(f"Error fetching active agreements: {e}", exc_info=True)
            return RunSummary(success=False, message=f"Error fetching agreements: {e}")

        logger.info(f"Force-checking {len(agreements)} active agreements for current month payments")
        summary = await self._run(
            agreements,
            lambda agreement: self.generator.force_generate_payment_for_agreement(agreement.id)
        )
        summary.message = (
            f"Generated {summary.generated} payments, skipped {summary.skipped}, "
            f"failed {summary.failed}"
        )
        logger.info(summary.message)
        return summary

    async def check_missing_payment_schedules(self) -> RunSummary:
        """Generate the current month for active agreements without any payment rows"""
        try:
            agreements = await self.agreements.list_active_agreements()
        except Exception as e:
            logger.error(f"Error fetching active agreements: {e}", exc_info=True)
            return RunSummary(success=False, message=f"Failed to fetch agreements: {e}")

        if not agreements:
            return RunSummary(message="No active agreements found")

        async def generate_if_empty(agreement: Agreement) -> ServiceResult:
            if await self.payments.has_payments(agreement.id):
                return ServiceResult.skipped("Agreement already has payments",
                                             outcome=Outcome.ALREADY_EXISTS)
            return await self.generator.force_generate_payment_for_agreement(agreement.id)

        summary = await self._run(agreements, generate_if_empty)
        summary.message = (
            f"Payment schedule check completed. Generated {summary.generated} new schedules. "
            f"Encountered {summary.failed} errors."
        )
        logger.info(summary.message)
        return summary

    async def batch_generate_payments(self, agreement_ids: Sequence[str]) -> BatchResult:
        """
        Force-generate the current month for many agreements, a batch at a
        time with bounded concurrency and retries.
        """
        logger.info(f"Starting batch payment generation for {len(agreement_ids)} agreements")

        async def generate(agreement_id: str) -> BatchItemResult:
            result = await with_timeout_and_retry(
                lambda: self.generator.force_generate_payment_for_agreement(agreement_id),
                timeout_seconds=self.config.force_generate_timeout_seconds,
                retries=self.config.retries,
                retry_delay_seconds=self.config.retry_delay_seconds,
                operation_name=f"Payment generation for {agreement_id}"
            )
            if not result.success:
                logger.error(f"Failed to generate payment for agreement {agreement_id}: {result.message}")
            return BatchItemResult(id=agreement_id, success=result.success, message=result.message)

        def on_batch_complete(batch_results: List[BatchItemResult], batch_index: int) -> None:
            succeeded = sum(1 for r in batch_results if r.success)
            logger.info(f"Completed batch {batch_index + 1}: {succeeded}/{len(batch_results)} succeeded")

        items = await process_batches(
            list(agreement_ids),
            self.config.batch_size,
            self.config.max_concurrency,
            generate,
            on_batch_complete
        )
        batch = BatchResult(results=items)
        summary = batch.summary
        logger.info(f"Batch payment generation completed: "
                    f"{summary['succeeded']}/{summary['total']} succeeded")
        return batch

    async def _run(
        self,
        agreements: List[Agreement],
        operation: Callable[[Agreement], Awaitable[ServiceResult]]
    ) -> RunSummary:
        summary = RunSummary()
        for agreement in agreements:
            result = await with_timeout(
                operation(agreement),
                self.config.operation_timeout_seconds,
                f"Payment generation for {agreement.id}"
            )
            summary.add(agreement.id, result)
            if not result.success:
                logger.error(f"Error generating payment for agreement {agreement.id}: {result.message}")
        return summary
