#!/usr/bin/env python3
"""
Rental Billing Entry Point

Start-up hook: makes sure active agreements have this month's rent payment.
On the 1st of the month the gated check generates them; ``--force`` checks
every active agreement regardless of the date.
"""

import argparse
import asyncio
import sys

from rental_billing.config import get_config
from rental_billing.logging_config import setup_logging
from rental_billing.system import RentalBillingSystem


async def main(force: bool = False) -> int:
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)

    system = RentalBillingSystem(config)
    await system.start()
    try:
        if force:
            summary = await system.runner.force_check_all_agreements_for_payments()
        else:
            summary = await system.runner.check_and_generate_monthly_payments()
    finally:
        await system.stop()

    logger.info(summary.message)
    return 0 if summary.success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate monthly rent payments")
    parser.add_argument("--force", action="store_true",
                        help="check every active agreement, not only on the 1st")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main(force=args.force)))
    except KeyboardInterrupt:
        sys.exit(130)
