"""
Late Fee Module

Daily late fines on overdue rent, capped per installment.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from .currency import Money, Currency


DEFAULT_DAILY_LATE_FEE = Decimal('120')
DEFAULT_LATE_FEE_CAP = Decimal('3000')


def calculate_days_overdue(due_date: date, as_of: date) -> int:
    """Whole days between the due date and ``as_of``, never negative"""
    return max(0, (as_of - due_date).days)


def calculate_late_fee(
    days_overdue: int,
    daily_late_fee: Optional[Money] = None,
    cap: Optional[Money] = None,
    currency: Currency = Currency.QAR
) -> Money:
    """
    Fine for an installment ``days_overdue`` days late.

    ``days_overdue * daily_late_fee``, limited to ``cap``; zero when the
    installment is not overdue.
    """
    if daily_late_fee is None:
        daily_late_fee = Money(DEFAULT_DAILY_LATE_FEE, currency)
    if cap is None:
        cap = Money(DEFAULT_LATE_FEE_CAP, daily_late_fee.currency)

    if days_overdue <= 0:
        return Money.zero(daily_late_fee.currency)

    fee = daily_late_fee * Decimal(days_overdue)
    return cap if fee > cap else fee
