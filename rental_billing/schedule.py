"""
Rent Schedule Module

Pure date arithmetic for monthly rent: clamped month addition, month
iteration and the due-date sequence of an agreement. Nothing here touches
storage.

Month-end policy: a due day that does not exist in a month is clamped to the
month's last day, and every due date is derived from the anchor month, so a
31st due day gives Jan 31, Feb 29, Mar 31 rather than drifting to the 29th.
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional
import calendar

from .currency import Money


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the target month's length"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def first_of_month(value: date) -> date:
    return date(value.year, value.month, 1)


def due_date_for_month(year: int, month: int, due_day: int = 1) -> date:
    """Due date in the given month, with ``due_day`` clamped to the month"""
    if not 1 <= due_day <= 31:
        raise ValueError(f"Due day must be between 1 and 31, got {due_day}")
    return date(year, month, min(due_day, calendar.monthrange(year, month)[1]))


def iter_months(start: date, end: date) -> Iterator[date]:
    """Yield the first day of every month from ``start`` to ``end`` inclusive"""
    current = first_of_month(start)
    last = first_of_month(end)
    while current <= last:
        yield current
        current = add_months(current, 1)


def month_label(value: date) -> str:
    """'March 2024' style label used in payment descriptions"""
    return f"{calendar.month_name[value.month]} {value.year}"


@dataclass(frozen=True)
class ScheduleEntry:
    """One expected rent installment"""
    lease_id: str
    due_date: date
    amount: Money
    status: str = "pending"
    type: str = "rent"


def generate_schedule(agreement, default_term_months: int = 12) -> List[ScheduleEntry]:
    """
    Compute the monthly due dates of an agreement.

    The first due date is the agreement's due day in the start month, moved to
    the next month when the start day is already past it. Entries continue
    month by month up to and including ``end_date`` (or ``default_term_months``
    after the start when the agreement is open-ended).

    Returns an empty list when the agreement has no start date or no positive
    rent amount.
    """
    start: Optional[date] = agreement.start_date
    rent: Optional[Money] = agreement.rent_amount
    if start is None or rent is None or not rent.is_positive():
        return []

    due_day = agreement.rent_due_day or 1
    end = agreement.end_date or add_months(start, default_term_months)

    offset = 1 if start.day > due_day else 0
    schedule = []
    while True:
        anchor = add_months(first_of_month(start), offset)
        current = due_date_for_month(anchor.year, anchor.month, due_day)
        if current > end:
            break
        schedule.append(ScheduleEntry(
            lease_id=agreement.id,
            due_date=current,
            amount=rent
        ))
        offset += 1

    return schedule
