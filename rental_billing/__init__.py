"""
Rental Billing

Recurring rent payment generation for car-rental lease agreements:
monthly due-date schedules, missing payment reconciliation and
fee-bearing force generation, with Decimal money and idempotent inserts.
"""

__version__ = "1.0.0"
