"""
Payment Record Module

Payment rows owned by the billing subsystem (``unified_payments`` table) and
the store used to read and insert them.

A lease has at most one rent row per calendar month. The storage id is
derived from the lease and the due month, so an insert-only write of a second
row for the same month fails in the backend even if two writers both passed
the existence check, whatever day of the month each one picked.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .async_storage import AsyncStorageInterface
from .currency import Money, Currency
from .storage import StorageRecord


class PaymentStatus(Enum):
    """Payment states"""
    PENDING = "pending"
    OVERDUE = "overdue"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentType(Enum):
    RENT = "rent"
    LATE_FEE = "late_fee"


def payment_record_id(lease_id: str, due_date: date,
                      payment_type: PaymentType = PaymentType.RENT) -> str:
    """Deterministic id for a lease's row in the month of ``due_date``"""
    return f"{payment_type.value}:{lease_id}:{due_date:%Y-%m}"


@dataclass
class PaymentRecord(StorageRecord):
    """A single rent installment for a lease"""
    lease_id: str
    amount: Money
    due_date: date
    original_due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    type: PaymentType = PaymentType.RENT
    description: str = ""
    amount_paid: Money = None
    balance: Money = None
    payment_date: Optional[date] = None   # Set only once money is received
    days_overdue: int = 0
    late_fine_amount: Money = None
    daily_late_fee: Optional[Money] = None

    def __post_init__(self):
        zero_amount = Money.zero(self.amount.currency)
        if self.amount_paid is None:
            self.amount_paid = zero_amount
        if self.balance is None:
            self.balance = self.amount - self.amount_paid
        if self.late_fine_amount is None:
            self.late_fine_amount = zero_amount

    @classmethod
    def new_rent(
        cls,
        lease_id: str,
        due_date: date,
        amount: Money,
        description: str,
        status: PaymentStatus = PaymentStatus.PENDING,
        days_overdue: int = 0,
        late_fine_amount: Optional[Money] = None,
        daily_late_fee: Optional[Money] = None
    ) -> 'PaymentRecord':
        """Unpaid rent row: nothing paid, balance equals the amount"""
        now = datetime.now(timezone.utc)
        return cls(
            id=payment_record_id(lease_id, due_date),
            created_at=now,
            updated_at=now,
            lease_id=lease_id,
            amount=amount,
            due_date=due_date,
            original_due_date=due_date,
            status=status,
            type=PaymentType.RENT,
            description=description,
            days_overdue=days_overdue,
            late_fine_amount=late_fine_amount,
            daily_late_fee=daily_late_fee
        )


class PaymentRecordStore:
    """
    Reads and inserts payment rows. Rows are never deleted here; payment
    recording flows elsewhere update status and paid amounts.
    """

    def __init__(self, storage: AsyncStorageInterface, currency: Currency = Currency.QAR):
        self.storage = storage
        self.currency = currency
        self.table = "unified_payments"

    async def insert(self, record: PaymentRecord) -> PaymentRecord:
        """
        Insert a new row.

        Raises:
            DuplicateRecordError: a row with the same id already exists
        """
        await self.storage.create(self.table, record.id, self._payment_to_dict(record))
        return record

    async def get_payment(self, payment_id: str) -> Optional[PaymentRecord]:
        data = await self.storage.load(self.table, payment_id)
        if data:
            return self._payment_from_dict(data)
        return None

    async def list_for_lease(self, lease_id: str) -> List[PaymentRecord]:
        """All rows of a lease ordered by due date, oldest first"""
        rows = await self.storage.find(self.table, {"lease_id": lease_id})
        payments = [self._payment_from_dict(row) for row in rows]
        payments.sort(key=lambda p: (p.due_date or date.min, p.created_at))
        return payments

    async def has_payments(self, lease_id: str) -> bool:
        return len(await self.storage.find(self.table, {"lease_id": lease_id})) > 0

    async def find_for_month(
        self,
        lease_id: str,
        month: date,
        payment_type: PaymentType = PaymentType.RENT
    ) -> Optional[PaymentRecord]:
        """Row of the given type for a lease due in the calendar month of ``month``, if any"""
        for payment in await self.list_for_lease(lease_id):
            if payment.type == payment_type and payment.due_date is not None \
                    and (payment.due_date.year, payment.due_date.month) == (month.year, month.month):
                return payment
        return None

    async def billed_months(
        self,
        lease_id: str,
        payment_type: PaymentType = PaymentType.RENT
    ) -> Set[Tuple[int, int]]:
        """(year, month) pairs that already hold a row of the given type"""
        return {
            (payment.due_date.year, payment.due_date.month)
            for payment in await self.list_for_lease(lease_id)
            if payment.type == payment_type and payment.due_date is not None
        }

    def _payment_to_dict(self, payment: PaymentRecord) -> Dict:
        result = {
            'id': payment.id,
            'created_at': payment.created_at.isoformat(),
            'updated_at': payment.updated_at.isoformat(),
            'lease_id': payment.lease_id,
            'status': payment.status.value,
            'type': payment.type.value,
            'description': payment.description,
            'due_date': payment.due_date.isoformat(),
            'original_due_date': payment.original_due_date.isoformat(),
            'payment_date': payment.payment_date.isoformat() if payment.payment_date else None,
            'days_overdue': payment.days_overdue,
            'currency': payment.amount.currency.code
        }

        for field in ['amount', 'amount_paid', 'balance', 'late_fine_amount', 'daily_late_fee']:
            amount = getattr(payment, field)
            result[field] = str(amount.amount) if amount is not None else None

        return result

    def _payment_from_dict(self, data: Dict) -> PaymentRecord:
        currency = Currency[data.get('currency') or self.currency.code]

        def get_money(key: str) -> Optional[Money]:
            if data.get(key) is not None:
                return Money(Decimal(str(data[key])), currency)
            return None

        # Dates may come back as full timestamps from other writers
        def get_date(key: str) -> Optional[date]:
            if data.get(key):
                return date.fromisoformat(str(data[key])[:10])
            return None

        due_date = get_date('due_date') or get_date('original_due_date')

        return PaymentRecord(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            lease_id=data['lease_id'],
            amount=get_money('amount') or Money.zero(currency),
            due_date=due_date,
            original_due_date=get_date('original_due_date') or due_date,
            status=PaymentStatus(data.get('status', 'pending')),
            type=PaymentType(data.get('type', 'rent')),
            description=data.get('description') or "",
            amount_paid=get_money('amount_paid'),
            balance=get_money('balance'),
            payment_date=get_date('payment_date'),
            days_overdue=data.get('days_overdue') or 0,
            late_fine_amount=get_money('late_fine_amount'),
            daily_late_fee=get_money('daily_late_fee')
        )
