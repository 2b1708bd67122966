"""
Agreement Module

Lease agreements as seen by the billing services: rent amount, lease window,
rent due day and status. Billing only reads agreements; creation here exists
for seeding and imports.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
import logging
import uuid

from .async_storage import AsyncStorageInterface
from .currency import Money, Currency
from .storage import StorageRecord


logger = logging.getLogger("rental_billing.agreements")


class AgreementStatus(Enum):
    """Agreement lifecycle states"""
    DRAFT = "draft"
    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    CLOSED = "closed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    TERMINATED = "terminated"


@dataclass
class Agreement(StorageRecord):
    """Lease agreement for a vehicle"""
    start_date: Optional[date]
    end_date: Optional[date] = None
    rent_amount: Optional[Money] = None
    rent_due_day: int = 1
    status: AgreementStatus = AgreementStatus.DRAFT
    agreement_number: Optional[str] = None
    daily_late_fee: Optional[Money] = None

    def __post_init__(self):
        if not 1 <= self.rent_due_day <= 31:
            raise ValueError(f"rent_due_day must be between 1 and 31, got {self.rent_due_day}")

    @property
    def is_active(self) -> bool:
        return self.status == AgreementStatus.ACTIVE

    @property
    def has_rent(self) -> bool:
        return self.rent_amount is not None and self.rent_amount.is_positive()

    def covers(self, as_of: date) -> bool:
        """True when ``as_of`` falls strictly inside the lease window"""
        if self.start_date is None or not self.start_date < as_of:
            return False
        return self.end_date is None or as_of < self.end_date


class AgreementRepository:
    """
    Read access to lease agreements stored in the ``leases`` table
    """

    def __init__(self, storage: AsyncStorageInterface, currency: Currency = Currency.QAR):
        self.storage = storage
        self.currency = currency
        self.table = "leases"

    async def create_agreement(
        self,
        start_date: date,
        rent_amount: Optional[Decimal],
        end_date: Optional[date] = None,
        rent_due_day: int = 1,
        status: AgreementStatus = AgreementStatus.ACTIVE,
        agreement_number: Optional[str] = None,
        daily_late_fee: Optional[Decimal] = None,
        agreement_id: Optional[str] = None
    ) -> Agreement:
        """Create and store an agreement"""
        now = datetime.now(timezone.utc)
        agreement = Agreement(
            id=agreement_id or str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            start_date=start_date,
            end_date=end_date,
            rent_amount=Money(rent_amount, self.currency) if rent_amount is not None else None,
            rent_due_day=rent_due_day,
            status=status,
            agreement_number=agreement_number,
            daily_late_fee=Money(daily_late_fee, self.currency) if daily_late_fee is not None else None
        )
        await self.save_agreement(agreement)
        return agreement

    async def save_agreement(self, agreement: Agreement) -> None:
        await self.storage.save(self.table, agreement.id, self._agreement_to_dict(agreement))

    async def update_status(self, agreement_id: str, status: AgreementStatus) -> Agreement:
        agreement = await self.get_agreement(agreement_id)
        if not agreement:
            raise ValueError(f"Agreement {agreement_id} not found")
        agreement.status = status
        agreement.updated_at = datetime.now(timezone.utc)
        await self.save_agreement(agreement)
        return agreement

    async def get_agreement(self, agreement_id: str) -> Optional[Agreement]:
        data = await self.storage.load(self.table, agreement_id)
        if data:
            return self._agreement_from_dict(data)
        return None

    async def list_active_agreements(self, as_of: Optional[date] = None) -> List[Agreement]:
        """
        Active agreements, optionally only those whose lease window strictly
        contains ``as_of`` (open-ended leases count as covering it).
        """
        rows = await self.storage.find(self.table, {"status": AgreementStatus.ACTIVE.value})
        agreements = []
        for row in rows:
            try:
                agreements.append(self._agreement_from_dict(row))
            except (ValueError, KeyError, TypeError, ArithmeticError) as e:
                logger.warning(f"Skipping unreadable agreement {row.get('id')}: {e}")
        if as_of is not None:
            agreements = [a for a in agreements if a.covers(as_of)]
        agreements.sort(key=lambda a: (a.start_date or date.min, a.id))
        return agreements

    def _agreement_to_dict(self, agreement: Agreement) -> Dict:
        return {
            'id': agreement.id,
            'created_at': agreement.created_at.isoformat(),
            'updated_at': agreement.updated_at.isoformat(),
            'agreement_number': agreement.agreement_number,
            'status': agreement.status.value,
            'start_date': agreement.start_date.isoformat() if agreement.start_date else None,
            'end_date': agreement.end_date.isoformat() if agreement.end_date else None,
            'rent_due_day': agreement.rent_due_day,
            'rent_amount': str(agreement.rent_amount.amount) if agreement.rent_amount else None,
            'daily_late_fee': str(agreement.daily_late_fee.amount) if agreement.daily_late_fee else None,
            'currency': (agreement.rent_amount or Money.zero(self.currency)).currency.code
        }

    def _agreement_from_dict(self, data: Dict) -> Agreement:
        currency = Currency[data.get('currency') or self.currency.code]

        def get_money(key: str) -> Optional[Money]:
            if data.get(key) is not None:
                return Money(Decimal(data[key]), currency)
            return None

        def get_date(key: str) -> Optional[date]:
            if data.get(key):
                return date.fromisoformat(data[key][:10])
            return None

        return Agreement(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            start_date=get_date('start_date'),
            end_date=get_date('end_date'),
            rent_amount=get_money('rent_amount'),
            rent_due_day=data.get('rent_due_day') or 1,
            status=AgreementStatus(data['status']),
            agreement_number=data.get('agreement_number'),
            daily_late_fee=get_money('daily_late_fee')
        )
