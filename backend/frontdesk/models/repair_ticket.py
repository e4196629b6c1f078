from __future__ import annotations
import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Numeric, JSON, Enum as SAEnum
from frontdesk.errors import UnknownStatusError
from .base import Base, utcnow


class _ParsableEnum(str, enum.Enum):
    """String enum with case-insensitive parsing and optional legacy aliases."""

    @classmethod
    def _aliases(cls) -> Dict[str, str]:
        return {}

    @classmethod
    def parse(cls, raw):
        if isinstance(raw, cls):
            return raw
        if raw is None:
            raise UnknownStatusError(f'{cls.__name__} missing')
        key = str(raw).strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        alias = cls._aliases().get(key)
        if alias is not None:
            return cls(alias)
        raise UnknownStatusError(f'Unknown {cls.__name__} {raw!r}')


class RepairStatus(_ParsableEnum):
    NOT_STARTED = 'Repair Not Started'
    IN_PROGRESS = 'In Progress'
    COMPLETED = 'Completed'
    READY = 'Ready for Pickup'
    UNREPAIRABLE = 'Cannot Be Repaired'
    PAYMENT_COLLECTED = 'Payment Collected'
    HANDED_OVER = 'Handed Over to Customer'
    RETURNED = 'Returned to Customer'
    PICKED_UP = 'Customer Picked Up'

    @classmethod
    def _aliases(cls):
        # spellings written by earlier versions of the front desk; mapped on assignment
        return {
            'not started': cls.NOT_STARTED.value,
            'repair in progress': cls.IN_PROGRESS.value,
            'repair completed': cls.COMPLETED.value,
            'ready': cls.READY.value,
            'unrepairable': cls.UNREPAIRABLE.value,
            'not repairable': cls.UNREPAIRABLE.value,
            'unable to repair': cls.UNREPAIRABLE.value,
            'handed over': cls.HANDED_OVER.value,
            'handover completed': cls.HANDED_OVER.value,
            'returned': cls.RETURNED.value,
        }


class PaymentStatus(_ParsableEnum):
    UNPAID = 'unpaid'
    PAID_ONLINE = 'paid_online'
    COLLECTED = 'collected'

    @classmethod
    def _aliases(cls):
        return {'online_paid': cls.PAID_ONLINE.value, 'pending': cls.UNPAID.value, '': cls.UNPAID.value}


class PaymentMethod(_ParsableEnum):
    CASH = 'cash'
    UPI = 'upi'
    CARD = 'card'
    SPLIT = 'split'

    @classmethod
    def _aliases(cls):
        return {'online': cls.UPI.value, 'online/upi': cls.UPI.value, 'card/pos': cls.CARD.value, 'pos': cls.CARD.value}

    @property
    def label(self) -> str:
        return {'cash': 'Cash', 'upi': 'UPI/Online', 'card': 'Card/POS', 'split': 'Split'}[self.value]


class Priority(_ParsableEnum):
    LOW = 'Low'
    NORMAL = 'Normal'
    HIGH = 'High'
    URGENT = 'Urgent'

    @property
    def is_urgent(self) -> bool:
        return self in (Priority.HIGH, Priority.URGENT)


def _enum_column(enum_cls, **kw):
    return SAEnum(enum_cls, native_enum=False, validate_strings=True,
                  values_callable=lambda e: [m.value for m in e], length=40, **kw)


class RepairTicket(Base):
    __tablename__ = 'repair_tickets'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    # customer
    customer_name: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    customer_mobile: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_address: Mapped[Optional[str]] = mapped_column(String(255))
    # device
    device_brand: Mapped[str] = mapped_column(String(80), nullable=False)
    device_model: Mapped[str] = mapped_column(String(80), nullable=False)
    device_problem: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[Priority] = mapped_column(_enum_column(Priority), nullable=False, default=Priority.NORMAL)
    repair_type: Mapped[Optional[str]] = mapped_column(String(40))
    # commercial
    estimated_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal('0'))
    final_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    service_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    total_parts_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    parts_used: Mapped[List[str]] = mapped_column(JSON, default=list)
    payment_status: Mapped[PaymentStatus] = mapped_column(_enum_column(PaymentStatus), nullable=False, default=PaymentStatus.UNPAID, index=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(_enum_column(PaymentMethod))
    split_payments: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    payment_notes: Mapped[Optional[str]] = mapped_column(Text)
    # lifecycle
    status: Mapped[RepairStatus] = mapped_column(_enum_column(RepairStatus), nullable=False, default=RepairStatus.NOT_STARTED, index=True)
    unrepairable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    handover_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_shown: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    return_reason: Mapped[Optional[str]] = mapped_column(String(255))
    return_details: Mapped[Optional[str]] = mapped_column(Text)
    # timestamps (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    online_paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    payment_collected_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    handover_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    return_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    customer_pickup_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @property
    def device_info(self) -> str:
        return f'{self.device_brand} {self.device_model}'.strip()

    @property
    def charge_amount(self) -> Decimal:
        """Amount billed: final amount once collected, else the intake estimate."""
        if self.final_amount:
            return Decimal(self.final_amount)
        return Decimal(self.estimated_cost or 0)

    @validates('status')
    def _canonical_status(self, key, value):
        """Store the canonical label; the column only loads exact `RepairStatus` values."""
        if value is None:
            return None
        return RepairStatus.parse(value)


# Status flow: Repair Not Started -> In Progress -> Completed/Ready -> Payment Collected | Handed Over -> Customer Picked Up
# Unrepairable branch: ... -> Cannot Be Repaired -> Returned to Customer -> Customer Picked Up

__all__ = ['RepairTicket', 'RepairStatus', 'PaymentStatus', 'PaymentMethod', 'Priority']
