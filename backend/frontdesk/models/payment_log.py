from __future__ import annotations
import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, Numeric, Enum as SAEnum
from .base import Base, utcnow


class PaymentLogType(str, enum.Enum):
    SINGLE = 'single'
    SPLIT = 'split'
    OFFLINE = 'offline'
    ONLINE = 'online'


class PaymentLogEntry(Base):
    """One row per payment transaction; split payments write one row per leg.

    Append-only: nothing in the application updates or deletes these rows.
    """
    __tablename__ = 'payment_logs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Plain column (no FK) so the ledger outlives an admin-deleted ticket
    ticket_pk: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    ticket_id: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(120))
    device_info: Mapped[Optional[str]] = mapped_column(String(170))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    type: Mapped[PaymentLogType] = mapped_column(
        SAEnum(PaymentLogType, native_enum=False, values_callable=lambda e: [m.value for m in e], length=16),
        nullable=False,
    )
    split_total: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    split_count: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


__all__ = ['PaymentLogEntry', 'PaymentLogType']
