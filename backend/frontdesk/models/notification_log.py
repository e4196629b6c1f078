from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime
from .base import Base, utcnow


class NotificationLogEntry(Base):
    # Records that a message link was produced; delivery is never confirmed.
    __tablename__ = 'whatsapp_logs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_pk: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    ticket_id: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(120))
    customer_mobile: Mapped[Optional[str]] = mapped_column(String(16))
    channel: Mapped[str] = mapped_column(String(16), nullable=False, default='whatsapp')
    message_type: Mapped[str] = mapped_column(String(16), nullable=False)
    language: Mapped[str] = mapped_column(String(16), nullable=False)
    sent_by: Mapped[str] = mapped_column(String(64), nullable=False, default='Front Desk')
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


__all__ = ['NotificationLogEntry']
