from __future__ import annotations
import logging
import random
from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from frontdesk.errors import ConflictError
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus, PaymentStatus, Priority
from frontdesk.utils.validation import (
    require_text, optional_text, validate_mobile, validate_email, parse_amount, parse_enum,
)

log = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 20


def validate_intake(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Check a registration form and return the cleaned ticket fields."""
    data = payload or {}
    fields = {
        'customer_name': require_text(data, 'customer_name', 'Customer name', max_len=120),
        'customer_mobile': validate_mobile(require_text(data, 'customer_mobile', 'Mobile number')),
        'customer_email': validate_email(optional_text(data, 'customer_email', max_len=255)),
        'customer_address': optional_text(data, 'customer_address', max_len=255),
        'device_brand': require_text(data, 'device_brand', 'Device brand', max_len=80),
        'device_model': require_text(data, 'device_model', 'Device model', max_len=80),
        'device_problem': require_text(data, 'device_problem', 'Problem description'),
        'estimated_cost': parse_amount(data.get('estimated_cost'), 'estimated_cost'),
        'priority': parse_enum(Priority, data.get('priority'), 'priority', default=Priority.NORMAL),
    }
    return fields


def generate_ticket_id(now: datetime, tz: ZoneInfo, rng: Optional[random.Random] = None) -> str:
    """`YYMMDD` of the local shop date followed by a 3-digit number (100-999)."""
    rng = rng or random
    local = now.astimezone(tz)
    return f'{local:%y%m%d}{rng.randint(100, 999)}'


def register_ticket(session: Session, payload: Dict[str, Any], now: datetime, tz: ZoneInfo,
                    rng: Optional[random.Random] = None) -> RepairTicket:
    fields = validate_intake(payload)
    for _ in range(MAX_ID_ATTEMPTS):
        ticket_id = generate_ticket_id(now, tz, rng)
        taken = session.execute(select(RepairTicket.id).where(RepairTicket.ticket_id == ticket_id)).first()
        if taken:
            continue
        t = RepairTicket(
            ticket_id=ticket_id,
            status=RepairStatus.NOT_STARTED,
            payment_status=PaymentStatus.UNPAID,
            created_at=now,
            updated_at=now,
            parts_used=[],
            split_payments=[],
            **fields,
        )
        session.add(t)
        try:
            session.commit()
        except IntegrityError:
            # lost a race for the same id
            session.rollback()
            continue
        log.info('registered ticket %s for %s', t.ticket_id, t.customer_name)
        return t
    raise ConflictError('Could not allocate a ticket id, try again')


__all__ = ['validate_intake', 'generate_ticket_id', 'register_ticket', 'MAX_ID_ATTEMPTS']
