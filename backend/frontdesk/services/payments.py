"""Payment capture for finished repairs.

Validation runs on the whole command before any write. The ticket update and
its payment-log rows are committed together; a store error rolls both back
and propagates to the request boundary.
"""
from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from frontdesk.errors import PaymentValidationError, UnknownStatusError, ValidationError
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus, PaymentStatus, PaymentMethod
from frontdesk.models.payment_log import PaymentLogEntry, PaymentLogType
from frontdesk.services.lifecycle import Bucket, REPAIR_FSM, assert_in_bucket
from frontdesk.utils.validation import parse_amount

log = logging.getLogger(__name__)

SPLIT_TOLERANCE = Decimal('0.01')
LEG_METHODS = (PaymentMethod.CASH, PaymentMethod.UPI, PaymentMethod.CARD)


def _leg_method(raw, message: str) -> PaymentMethod:
    if raw is None or str(raw).strip() == '':
        raise PaymentValidationError(message)
    try:
        method = PaymentMethod.parse(raw)
    except UnknownStatusError:
        raise PaymentValidationError(message)
    if method not in LEG_METHODS:
        raise PaymentValidationError(message)
    return method


def _payload(raw) -> Mapping[str, Any]:
    data = raw or {}
    if not isinstance(data, Mapping):
        raise PaymentValidationError('Payment details must be an object')
    return data


def _notes(raw) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise PaymentValidationError('notes must be text')
    return raw.strip() or None


def _positive(raw, message: str) -> Decimal:
    try:
        return parse_amount(raw)
    except ValidationError:
        raise PaymentValidationError(message)


def validate_single_payment(amount, method) -> Tuple[Decimal, PaymentMethod]:
    return (
        _positive(amount, 'Please enter a valid payment amount'),
        _leg_method(method, 'Please select a payment method'),
    )


def validate_split_payment(total, splits: Optional[Iterable[Dict[str, Any]]]) -> Tuple[Decimal, List[Dict[str, Any]]]:
    """Return (total, legs) where legs is a list of {method, amount}.

    Needs at least two legs whose amounts sum to `total` within one paisa.
    """
    total_amount = _positive(total, 'Please enter a valid total amount')
    legs = []
    collected = Decimal('0')
    if splits is None:
        splits = []
    if not isinstance(splits, (list, tuple)):
        raise PaymentValidationError('splits must be a list of {method, amount}')
    for raw in splits:
        if not isinstance(raw, Mapping):
            raise PaymentValidationError('Each split needs a method and an amount')
        method = _leg_method(raw.get('method'), 'Please select payment method for all splits')
        amount = _positive(raw.get('amount'), 'Please enter valid amounts for all payment methods')
        legs.append({'method': method, 'amount': amount})
        collected += amount
    if len(legs) < 2:
        raise PaymentValidationError('Split payment needs at least two payment methods')
    if abs(collected - total_amount) > SPLIT_TOLERANCE:
        raise PaymentValidationError('Split payments must equal the total amount')
    return total_amount, legs


def _log_entry(ticket: RepairTicket, amount: Decimal, method: PaymentMethod, kind: PaymentLogType,
               now: datetime, notes: Optional[str] = None, split_total: Optional[Decimal] = None,
               split_count: Optional[int] = None) -> PaymentLogEntry:
    return PaymentLogEntry(
        ticket_pk=ticket.id,
        ticket_id=ticket.ticket_id,
        customer_name=ticket.customer_name,
        device_info=ticket.device_info,
        amount=amount,
        method=method.value,
        type=kind,
        split_total=split_total,
        split_count=split_count,
        notes=notes,
        timestamp=now,
    )


def _commit(session: Session, what: str, ticket: RepairTicket):
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        log.exception('%s failed for %s, rolled back', what, ticket.ticket_id)
        raise


def collect_payment(session: Session, ticket: RepairTicket, payload: Dict[str, Any], now: datetime) -> List[PaymentLogEntry]:
    """Collect an in-person payment (`mode` single or split) and close the ticket."""
    data = _payload(payload)
    mode = data.get('mode') or ('split' if data.get('splits') else 'single')
    if not isinstance(mode, str):
        raise PaymentValidationError('mode must be single or split')
    mode = mode.strip().lower()
    notes = _notes(data.get('notes'))
    if mode == 'split':
        total, legs = validate_split_payment(data.get('total_amount', data.get('amount')), data.get('splits'))
        method = PaymentMethod.SPLIT
    elif mode == 'single':
        total, method = validate_single_payment(data.get('amount'), data.get('method'))
        legs = [{'method': method, 'amount': total}]
    else:
        raise PaymentValidationError('mode must be single or split')

    assert_in_bucket(ticket, Bucket.AWAITING_PAYMENT)
    REPAIR_FSM.assert_can_transition(RepairStatus.parse(ticket.status), RepairStatus.PAYMENT_COLLECTED)

    ticket.status = RepairStatus.PAYMENT_COLLECTED
    ticket.payment_status = PaymentStatus.COLLECTED
    ticket.final_amount = total
    ticket.payment_method = method
    ticket.split_payments = [{'method': leg['method'].value, 'amount': float(leg['amount'])} for leg in legs] if mode == 'split' else []
    ticket.payment_notes = notes
    ticket.payment_collected_date = now
    ticket.updated_at = now
    if mode == 'split':
        entries = [
            _log_entry(ticket, leg['amount'], leg['method'], PaymentLogType.SPLIT, now, notes,
                       split_total=total, split_count=len(legs))
            for leg in legs
        ]
    else:
        entries = [_log_entry(ticket, total, method, PaymentLogType.SINGLE, now, notes)]
    session.add_all(entries)
    _commit(session, 'payment collection', ticket)
    log.info('collected %s via %s for %s', total, method.value, ticket.ticket_id)
    return entries


def record_online_payment(session: Session, ticket: RepairTicket, payload: Dict[str, Any], now: datetime) -> PaymentLogEntry:
    """Mark a finished repair as paid online; it then waits for handover."""
    data = _payload(payload)
    amount = _positive(data.get('amount', ticket.charge_amount), 'Please enter a valid payment amount')
    method = _leg_method(data.get('method') or PaymentMethod.UPI.value, 'Please select a payment method')
    notes = _notes(data.get('notes'))

    assert_in_bucket(ticket, Bucket.AWAITING_PAYMENT)

    ticket.payment_status = PaymentStatus.PAID_ONLINE
    ticket.final_amount = amount
    ticket.payment_method = method
    ticket.online_paid_at = now
    ticket.notification_shown = False
    ticket.updated_at = now
    entry = _log_entry(ticket, amount, method, PaymentLogType.ONLINE, now, notes)
    session.add(entry)
    _commit(session, 'online payment', ticket)
    log.info('online payment %s via %s for %s', amount, method.value, ticket.ticket_id)
    return entry


__all__ = [
    'validate_single_payment', 'validate_split_payment', 'collect_payment', 'record_online_payment',
    'SPLIT_TOLERANCE',
]
