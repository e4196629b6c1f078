"""Ticket lifecycle: transition graph and front-desk bucket classification.

Every ticket lands in exactly one `Bucket`. Only the three active buckets are
shown on the front desk; `IN_REPAIR` and `CLOSED` are hidden.

Classification order:
  1. any terminal marker (handover / payment-collected / pickup date,
     handover-completed flag, or a terminal status) -> CLOSED
  2. unrepairable or returned-but-not-collected -> RETURN_PENDING
     (checked before payment so a paid-online device that cannot be repaired
     still goes back to the customer)
  3. completed/ready and paid online -> READY_FOR_HANDOVER
  4. completed/ready otherwise -> AWAITING_PAYMENT
  5. still being repaired -> IN_REPAIR
"""
from __future__ import annotations
import enum
import logging
from typing import Dict, Iterable, List

from frontdesk.errors import InvalidTransition, UnknownStatusError
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus, PaymentStatus
from frontdesk.utils.fsm import TransitionValidator

log = logging.getLogger(__name__)


class Bucket(str, enum.Enum):
    AWAITING_PAYMENT = 'awaiting_payment'
    READY_FOR_HANDOVER = 'ready_for_handover'
    RETURN_PENDING = 'return_pending'
    IN_REPAIR = 'in_repair'
    CLOSED = 'closed'

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_BUCKETS


ACTIVE_BUCKETS = (Bucket.AWAITING_PAYMENT, Bucket.READY_FOR_HANDOVER, Bucket.RETURN_PENDING)

_S = RepairStatus

REPAIR_FSM = TransitionValidator({
    _S.NOT_STARTED: {_S.IN_PROGRESS, _S.UNREPAIRABLE, _S.RETURNED},
    _S.IN_PROGRESS: {_S.COMPLETED, _S.READY, _S.UNREPAIRABLE, _S.RETURNED},
    _S.COMPLETED: {_S.READY, _S.PAYMENT_COLLECTED, _S.HANDED_OVER, _S.RETURNED},
    _S.READY: {_S.PAYMENT_COLLECTED, _S.HANDED_OVER, _S.RETURNED},
    _S.UNREPAIRABLE: {_S.RETURNED, _S.PICKED_UP},
    _S.RETURNED: {_S.PICKED_UP},
    _S.PAYMENT_COLLECTED: {_S.PICKED_UP},
    _S.HANDED_OVER: {_S.PICKED_UP},
    _S.PICKED_UP: set(),
}, states=RepairStatus)

# What a status means for classification once markers and return flags are ruled out.
_STATUS_KIND: Dict[RepairStatus, str] = {
    _S.NOT_STARTED: 'repairing',
    _S.IN_PROGRESS: 'repairing',
    _S.COMPLETED: 'finished',
    _S.READY: 'finished',
    _S.UNREPAIRABLE: 'return',
    _S.RETURNED: 'return',
    _S.PAYMENT_COLLECTED: 'terminal',
    _S.HANDED_OVER: 'terminal',
    _S.PICKED_UP: 'terminal',
}
_missing = set(RepairStatus) - set(_STATUS_KIND)
if _missing:  # pragma: no cover - guards edits to RepairStatus
    raise RuntimeError(f'classification missing statuses: {sorted(m.value for m in _missing)}')


def has_terminal_marker(ticket: RepairTicket) -> bool:
    return bool(
        ticket.handover_date
        or ticket.payment_collected_date
        or ticket.customer_pickup_date
        or ticket.handover_completed
    )


def is_marked_unrepairable(ticket: RepairTicket) -> bool:
    return bool(ticket.unrepairable) or (ticket.repair_type or '').strip().lower() == 'unrepairable'


def has_pending_return(ticket: RepairTicket) -> bool:
    return bool((ticket.return_reason or '').strip() and ticket.return_date)


def classify(ticket: RepairTicket) -> Bucket:
    status = RepairStatus.parse(ticket.status)
    kind = _STATUS_KIND.get(status)
    if kind is None:
        raise UnknownStatusError(f'No classification for status {status!r}')
    if kind == 'terminal' or has_terminal_marker(ticket):
        return Bucket.CLOSED
    if kind == 'return' or is_marked_unrepairable(ticket) or has_pending_return(ticket):
        return Bucket.RETURN_PENDING
    if kind == 'finished':
        if PaymentStatus.parse(ticket.payment_status or PaymentStatus.UNPAID) is PaymentStatus.PAID_ONLINE:
            return Bucket.READY_FOR_HANDOVER
        return Bucket.AWAITING_PAYMENT
    return Bucket.IN_REPAIR


def categorize(tickets: Iterable[RepairTicket]) -> Dict[Bucket, List[RepairTicket]]:
    """Group tickets into the active buckets, preserving input order."""
    out: Dict[Bucket, List[RepairTicket]] = {b: [] for b in ACTIVE_BUCKETS}
    total = 0
    for t in tickets:
        total += 1
        bucket = classify(t)
        if bucket.is_active:
            out[bucket].append(t)
    log.debug('categorized %d tickets: %s', total, {b.value: len(v) for b, v in out.items()})
    return out


def assert_in_bucket(ticket: RepairTicket, *expected: Bucket) -> Bucket:
    bucket = classify(ticket)
    if bucket not in expected:
        wanted = ', '.join(b.value for b in expected)
        raise InvalidTransition(f'Ticket {ticket.ticket_id} is {bucket.value}, expected {wanted}')
    return bucket


__all__ = [
    'Bucket', 'ACTIVE_BUCKETS', 'REPAIR_FSM', 'classify', 'categorize', 'assert_in_bucket',
    'has_terminal_marker', 'is_marked_unrepairable', 'has_pending_return',
]
