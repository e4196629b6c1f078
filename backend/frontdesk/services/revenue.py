"""Revenue aggregation over ticket snapshots and over the payment log.

The payment log is the ledger of record. `summarize_tickets` is the
per-ticket projection used for the breakdowns the log does not carry
(service vs parts, priority mix, returns); `reconcile` reports every place
where the two disagree.
"""
from __future__ import annotations
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from frontdesk.errors import UnknownStatusError
from frontdesk.models.repair_ticket import RepairTicket, PaymentMethod, PaymentStatus, Priority
from frontdesk.models.payment_log import PaymentLogEntry

log = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')
SPLIT_TOLERANCE = CENT
NON_REPAIRABLE_REASONS = ('cannot be repaired', 'not repairable')


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value))


def _num(value: Decimal) -> float:
    return float(value.quantize(CENT))


def revenue_method(raw, ticket_id: Optional[str] = None) -> PaymentMethod:
    """Map a recorded method onto cash / upi / card; anything else counts as cash."""
    try:
        method = PaymentMethod.parse(raw)
    except UnknownStatusError:
        method = None
    if method is None or method is PaymentMethod.SPLIT:
        log.warning('unknown payment method %r on %s, counted as cash', raw, ticket_id or 'entry')
        return PaymentMethod.CASH
    return method


@dataclass
class MethodTotals:
    cash: Decimal = ZERO
    upi: Decimal = ZERO
    card: Decimal = ZERO

    def add(self, method: PaymentMethod, amount: Decimal):
        setattr(self, method.value, getattr(self, method.value) + amount)

    @property
    def digital(self) -> Decimal:
        return self.upi + self.card


@dataclass
class RevenueSummary:
    total_revenue: Decimal = ZERO
    by_method: MethodTotals = field(default_factory=MethodTotals)
    service_revenue: Decimal = ZERO
    parts_revenue: Decimal = ZERO
    total_parts_cost: Decimal = ZERO
    total_handovers: int = 0
    total_returns: int = 0
    normal_priority_handovers: int = 0
    urgent_priority_handovers: int = 0
    non_repairable_returns: int = 0
    other_returns: int = 0

    @property
    def gross_profit(self) -> Decimal:
        return self.total_revenue - self.total_parts_cost

    @property
    def profit_margin(self) -> Decimal:
        if not self.total_revenue:
            return ZERO
        return self.gross_profit / self.total_revenue * 100

    @property
    def average_ticket_value(self) -> Decimal:
        if not self.total_handovers:
            return ZERO
        return self.total_revenue / self.total_handovers

    @property
    def success_rate(self) -> Decimal:
        finished = self.total_handovers + self.total_returns
        if not finished:
            return ZERO
        return Decimal(self.total_handovers) / finished * 100

    def to_dict(self) -> dict:
        return {
            'total_revenue': _num(self.total_revenue),
            'cash_revenue': _num(self.by_method.cash),
            'online_revenue': _num(self.by_method.upi),
            'card_revenue': _num(self.by_method.card),
            'digital_revenue': _num(self.by_method.digital),
            'service_revenue': _num(self.service_revenue),
            'parts_revenue': _num(self.parts_revenue),
            'total_parts_cost': _num(self.total_parts_cost),
            'gross_profit': _num(self.gross_profit),
            'profit_margin': _num(self.profit_margin),
            'average_ticket_value': _num(self.average_ticket_value),
            'success_rate': _num(self.success_rate),
            'total_handovers': self.total_handovers,
            'total_returns': self.total_returns,
            'normal_priority_handovers': self.normal_priority_handovers,
            'urgent_priority_handovers': self.urgent_priority_handovers,
            'non_repairable_returns': self.non_repairable_returns,
            'other_returns': self.other_returns,
        }


def _is_split(ticket: RepairTicket) -> bool:
    try:
        return PaymentMethod.parse(ticket.payment_method) is PaymentMethod.SPLIT
    except UnknownStatusError:
        return False


def _ticket_legs(ticket: RepairTicket, amount: Decimal):
    if _is_split(ticket) and ticket.split_payments:
        for leg in ticket.split_payments:
            yield revenue_method(leg.get('method'), ticket.ticket_id), _money(leg.get('amount'))
        return
    yield revenue_method(ticket.payment_method, ticket.ticket_id), amount


def summarize_tickets(handovered: Iterable[RepairTicket], returned: Iterable[RepairTicket] = ()) -> RevenueSummary:
    """Aggregate collected tickets (and returns) from their own fields."""
    s = RevenueSummary()
    for t in handovered:
        amount = t.charge_amount
        s.total_handovers += 1
        s.total_revenue += amount
        for method, leg_amount in _ticket_legs(t, amount):
            s.by_method.add(method, leg_amount)
        s.service_revenue += _money(t.service_cost)
        s.parts_revenue += _money(t.total_parts_cost)
        s.total_parts_cost += _money(t.total_parts_cost)
        try:
            priority = Priority.parse(t.priority)
        except UnknownStatusError:
            priority = None
        if priority is Priority.NORMAL:
            s.normal_priority_handovers += 1
        elif priority is not None and priority.is_urgent:
            s.urgent_priority_handovers += 1
    for t in returned:
        s.total_returns += 1
        reason = (t.return_reason or '').lower()
        if any(k in reason for k in NON_REPAIRABLE_REASONS):
            s.non_repairable_returns += 1
        else:
            s.other_returns += 1
    return s


@dataclass
class LedgerSummary:
    total_amount: Decimal = ZERO
    by_method: MethodTotals = field(default_factory=MethodTotals)
    entry_count: int = 0
    payment_count: int = 0
    ticket_count: int = 0

    def to_dict(self) -> dict:
        return {
            'total_amount': _num(self.total_amount),
            'cash': _num(self.by_method.cash),
            'upi': _num(self.by_method.upi),
            'card': _num(self.by_method.card),
            'digital': _num(self.by_method.digital),
            'entry_count': self.entry_count,
            'payment_count': self.payment_count,
            'ticket_count': self.ticket_count,
        }


def summarize_payment_log(entries: Iterable[PaymentLogEntry]) -> LedgerSummary:
    """Sum every leg; count payments once per (ticket, method)."""
    s = LedgerSummary()
    seen_payments = set()
    seen_tickets = set()
    for e in entries:
        method = revenue_method(e.method, e.ticket_id)
        amount = _money(e.amount)
        s.entry_count += 1
        s.total_amount += amount
        s.by_method.add(method, amount)
        seen_payments.add((e.ticket_id, method))
        seen_tickets.add(e.ticket_id)
    s.payment_count = len(seen_payments)
    s.ticket_count = len(seen_tickets)
    return s


def _expected_amount(ticket: RepairTicket) -> Decimal:
    try:
        status = PaymentStatus.parse(ticket.payment_status or PaymentStatus.UNPAID)
    except UnknownStatusError:
        status = PaymentStatus.UNPAID
    if status is PaymentStatus.UNPAID:
        return ZERO
    return ticket.charge_amount


def reconcile(tickets: Iterable[RepairTicket], entries: Iterable[PaymentLogEntry]) -> List[dict]:
    """Compare each ticket's recorded amount with its logged legs.

    Returns one row per disagreement: `missing_ledger` (paid ticket with no
    legs), `amount_mismatch`, `unpaid_with_ledger`, or `unknown_ticket`
    (legs whose ticket is not in `tickets`, e.g. after an admin delete).
    """
    logged: Dict[str, Decimal] = OrderedDict()
    for e in entries:
        logged[e.ticket_id] = logged.get(e.ticket_id, ZERO) + _money(e.amount)
    out = []
    known = set()
    for t in tickets:
        known.add(t.ticket_id)
        expected = _expected_amount(t)
        actual = logged.get(t.ticket_id)
        kind = None
        if actual is None:
            if expected:
                kind = 'missing_ledger'
        elif not expected:
            kind = 'unpaid_with_ledger'
        elif abs(expected - actual) > SPLIT_TOLERANCE:
            kind = 'amount_mismatch'
        if kind:
            out.append({
                'ticket_id': t.ticket_id,
                'kind': kind,
                'ticket_amount': _num(expected),
                'ledger_amount': _num(actual or ZERO),
            })
    for ticket_id, actual in logged.items():
        if ticket_id not in known:
            out.append({'ticket_id': ticket_id, 'kind': 'unknown_ticket', 'ticket_amount': None, 'ledger_amount': _num(actual)})
    if out:
        log.warning('ledger divergence on %d tickets', len(out))
    return out


__all__ = [
    'RevenueSummary', 'LedgerSummary', 'MethodTotals', 'revenue_method',
    'summarize_tickets', 'summarize_payment_log', 'reconcile',
]
