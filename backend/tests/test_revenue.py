from datetime import datetime, timezone
from decimal import Decimal
import logging
from conftest import make_ticket
from frontdesk.models.payment_log import PaymentLogEntry, PaymentLogType
from frontdesk.models.repair_ticket import RepairStatus, PaymentStatus, PaymentMethod, Priority
from frontdesk.services.revenue import summarize_tickets, summarize_payment_log, reconcile, revenue_method

NOW = datetime(2025, 10, 19, 9, 30, tzinfo=timezone.utc)


def _collected(ticket_id, amount, method, **kw):
    return make_ticket(ticket_id=ticket_id, status=RepairStatus.PAYMENT_COLLECTED, payment_status=PaymentStatus.COLLECTED,
                       final_amount=Decimal(str(amount)), payment_method=method, payment_collected_date=NOW, **kw)


def _entry(ticket_id, amount, method, kind=PaymentLogType.SINGLE):
    return PaymentLogEntry(ticket_id=ticket_id, amount=Decimal(str(amount)), method=method, type=kind, timestamp=NOW)


def test_two_ticket_day():
    s = summarize_tickets([_collected('t1', 500, 'cash'), _collected('t2', 300, 'upi')])
    d = s.to_dict()
    assert d['total_revenue'] == 800
    assert d['cash_revenue'] == 500
    assert d['online_revenue'] == 300
    assert d['average_ticket_value'] == 400
    assert d['digital_revenue'] == 300
    assert d['total_handovers'] == 2


def test_empty_day_has_zero_ratios():
    d = summarize_tickets([], []).to_dict()
    assert d['total_revenue'] == 0
    assert d['profit_margin'] == 0
    assert d['average_ticket_value'] == 0
    assert d['success_rate'] == 0


def test_split_legs_and_aliases():
    split = _collected('t1', 500, PaymentMethod.SPLIT, split_payments=[
        {'method': 'cash', 'amount': 300}, {'method': 'online', 'amount': 200},
    ])
    pos = _collected('t2', 250, 'card/pos')
    s = summarize_tickets([split, pos])
    assert s.by_method.cash == Decimal('300')
    assert s.by_method.upi == Decimal('200')
    assert s.by_method.card == Decimal('250')
    assert s.total_revenue == Decimal('750')


def test_unknown_method_counts_as_cash_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger='frontdesk.services.revenue'):
        s = summarize_tickets([_collected('t1', 100, 'cheque')])
    assert s.by_method.cash == Decimal('100')
    assert 'cheque' in caplog.text
    assert revenue_method('UPI') is PaymentMethod.UPI


def test_profit_priority_and_returns():
    a = _collected('t1', 1000, 'cash', total_parts_cost=Decimal('400'), service_cost=Decimal('600'), priority=Priority.URGENT)
    b = _collected('t2', 1000, 'cash', priority=Priority.NORMAL)
    r1 = make_ticket(ticket_id='r1', status=RepairStatus.RETURNED, return_reason='Cannot be repaired')
    r2 = make_ticket(ticket_id='r2', status=RepairStatus.RETURNED, return_reason='Customer changed mind')
    s = summarize_tickets([a, b], [r1, r2])
    assert s.gross_profit == Decimal('1600')
    assert s.to_dict()['profit_margin'] == 80.0
    assert s.to_dict()['success_rate'] == 50.0
    assert (s.urgent_priority_handovers, s.normal_priority_handovers) == (1, 1)
    assert (s.non_repairable_returns, s.other_returns) == (1, 1)


def test_payment_log_summary_counts_legs_once_per_method():
    entries = [
        _entry('t1', 300, 'cash', PaymentLogType.SPLIT),
        _entry('t1', 200, 'upi', PaymentLogType.SPLIT),
        _entry('t2', 450, 'card'),
    ]
    s = summarize_payment_log(entries)
    assert s.total_amount == Decimal('950')
    assert s.entry_count == 3
    assert s.payment_count == 3
    assert s.ticket_count == 2
    assert s.to_dict()['digital'] == 650


def test_reconcile_reports_divergence():
    ok = _collected('t1', 500, 'cash')
    short = _collected('t2', 800, 'upi')
    missing = _collected('t3', 200, 'cash')
    unpaid = make_ticket(ticket_id='t4', status=RepairStatus.COMPLETED)
    entries = [_entry('t1', 500, 'cash'), _entry('t2', 700, 'upi'), _entry('t4', 100, 'cash'), _entry('gone', 50, 'cash')]
    rows = {r['ticket_id']: r for r in reconcile([ok, short, missing, unpaid], entries)}
    assert 't1' not in rows
    assert rows['t2']['kind'] == 'amount_mismatch'
    assert rows['t2']['ledger_amount'] == 700
    assert rows['t3']['kind'] == 'missing_ledger'
    assert rows['t4']['kind'] == 'unpaid_with_ledger'
    assert rows['gone']['kind'] == 'unknown_ticket'
