"""CSV exports: header row, every field double-quoted.

Each builder refuses an empty data set with `NoDataError` so no empty file
is ever produced.
"""
from __future__ import annotations
import csv
import io
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from frontdesk.errors import NoDataError, UnknownStatusError
from frontdesk.models.base import as_utc
from frontdesk.models.payment_log import PaymentLogEntry
from frontdesk.models.repair_ticket import RepairTicket, PaymentMethod
from frontdesk.services.revenue import RevenueSummary

NO_DATA = 'No data to export'
EXPORT_KINDS = ('handovered', 'returned', 'payments', 'full')

REGISTRY_HEADERS = [
    'Ticket ID', 'Customer Name', 'Mobile', 'Email', 'Device Brand', 'Device Model', 'Problem',
    'Priority', 'Status', 'Estimated Cost', 'Final Amount', 'Payment Status', 'Registered Date', 'Updated Date',
]
HANDOVERED_HEADERS = [
    'Ticket ID', 'Customer Name', 'Phone', 'Device', 'Issue', 'Parts Used', 'Service Cost',
    'Payment Method', 'Handover Time', 'Revenue',
]
RETURNED_HEADERS = ['Ticket ID', 'Customer Name', 'Phone', 'Device', 'Problem', 'Return Reason', 'Return Time']
PAYMENTS_HEADERS = ['Time', 'Ticket ID', 'Customer Name', 'Device', 'Amount', 'Method', 'Type', 'Notes']


def _text(value) -> str:
    if value is None:
        return ''
    return str(getattr(value, 'value', value))


def _stamp(dt: Optional[datetime], tz: ZoneInfo, fmt: str = '%d/%m/%Y %H:%M') -> str:
    if dt is None:
        return ''
    return as_utc(dt).astimezone(tz).strftime(fmt)


def _amount(value) -> str:
    return f'{value:.2f}' if value is not None else ''


def _method_label(raw) -> str:
    try:
        return PaymentMethod.parse(raw).label
    except UnknownStatusError:
        return _text(raw)


def to_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_text(c) for c in row])
    return buf.getvalue()


def _require(rows: List) -> List:
    if not rows:
        raise NoDataError(NO_DATA)
    return rows


def registry_csv(tickets: Iterable[RepairTicket], tz: ZoneInfo) -> str:
    rows = _require(list(tickets))
    return to_csv(REGISTRY_HEADERS, (
        [
            t.ticket_id, t.customer_name, t.customer_mobile, t.customer_email, t.device_brand, t.device_model,
            t.device_problem, t.priority, t.status, _amount(t.estimated_cost), _amount(t.final_amount),
            t.payment_status, _stamp(t.created_at, tz), _stamp(t.updated_at or t.created_at, tz),
        ]
        for t in rows
    ))


def _handovered_rows(tickets: List[RepairTicket], tz: ZoneInfo):
    for t in tickets:
        yield [
            t.ticket_id, t.customer_name, t.customer_mobile, t.device_info, t.device_problem,
            '; '.join(str(p) for p in t.parts_used) if t.parts_used else 'Service Only',
            _amount(t.service_cost or 0), _method_label(t.payment_method),
            _stamp(t.payment_collected_date, tz), _amount(t.charge_amount),
        ]


def _returned_rows(tickets: List[RepairTicket], tz: ZoneInfo):
    for t in tickets:
        yield [
            t.ticket_id, t.customer_name, t.customer_mobile, t.device_info, t.device_problem,
            t.return_reason, _stamp(t.return_date, tz),
        ]


def handovered_csv(tickets: Iterable[RepairTicket], tz: ZoneInfo) -> str:
    return to_csv(HANDOVERED_HEADERS, _handovered_rows(_require(list(tickets)), tz))


def returned_csv(tickets: Iterable[RepairTicket], tz: ZoneInfo) -> str:
    return to_csv(RETURNED_HEADERS, _returned_rows(_require(list(tickets)), tz))


def payments_csv(entries: Iterable[PaymentLogEntry], tz: ZoneInfo) -> str:
    rows = _require(list(entries))
    return to_csv(PAYMENTS_HEADERS, (
        [
            _stamp(e.timestamp, tz, '%H:%M:%S'), e.ticket_id, e.customer_name, e.device_info,
            _amount(e.amount), _method_label(e.method), e.type, e.notes,
        ]
        for e in rows
    ))


def _rupees(value, places: int = 2) -> str:
    return f'₹{value:,.{places}f}'


def full_report_csv(summary: RevenueSummary, handovered: Iterable[RepairTicket], returned: Iterable[RepairTicket],
                    report_date: date, generated_at: datetime, tz: ZoneInfo, shop_name: str = 'PhoneCare') -> str:
    """Prose summary block followed by the handovered and returned tables."""
    handovered, returned = list(handovered), list(returned)
    if not handovered and not returned:
        raise NoDataError(NO_DATA)
    lines = [
        f'{shop_name} - Daily Report - {report_date.isoformat()}',
        '',
        'DAILY SUMMARY',
    ]
    summary_rows = [
        ('Total Revenue', _rupees(summary.total_revenue)),
        ('Cash Revenue', _rupees(summary.by_method.cash)),
        ('Digital Revenue', _rupees(summary.by_method.digital)),
        ('Total Handovers', summary.total_handovers),
        ('Total Returns', summary.total_returns),
        ('Gross Profit', _rupees(summary.gross_profit)),
        ('Profit Margin', f'{summary.profit_margin:.1f}%'),
        ('Average Ticket Value', _rupees(summary.average_ticket_value, 0)),
        ('Success Rate', f'{summary.success_rate:.1f}%'),
    ]
    out = '\n'.join(lines) + '\n'
    out += to_csv(['Metric', 'Value'], summary_rows) + '\n'
    if handovered:
        out += 'HANDOVERED DEVICES\n' + to_csv(HANDOVERED_HEADERS, _handovered_rows(handovered, tz)) + '\n'
    if returned:
        out += 'RETURNED DEVICES\n' + to_csv(RETURNED_HEADERS, _returned_rows(returned, tz)) + '\n'
    out += f'Report Generated: {_stamp(generated_at, tz, "%d/%m/%Y %H:%M:%S")}\n'
    return out


def export_filename(kind: str, day: date) -> str:
    names = {
        'registry': 'device_registry',
        'handovered': 'handovered_devices',
        'returned': 'returned_devices',
        'payments': 'payments',
        'full': 'full_report',
    }
    return f'{names[kind]}_{day.isoformat()}.csv'


__all__ = [
    'to_csv', 'registry_csv', 'handovered_csv', 'returned_csv', 'payments_csv', 'full_report_csv',
    'export_filename', 'EXPORT_KINDS', 'NO_DATA',
]
