from __future__ import annotations
from flask import Blueprint, request, abort, current_app, make_response
from sqlalchemy import select, or_
from frontdesk import get_db
from frontdesk.models.base import utcnow, iso
from frontdesk.models.payment_log import PaymentLogEntry
from frontdesk.models.repair_ticket import RepairTicket, PaymentStatus
from frontdesk.routes.tickets import ticket_json
from frontdesk.services.exports import (
    EXPORT_KINDS, export_filename, full_report_csv, handovered_csv, payments_csv, returned_csv,
)
from frontdesk.services.revenue import reconcile, summarize_payment_log, summarize_tickets
from frontdesk.utils.listing import handle_conditional, latest_timestamp, make_cached_list_response, paginate, request_pagination
from frontdesk.utils.timeutil import local_day_window, local_today, parse_day, shop_tz

rpt_bp = Blueprint('reports', __name__)


def _report_day(optional: bool = False):
    raw = request.args.get('date')
    if not raw:
        if optional:
            return None
        return local_today(utcnow(), shop_tz())
    day = parse_day(raw)
    if day is None:
        abort(400, description='date must be YYYY-MM-DD')
    return day


def _entry_json(e: PaymentLogEntry):
    return {
        'id': e.id,
        'ticket_id': e.ticket_id,
        'customer_name': e.customer_name,
        'device_info': e.device_info,
        'amount': float(e.amount),
        'method': e.method,
        'type': e.type.value,
        'split_total': float(e.split_total) if e.split_total is not None else None,
        'split_count': e.split_count,
        'notes': e.notes,
        'timestamp': iso(e.timestamp),
    }


def _day_snapshot(day):
    """Tickets collected on `day`, returns closed on `day`, and that day's ledger."""
    session = get_db()
    start, end = local_day_window(day, shop_tz())
    handovered = session.execute(
        select(RepairTicket)
        .where(RepairTicket.payment_collected_date >= start, RepairTicket.payment_collected_date < end)
        .order_by(RepairTicket.payment_collected_date.asc(), RepairTicket.id.asc())
    ).scalars().all()
    returned = session.execute(
        select(RepairTicket)
        .where(RepairTicket.return_date >= start, RepairTicket.return_date < end)
        .order_by(RepairTicket.return_date.asc(), RepairTicket.id.asc())
    ).scalars().all()
    entries = session.execute(
        select(PaymentLogEntry)
        .where(PaymentLogEntry.timestamp >= start, PaymentLogEntry.timestamp < end)
        .order_by(PaymentLogEntry.timestamp.asc(), PaymentLogEntry.id.asc())
    ).scalars().all()
    return handovered, returned, entries


def _tickets_for(entries, handovered):
    """Tickets the day's ledger should be checked against: collected that day plus any it references."""
    by_id = {t.ticket_id: t for t in handovered}
    missing = {e.ticket_id for e in entries} - set(by_id)
    if missing:
        for t in get_db().execute(select(RepairTicket).where(RepairTicket.ticket_id.in_(sorted(missing)))).scalars():
            by_id[t.ticket_id] = t
    return list(by_id.values())


@rpt_bp.get('/daily')
def daily_report():
    day = _report_day()
    handovered, returned, entries = _day_snapshot(day)
    ledger = summarize_payment_log(entries)
    summary = summarize_tickets(handovered, returned)
    discrepancies = reconcile(_tickets_for(entries, handovered), entries)
    return {
        'date': day.isoformat(),
        'revenue': ledger.to_dict(),
        'tickets': summary.to_dict(),
        'discrepancies': discrepancies,
        'counts': {
            'handovered': len(handovered),
            'returned': len(returned),
            'payments': ledger.payment_count,
        },
        'handovered': [ticket_json(t) for t in handovered],
        'returned': [ticket_json(t) for t in returned],
    }


@rpt_bp.get('/daily/export/<kind>.csv')
def export_daily(kind: str):
    if kind not in EXPORT_KINDS:
        abort(404, description=f'Unknown export {kind}')
    day = _report_day()
    tz = shop_tz()
    handovered, returned, entries = _day_snapshot(day)
    if kind == 'handovered':
        body = handovered_csv(handovered, tz)
    elif kind == 'returned':
        body = returned_csv(returned, tz)
    elif kind == 'payments':
        body = payments_csv(entries, tz)
    else:
        body = full_report_csv(summarize_tickets(handovered, returned), handovered, returned, day, utcnow(), tz,
                               shop_name=current_app.config.get('SHOP_NAME', 'PhoneCare'))
    resp = make_response(body)
    resp.headers['Content-Type'] = 'text/csv; charset=utf-8'
    resp.headers['Content-Disposition'] = f'attachment; filename={export_filename(kind, day)}'
    current_app.logger.info('%s export for %s', kind, day.isoformat())
    return resp


@rpt_bp.route('/ledger', methods=['GET', 'HEAD'])
def list_ledger():
    day = _report_day()
    _, _, entries = _day_snapshot(day)
    method = (request.args.get('method') or '').strip().lower()
    if method:
        entries = [e for e in entries if (e.method or '').lower() == method]
    limit, offset = request_pagination()
    page = paginate(entries, limit, offset)
    latest_ts = latest_timestamp(e.timestamp for e in entries)
    resp, etag = make_cached_list_response(
        [_entry_json(e) for e in page], len(entries), limit, offset, latest_ts,
        etag_extra=f'{day.isoformat()}|{method}',
        summary=summarize_payment_log(entries).to_dict(),
    )
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@rpt_bp.get('/reconciliation')
def reconciliation():
    """Ticket amounts against the payment log, for one day or (no date) all time."""
    day = _report_day(optional=True)
    session = get_db()
    if day is None:
        entries = session.execute(select(PaymentLogEntry).order_by(PaymentLogEntry.id.asc())).scalars().all()
        tickets = session.execute(
            select(RepairTicket).where(or_(
                RepairTicket.payment_status != PaymentStatus.UNPAID,
                RepairTicket.ticket_id.in_(sorted({e.ticket_id for e in entries})),
            ))
        ).scalars().all()
    else:
        handovered, _, entries = _day_snapshot(day)
        tickets = _tickets_for(entries, handovered)
    rows = reconcile(tickets, entries)
    return {
        'date': day.isoformat() if day else None,
        'checked_tickets': len(tickets),
        'ledger_entries': len(entries),
        'discrepancies': rows,
        'balanced': not rows,
    }
