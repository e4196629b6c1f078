from __future__ import annotations
from flask import Blueprint, request, abort, current_app, make_response
from sqlalchemy import select
from frontdesk import get_db
from frontdesk.decorators.audit import audit_log
from frontdesk.models.base import utcnow, iso
from frontdesk.models.payment_log import PaymentLogEntry
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus, PaymentStatus
from frontdesk.routes.tickets import ticket_json, load_ticket, transition, diff_prefetch
from frontdesk.services.lifecycle import Bucket, ACTIVE_BUCKETS, categorize, assert_in_bucket
from frontdesk.services.messaging import build_notification, log_notification
from frontdesk.services.payments import collect_payment
from frontdesk.services.registry_filter import count_created_today
from frontdesk.services.revenue import summarize_payment_log
from frontdesk.utils.listing import (
    compute_etag, handle_conditional, latest_timestamp, make_cached_list_response, paginate,
    request_pagination, canonicalize_timestamp, http_date,
)
from frontdesk.utils.timeutil import shop_tz, local_day_window, local_today, parse_timestamp
from frontdesk.utils.validation import optional_text

desk_bp = Blueprint('frontdesk', __name__)


def _all_tickets():
    return get_db().execute(select(RepairTicket).order_by(RepairTicket.created_at.desc(), RepairTicket.id.desc())).scalars().all()


@desk_bp.get('/dashboard')
def dashboard():
    """Active buckets plus today's headline numbers (revenue from the payment log)."""
    session = get_db()
    now, tz = utcnow(), shop_tz()
    tickets = _all_tickets()
    buckets = categorize(tickets)
    start, end = local_day_window(local_today(now, tz), tz)
    entries = session.execute(
        select(PaymentLogEntry).where(PaymentLogEntry.timestamp >= start, PaymentLogEntry.timestamp < end)
    ).scalars().all()
    ledger = summarize_payment_log(entries)
    latest_ts = latest_timestamp([t.updated_at for t in tickets] + [e.timestamp for e in entries])
    etag = compute_etag(
        [t.id for b in ACTIVE_BUCKETS for t in buckets[b]], len(tickets), 0, 0,
        iso(canonicalize_timestamp(latest_ts)) if latest_ts else '', str(ledger.entry_count),
    )
    cond = handle_conditional(etag, latest_ts, modified_since=False)
    if cond:
        return cond
    body = {
        'buckets': {b.value: [ticket_json(t) for t in buckets[b]] for b in ACTIVE_BUCKETS},
        'counts': {b.value: len(buckets[b]) for b in ACTIVE_BUCKETS},
        'stats': {
            'registered_today': count_created_today(tickets, now, tz),
            'revenue_today': ledger.to_dict()['total_amount'],
            'payments_today': ledger.payment_count,
        },
        'generated_at': iso(now),
    }
    resp = make_response(body)
    resp.headers['ETag'] = etag
    if latest_ts:
        lt = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = http_date(lt)
        resp.headers['X-Last-Modified-ISO'] = iso(lt)
    return resp


@desk_bp.get('/changes')
def changes():
    """Tickets updated strictly after `since`; poll with the returned cursor."""
    since = parse_timestamp(request.args.get('since'))
    if since is None:
        abort(400, description='since must be an ISO-8601 timestamp')
    limit, offset = request_pagination()
    rows = get_db().execute(
        select(RepairTicket).where(RepairTicket.updated_at > since).order_by(RepairTicket.updated_at.asc(), RepairTicket.id.asc())
    ).scalars().all()
    page = paginate(rows, limit, offset)
    latest_ts = latest_timestamp(t.updated_at for t in rows)
    resp, etag = make_cached_list_response(
        [ticket_json(t) for t in page], len(rows), limit, offset, latest_ts,
        etag_extra=iso(since), cursor=iso(latest_ts) if latest_ts else iso(since),
    )
    cond = handle_conditional(etag, latest_ts, modified_since=False)
    if cond:
        return cond
    return resp


@desk_bp.get('/online-payments/unseen')
def unseen_online_payments():
    """Online payments not yet announced at the desk; each is returned once."""
    session = get_db()
    rows = session.execute(
        select(RepairTicket)
        .where(RepairTicket.payment_status == PaymentStatus.PAID_ONLINE, RepairTicket.notification_shown.is_(False))
        .order_by(RepairTicket.online_paid_at.asc(), RepairTicket.id.asc())
    ).scalars().all()
    for t in rows:
        t.notification_shown = True
    body = [
        {'ticket_id': t.ticket_id, 'customer_name': t.customer_name, 'amount': float(t.charge_amount),
         'message': f'Online payment received for {t.ticket_id}!'}
        for t in rows
    ]
    session.commit()
    return {'data': body}


@desk_bp.post('/tickets/<ticket_id>/handover')
@audit_log('TICKET.HANDOVER', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch)
def handover(ticket_id: str):
    session = get_db()
    t = load_ticket(ticket_id)
    assert_in_bucket(t, Bucket.READY_FOR_HANDOVER)
    transition(t, RepairStatus.HANDED_OVER)
    t.handover_date = t.updated_at
    t.handover_completed = True
    session.commit()
    current_app.logger.info('ticket %s handed over', t.ticket_id)
    return ticket_json(t)


@desk_bp.post('/tickets/<ticket_id>/payment')
@audit_log('TICKET.PAYMENT', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status', 'payment_status'], pre_fetch=diff_prefetch, meta_keys=['final_amount', 'payment_method'])
def payment(ticket_id: str):
    t = load_ticket(ticket_id)
    entries = collect_payment(get_db(), t, request.get_json(silent=True) or {}, utcnow())
    body = ticket_json(t)
    body['payment_log'] = [{'id': e.id, 'amount': float(e.amount), 'method': e.method, 'type': e.type.value} for e in entries]
    return body


@desk_bp.post('/tickets/<ticket_id>/return')
@audit_log('TICKET.RETURN', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch, meta_keys=['return_reason'])
def return_device(ticket_id: str):
    """Device goes back unrepaired; it stays on the desk until the customer collects it."""
    session = get_db()
    data = request.get_json(silent=True) or {}
    t = load_ticket(ticket_id)
    assert_in_bucket(t, Bucket.RETURN_PENDING)
    transition(t, RepairStatus.RETURNED)
    t.return_date = t.updated_at
    t.return_reason = optional_text(data, 'return_reason', max_len=255) or t.return_reason or 'Cannot be repaired'
    t.return_details = optional_text(data, 'return_details') or t.return_details
    session.commit()
    return ticket_json(t)


@desk_bp.post('/tickets/<ticket_id>/pickup')
@audit_log('TICKET.PICKUP', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch)
def pickup(ticket_id: str):
    session = get_db()
    t = load_ticket(ticket_id)
    assert_in_bucket(t, Bucket.RETURN_PENDING)
    transition(t, RepairStatus.PICKED_UP)
    t.customer_pickup_date = t.updated_at
    if t.return_date is None:
        t.return_date = t.updated_at
    t.handover_completed = True
    session.commit()
    current_app.logger.info('ticket %s collected by customer', t.ticket_id)
    return ticket_json(t)


@desk_bp.post('/tickets/<ticket_id>/notify')
def notify(ticket_id: str):
    """WhatsApp deep link for a payment or return message; the send itself happens on the operator's phone."""
    session = get_db()
    data = request.get_json(silent=True) or {}
    t = load_ticket(ticket_id)
    message_type = (data.get('message_type') or 'payment').strip().lower()
    language = (data.get('language') or 'english').strip().lower()
    link = build_notification(t, message_type, language, current_app.config)
    log_notification(session, t, message_type, language, utcnow())
    session.commit()
    return {'ticket_id': t.ticket_id, 'message_type': message_type, 'language': language, **link}
