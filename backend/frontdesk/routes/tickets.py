from __future__ import annotations
from flask import Blueprint, request, abort, current_app, make_response, jsonify
from sqlalchemy import select
from frontdesk import get_db
from frontdesk.decorators.audit import audit_log
from frontdesk.errors import ValidationError
from frontdesk.models.base import utcnow, iso
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus
from frontdesk.services.intake import register_ticket
from frontdesk.services.lifecycle import REPAIR_FSM, classify
from frontdesk.services.payments import record_online_payment
from frontdesk.services.receipts import render_receipt
from frontdesk.utils.listing import compute_etag, handle_conditional, canonicalize_timestamp, http_date
from frontdesk.utils.timeutil import shop_tz
from frontdesk.utils.validation import optional_text, parse_amount

tickets_bp = Blueprint('tickets', __name__)


def _money(v):
    return float(v) if v is not None else None


def ticket_json(t: RepairTicket):
    return {
        'id': t.id,
        'ticket_id': t.ticket_id,
        'customer_name': t.customer_name,
        'customer_mobile': t.customer_mobile,
        'customer_email': t.customer_email,
        'customer_address': t.customer_address,
        'device_brand': t.device_brand,
        'device_model': t.device_model,
        'device_problem': t.device_problem,
        'priority': getattr(t.priority, 'value', t.priority),
        'repair_type': t.repair_type,
        'estimated_cost': _money(t.estimated_cost),
        'final_amount': _money(t.final_amount),
        'service_cost': _money(t.service_cost),
        'total_parts_cost': _money(t.total_parts_cost),
        'parts_used': list(t.parts_used or []),
        'payment_status': getattr(t.payment_status, 'value', t.payment_status),
        'payment_method': getattr(t.payment_method, 'value', t.payment_method),
        'split_payments': list(t.split_payments or []),
        'payment_notes': t.payment_notes,
        'status': getattr(t.status, 'value', t.status),
        'bucket': classify(t).value,
        'unrepairable': bool(t.unrepairable),
        'handover_completed': bool(t.handover_completed),
        'return_reason': t.return_reason,
        'return_details': t.return_details,
        'created_at': iso(t.created_at),
        'updated_at': iso(t.updated_at),
        'completed_at': iso(t.completed_at),
        'online_paid_at': iso(t.online_paid_at),
        'payment_collected_date': iso(t.payment_collected_date),
        'handover_date': iso(t.handover_date),
        'return_date': iso(t.return_date),
        'customer_pickup_date': iso(t.customer_pickup_date),
    }


def load_ticket(ticket_id: str) -> RepairTicket:
    t = get_db().execute(select(RepairTicket).where(RepairTicket.ticket_id == ticket_id)).scalar_one_or_none()
    if not t:
        abort(404, description=f'Ticket {ticket_id} not found')
    return t


def prefetch_ticket(ticket_id: str):
    t = get_db().execute(select(RepairTicket).where(RepairTicket.ticket_id == ticket_id)).scalar_one_or_none()
    if not t:
        return {}
    return {'status': t.status.value, 'payment_status': t.payment_status.value}


def diff_prefetch(a, kw):
    return prefetch_ticket(kw.get('ticket_id'))


def transition(t: RepairTicket, target: RepairStatus):
    REPAIR_FSM.assert_can_transition(RepairStatus.parse(t.status), target)
    t.status = target
    t.updated_at = utcnow()


@tickets_bp.post('')
@audit_log('TICKET.CREATE', entity='RepairTicket', entity_id_key='ticket_id', meta_keys=['customer_name', 'priority', 'status'])
def create_ticket():
    t = register_ticket(get_db(), request.get_json(silent=True) or {}, utcnow(), shop_tz())
    current_app.logger.info('ticket %s registered', t.ticket_id)
    return ticket_json(t), 201


@tickets_bp.get('/search')
def search_tickets():
    """Exact ticket id, exact mobile, or customer name prefix; first match order kept."""
    term = (request.args.get('q') or '').strip()
    if not term:
        abort(400, description='Please enter a search term')
    session = get_db()
    queries = [
        select(RepairTicket).where(RepairTicket.ticket_id == term),
        select(RepairTicket).where(RepairTicket.customer_mobile == term),
        select(RepairTicket).where(RepairTicket.customer_name.ilike(f'{term}%')).order_by(RepairTicket.customer_name),
    ]
    found, seen = [], set()
    for stmt in queries:
        for t in session.execute(stmt).scalars():
            if t.id not in seen:
                seen.add(t.id)
                found.append(ticket_json(t))
    return {'data': found, 'query': term}


@tickets_bp.route('/<ticket_id>', methods=['GET', 'HEAD'])
def get_ticket(ticket_id: str):
    t = load_ticket(ticket_id)
    latest_ts = t.updated_at
    etag = compute_etag([t.id], 1, 1, 0, iso(latest_ts) or '')
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    resp = make_response(jsonify(ticket_json(t)))
    resp.headers['ETag'] = etag
    if latest_ts:
        lt = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = http_date(lt)
        resp.headers['X-Last-Modified-ISO'] = iso(lt)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@tickets_bp.post('/<ticket_id>/start')
@audit_log('TICKET.START', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch)
def start_ticket(ticket_id: str):
    session = get_db()
    t = load_ticket(ticket_id)
    transition(t, RepairStatus.IN_PROGRESS)
    session.commit()
    return ticket_json(t)


@tickets_bp.post('/<ticket_id>/complete')
@audit_log('TICKET.COMPLETE', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch)
def complete_ticket(ticket_id: str):
    """Repair finished. `ready: true` marks it Ready for Pickup instead of Completed."""
    session = get_db()
    data = request.get_json(silent=True) or {}
    t = load_ticket(ticket_id)
    service_cost = parse_amount(data['service_cost'], 'service_cost', allow_zero=True) if data.get('service_cost') is not None else None
    parts_cost = parse_amount(data['total_parts_cost'], 'total_parts_cost', allow_zero=True) if data.get('total_parts_cost') is not None else None
    parts = data.get('parts_used')
    if parts is not None and not isinstance(parts, list):
        raise ValidationError('parts_used must be a list')
    transition(t, RepairStatus.READY if data.get('ready') else RepairStatus.COMPLETED)
    t.completed_at = utcnow()
    t.repair_type = optional_text(data, 'repair_type', max_len=40) or t.repair_type
    if service_cost is not None:
        t.service_cost = service_cost
    if parts_cost is not None:
        t.total_parts_cost = parts_cost
    if parts is not None:
        t.parts_used = [str(p) for p in parts]
    session.commit()
    return ticket_json(t)


@tickets_bp.post('/<ticket_id>/unrepairable')
@audit_log('TICKET.UNREPAIRABLE', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['status'], pre_fetch=diff_prefetch, meta_keys=['return_reason'])
def mark_unrepairable(ticket_id: str):
    session = get_db()
    data = request.get_json(silent=True) or {}
    t = load_ticket(ticket_id)
    transition(t, RepairStatus.UNREPAIRABLE)
    t.unrepairable = True
    t.repair_type = 'unrepairable'
    t.return_reason = optional_text(data, 'return_reason', max_len=255) or 'Cannot be repaired'
    t.return_details = optional_text(data, 'return_details')
    session.commit()
    return ticket_json(t)


@tickets_bp.post('/<ticket_id>/online-payment')
@audit_log('TICKET.ONLINE_PAYMENT', entity='RepairTicket', entity_id_key='ticket_id', diff_keys=['payment_status'], pre_fetch=diff_prefetch, meta_keys=['final_amount', 'payment_method'])
def online_payment(ticket_id: str):
    t = load_ticket(ticket_id)
    record_online_payment(get_db(), t, request.get_json(silent=True) or {}, utcnow())
    return ticket_json(t)


@tickets_bp.get('/<ticket_id>/receipt')
def receipt(ticket_id: str):
    t = load_ticket(ticket_id)
    html = render_receipt(t, current_app.config, utcnow(), shop_tz())
    resp = make_response(html)
    resp.headers['Content-Type'] = 'text/html; charset=utf-8'
    return resp
