from __future__ import annotations
from flask import Blueprint, request, abort, current_app, make_response
from flask_jwt_extended import get_jwt
from sqlalchemy import select
from frontdesk import get_db
from frontdesk.decorators.auth import require_admin_capability
from frontdesk.decorators.audit import audit_log
from frontdesk.models.base import utcnow
from frontdesk.models.repair_ticket import RepairTicket
from frontdesk.routes.tickets import ticket_json, load_ticket
from frontdesk.services.admin_gate import current_gate
from frontdesk.services.exports import registry_csv, export_filename
from frontdesk.services.registry_filter import RegistryFilter, apply_registry_filter, count_created_today
from frontdesk.utils.listing import make_cached_list_response, handle_conditional, paginate, request_pagination, latest_timestamp
from frontdesk.utils.sorting import apply_multi_sort
from frontdesk.utils.timeutil import shop_tz, local_today

registry_bp = Blueprint('registry', __name__)

SORTABLE = {
    'created_at': RepairTicket.created_at,
    'updated_at': RepairTicket.updated_at,
    'customer_name': RepairTicket.customer_name,
    'ticket_id': RepairTicket.ticket_id,
    'status': RepairTicket.status,
    'priority': RepairTicket.priority,
}


def _filtered():
    flt = RegistryFilter.from_args(request.args)
    stmt = apply_multi_sort(select(RepairTicket), request.args.get('sort'), SORTABLE,
                            [RepairTicket.created_at.desc(), RepairTicket.id.desc()])
    tickets = get_db().execute(stmt).scalars().all()
    now, tz = utcnow(), shop_tz()
    return flt, tickets, apply_registry_filter(tickets, flt, now, tz), now, tz


@registry_bp.route('/tickets', methods=['GET', 'HEAD'])
def list_registry():
    flt, tickets, rows, now, tz = _filtered()
    limit, offset = request_pagination()
    page = paginate(rows, limit, offset)
    latest_ts = latest_timestamp(t.updated_at for t in rows)
    resp, etag = make_cached_list_response(
        [ticket_json(t) for t in page], len(rows), limit, offset, latest_ts,
        etag_extra=flt.cache_key() + '|' + (request.args.get('sort') or ''),
        stats={
            'total_registered': len(tickets),
            'registered_today': count_created_today(tickets, now, tz),
            'filtered': len(rows),
        },
    )
    cond = handle_conditional(etag, latest_ts, modified_since=False)
    if cond:
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@registry_bp.get('/export.csv')
def export_registry():
    flt, _, rows, now, tz = _filtered()
    body = registry_csv(rows, tz)
    resp = make_response(body)
    resp.headers['Content-Type'] = 'text/csv; charset=utf-8'
    resp.headers['Content-Disposition'] = f'attachment; filename={export_filename("registry", local_today(now, tz))}'
    current_app.logger.info('registry export: %d rows', len(rows))
    return resp


@registry_bp.delete('/tickets/<ticket_id>')
@require_admin_capability()
@audit_log('TICKET.DELETE', entity='RepairTicket', entity_id_key='ticket_id', meta_keys=['customer_name', 'status'])
def delete_ticket(ticket_id: str):
    """Permanent removal. Needs a capability token from /admin/verify bound to this ticket; one use only."""
    session = get_db()
    t = load_ticket(ticket_id)
    if not current_gate().consume(get_jwt().get('sid'), ticket_id):
        abort(401, description='Admin session expired or already used')
    snapshot = ticket_json(t)
    session.delete(t)
    session.commit()
    current_app.logger.warning('ticket %s permanently deleted', ticket_id)
    return {'deleted': True, 'ticket_id': ticket_id, 'customer_name': snapshot['customer_name'], 'status': snapshot['status']}
