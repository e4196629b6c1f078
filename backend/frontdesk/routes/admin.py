from __future__ import annotations
from datetime import timedelta
from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from frontdesk.routes.tickets import load_ticket
from frontdesk.services.admin_gate import DELETE_SCOPE, current_gate
from frontdesk.services.audit import add_audit
from frontdesk import get_db

admin_bp = Blueprint('admin', __name__)


@admin_bp.post('/verify')
def verify():
    """Check the admin password and issue a single-use delete token for one ticket."""
    data = request.get_json(silent=True) or {}
    ticket_id = str(data.get('ticket_id') or '').strip()
    if not ticket_id:
        abort(400, description='ticket_id required')
    load_ticket(ticket_id)
    gate = current_gate()
    result = gate.verify(data.get('password') or '', ticket_id)
    if not result.ok:
        status = 429 if result.locked_for else 401
        current_app.logger.warning('admin verification failed for ticket %s', ticket_id)
        return {
            'ok': False,
            'message': result.message,
            'attempts_left': result.attempts_left,
            'locked_for': result.locked_for,
        }, status
    token = create_access_token(
        identity='admin',
        additional_claims={'scope': DELETE_SCOPE, 'target': ticket_id, 'sid': result.session_id},
        expires_delta=timedelta(seconds=gate.session_seconds),
    )
    session = get_db()
    add_audit('ADMIN.VERIFY', 'RepairTicket', ticket_id, {'scope': DELETE_SCOPE}, actor='admin')
    session.commit()
    return {'ok': True, 'access_token': token, 'expires_in': gate.session_seconds, 'ticket_id': ticket_id}


@admin_bp.get('/status')
def status():
    return current_gate().status()


@admin_bp.post('/logout')
def logout():
    """Close the session behind a capability token. Expired tokens are accepted so a stale tab can still clean up."""
    header = request.headers.get('Authorization') or ''
    if not header.startswith('Bearer '):
        abort(400, description='Bearer token required')
    try:
        claims = decode_token(header[len('Bearer '):], allow_expired=True)
    except (PyJWTError, JWTExtendedException):
        abort(400, description='Malformed admin token')
    revoked = current_gate().revoke(claims.get('sid'))
    return {'revoked': revoked}
