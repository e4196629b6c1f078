from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request, get_jwt
from frontdesk.services.admin_gate import DELETE_SCOPE


def require_admin_capability(scope: str = DELETE_SCOPE, target_arg: str = 'ticket_id'):
    """Require a live admin capability token for `scope` bound to the view's target."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            claims = get_jwt()
            if claims.get('scope') != scope:
                abort(403, description='Token does not grant this action')
            if str(claims.get('target')) != str(kwargs.get(target_arg)):
                abort(403, description='Token is bound to a different ticket')
            return fn(*args, **kwargs)
        return wrapper
    return outer
