from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt
from frontdesk import get_db
from frontdesk.models.audit import AuditLog

DEFAULT_ACTOR = 'Front Desk'


def current_actor() -> str:
    """'admin' when the request carries a capability token, else the desk operator."""
    try:
        claims = get_jwt()
    except RuntimeError:
        # token not verified for this request
        return DEFAULT_ACTOR
    return claims.get('sub') or DEFAULT_ACTOR


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None,
              meta: Optional[Dict[str, Any]] = None, actor: Optional[str] = None):
    """Add an audit row to the current session.

    Parameters:
      action: short action code e.g. TICKET.CREATE, TICKET.HANDOVER
      entity: optional entity name (RepairTicket, ...)
      entity_id: the ticket_id or other public key
      meta: JSON-safe dict (shallow copied)
    No commit here; the caller's transaction boundary controls durability.
    """
    row = AuditLog(
        actor=actor or current_actor(),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(row)
    return row
