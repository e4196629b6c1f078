"""Audit logging decorator for front-desk command handlers.

Usage:

@audit_log('TICKET.HANDOVER', entity='RepairTicket', entity_id_key='ticket_id',
           diff_keys=['status'], pre_fetch=lambda a, kw: snapshot(kw['ticket_id']))
def handover(ticket_id): ...

Parameters:
  action: audit action code (e.g. TICKET.CREATE)
  entity: optional entity label
  entity_id_key: key in the returned JSON whose value becomes entity_id
  entity_id_arg: view argument used for entity_id when the key is absent
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable(data, rv, args, kwargs) -> dict, overrides meta_keys
  diff_keys / pre_fetch: pre_fetch(args, kwargs) returns a before-snapshot; keys
    in diff_keys that changed are recorded under meta['changes']

Only successful responses (status < 400) are audited. The audit row is
committed in its own transaction after the handler's command commit.
"""
from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from frontdesk import get_db
from frontdesk.services.audit import add_audit

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) for dict, (dict, status) and (dict, status, headers) returns."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, getattr(rv, 'status_code', 200)


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs) or {}
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            else:
                meta = {}
            if diff_keys and before:
                changes = {}
                for k in diff_keys:
                    if k in before and k in data and before.get(k) != data.get(k):
                        changes[k] = {'before': before.get(k), 'after': data.get(k)}
                if changes:
                    meta['changes'] = changes
            add_audit(action, entity, entity_id, meta)
            session = get_db()
            try:
                session.commit()
            except SQLAlchemyError:
                # the command itself is already committed
                session.rollback()
                log.exception('audit write failed for %s %s', action, entity_id)
            return rv
        return wrapper
    return outer
