"""List response helpers: in-memory pagination plus ETag / Last-Modified validators.

Registry and dashboard views filter in memory, so pagination slices a list
rather than a query. Validators let a polling client skip unchanged payloads
and detect out-of-order responses (compare `X-Last-Modified-ISO`).
"""
from __future__ import annotations
import hashlib
from datetime import datetime, timedelta
from email.utils import parsedate_to_datetime, format_datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from flask import request, abort, make_response, current_app

from frontdesk.config.settings import normalize_pagination
from frontdesk.models.base import as_utc

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC tz-aware timestamp truncated to whole seconds."""
    return as_utc(dt).replace(microsecond=0)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')


def http_date(dt: datetime) -> str:
    return format_datetime(dt, usegmt=True)


def request_pagination() -> Tuple[int, int]:
    cfg = current_app.config
    try:
        return normalize_pagination(
            request.args.get('limit'), request.args.get('offset'),
            default_limit=cfg.get('PAGE_DEFAULT_LIMIT', 50), max_limit=cfg.get('PAGE_MAX_LIMIT', 500),
        )
    except ValueError as e:
        abort(400, description=str(e))


def paginate(rows: Sequence, limit: int, offset: int) -> List:
    return list(rows[offset:offset + limit])


def latest_timestamp(stamps: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [as_utc(s) for s in stamps if s is not None]
    return max(present) if present else None


def compute_etag(ids: Iterable, total: int, limit: int, offset: int, latest_iso: Optional[str] = '', extra: str = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_iso or ''}|{extra}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def build_list_payload(rows: list, total: int, limit: int, offset: int, **extra):
    payload = {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows),
        },
    }
    payload.update(extra)
    return payload


def _set_validators(resp, etag: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest_ts:
        latest_c = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = http_date(latest_c)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest_c)
    return resp


def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None, etag_extra: str = '', **extra):
    """Build the JSON list response; returns (response, etag).

    `etag_extra` folds request-specific inputs (filters) into the ETag so two
    different filters over the same rows never share a validator.
    """
    ids = [r.get('id') for r in rows]
    latest_iso = _iso(canonicalize_timestamp(latest_ts)) if latest_ts else ''
    etag = compute_etag(ids, total, limit, offset, latest_iso, etag_extra)
    resp = make_response(build_list_payload(rows, total, limit, offset, **extra))
    return _set_validators(resp, etag, latest_ts), etag


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    try:
        return as_utc(datetime.fromisoformat(header_val.replace('Z', '+00:00')))
    except ValueError:
        pass
    try:
        return as_utc(parsedate_to_datetime(header_val))
    except (TypeError, ValueError):
        return None


def handle_conditional(etag_value: str, latest_ts: Optional[datetime], modified_since: bool = True):
    """Return a 304 response if the client's validators still match, else None.

    If-None-Match takes precedence over If-Modified-Since. Views whose rows can
    be deleted pass `modified_since=False`: a removal leaves the newest
    timestamp unchanged, so only the ETag can tell the lists apart.
    """
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') == etag_value:
            return _set_validators(make_response('', 304), etag_value, latest_ts)
        return None
    if not modified_since:
        return None
    ims = _parse_if_modified_since(request.headers.get('If-Modified-Since'))
    if ims and latest_ts:
        if canonicalize_timestamp(latest_ts) <= canonicalize_timestamp(ims) + TIMESTAMP_TOLERANCE:
            return _set_validators(make_response('', 304), etag_value, latest_ts)
    return None


__all__ = [
    'canonicalize_timestamp', 'http_date', 'request_pagination', 'paginate', 'latest_timestamp',
    'compute_etag', 'build_list_payload', 'make_cached_list_response', 'handle_conditional',
]
