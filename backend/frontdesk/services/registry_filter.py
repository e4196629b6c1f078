"""Registry view filtering over an in-memory ticket list.

Date presets are resolved against local wall-clock midnight in the shop
timezone and returned as half-open UTC windows `[start, end)`.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from frontdesk.errors import UnknownStatusError, ValidationError
from frontdesk.models.base import as_utc
from frontdesk.models.repair_ticket import RepairTicket, Priority
from frontdesk.utils.timeutil import local_day_window, local_midnight, local_today, parse_day
from frontdesk.utils.validation import parse_enum

DATE_PRESETS = ('all', 'today', 'yesterday', 'week', 'month', 'custom')
WEEK_DAYS_BACK = 7

Window = Tuple[datetime, datetime]


@dataclass(frozen=True)
class RegistryFilter:
    date_range: str = 'all'
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    priority: Optional[Priority] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping[str, str]) -> 'RegistryFilter':
        date_range = (args.get('date_range') or 'all').strip().lower()
        if date_range not in DATE_PRESETS:
            raise ValidationError(f'date_range must be one of {", ".join(DATE_PRESETS)}')
        start_raw, end_raw = args.get('start_date'), args.get('end_date')
        start, end = parse_day(start_raw), parse_day(end_raw)
        if (start_raw and start is None) or (end_raw and end is None):
            raise ValidationError('start_date/end_date must be YYYY-MM-DD')
        status = (args.get('status') or '').strip().lower()
        priority_raw = (args.get('priority') or '').strip()
        priority = None
        if priority_raw and priority_raw.lower() != 'all':
            priority = parse_enum(Priority, priority_raw, 'priority')
        search = (args.get('search') or args.get('q') or '').strip().lower()
        return cls(
            date_range=date_range,
            start_date=start,
            end_date=end,
            status=status if status and status != 'all' else None,
            priority=priority,
            search=search or None,
        )

    def cache_key(self) -> str:
        return '|'.join(str(v) if v is not None else '' for v in (
            self.date_range, self.start_date, self.end_date, self.status,
            self.priority.value if self.priority else None, self.search,
        ))


def resolve_date_window(preset: str, now: datetime, tz: ZoneInfo,
                        start: Optional[date] = None, end: Optional[date] = None) -> Optional[Window]:
    """UTC `[start, end)` for a preset, or None when no date filtering applies.

    `custom` includes the whole end day and needs both bounds; with either
    missing the filter is skipped.
    """
    today = local_today(now, tz)
    if preset == 'all':
        return None
    if preset == 'today':
        return local_day_window(today, tz)
    if preset == 'yesterday':
        return local_day_window(today - timedelta(days=1), tz)
    if preset == 'week':
        lo = local_midnight(today - timedelta(days=WEEK_DAYS_BACK), tz)
        hi = local_midnight(today + timedelta(days=1), tz)
        return as_utc(lo), as_utc(hi)
    if preset == 'month':
        first = today.replace(day=1)
        nxt = (first + timedelta(days=32)).replace(day=1)
        return as_utc(local_midnight(first, tz)), as_utc(local_midnight(nxt, tz))
    if preset == 'custom':
        if not (start and end):
            return None
        return as_utc(local_midnight(start, tz)), as_utc(local_midnight(end + timedelta(days=1), tz))
    raise ValidationError(f'Unknown date_range {preset!r}')


def in_window(ts: Optional[datetime], window: Window) -> bool:
    if ts is None:
        return False
    ts = as_utc(ts)
    return window[0] <= ts < window[1]


def _status_text(ticket: RepairTicket) -> str:
    return (getattr(ticket.status, 'value', ticket.status) or '').lower()


def _search_fields(ticket: RepairTicket):
    return (
        ticket.ticket_id, ticket.customer_name, ticket.customer_mobile,
        ticket.device_brand, ticket.device_model, ticket.device_problem,
    )


def matches(ticket: RepairTicket, flt: RegistryFilter, window: Optional[Window]) -> bool:
    if window is not None and not in_window(ticket.created_at, window):
        return False
    if flt.status and flt.status not in _status_text(ticket):
        return False
    if flt.priority is not None:
        try:
            if Priority.parse(ticket.priority) is not flt.priority:
                return False
        except UnknownStatusError:
            return False
    if flt.search:
        if not any(flt.search in (f or '').lower() for f in _search_fields(ticket)):
            return False
    return True


def apply_registry_filter(tickets: Iterable[RepairTicket], flt: RegistryFilter, now: datetime, tz: ZoneInfo) -> List[RepairTicket]:
    """Filtered subset in input order."""
    window = resolve_date_window(flt.date_range, now, tz, flt.start_date, flt.end_date)
    return [t for t in tickets if matches(t, flt, window)]


def count_created_today(tickets: Iterable[RepairTicket], now: datetime, tz: ZoneInfo) -> int:
    window = local_day_window(local_today(now, tz), tz)
    return sum(1 for t in tickets if in_window(t.created_at, window))


__all__ = [
    'RegistryFilter', 'DATE_PRESETS', 'resolve_date_window', 'apply_registry_filter',
    'count_created_today', 'in_window', 'matches',
]
