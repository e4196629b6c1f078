from __future__ import annotations
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_TZ = 'Asia/Kolkata'


def shop_tz() -> ZoneInfo:
    name = current_app.config.get('SHOP_TIMEZONE', DEFAULT_TZ) if has_app_context() else DEFAULT_TZ
    return ZoneInfo(name)


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def local_day_window(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Half-open [midnight, next midnight) for `day` in `tz`, as UTC datetimes."""
    start = local_midnight(day, tz)
    end = local_midnight(day + timedelta(days=1), tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_today(now: datetime, tz: ZoneInfo) -> date:
    return now.astimezone(tz).date()


def parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
