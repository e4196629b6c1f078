from datetime import datetime, date, timezone
from zoneinfo import ZoneInfo
import pytest
from conftest import make_ticket
from frontdesk.errors import ValidationError
from frontdesk.models.repair_ticket import RepairStatus, Priority
from frontdesk.services.registry_filter import (
    RegistryFilter, resolve_date_window, apply_registry_filter, count_created_today,
)

TZ = ZoneInfo('Asia/Kolkata')
# 19 Oct 2025, 15:00 local
NOW = datetime(2025, 10, 19, 15, 0, tzinfo=TZ).astimezone(timezone.utc)


def _local(*args):
    return datetime(*args, tzinfo=TZ).astimezone(timezone.utc)


def test_today_window_uses_local_midnight():
    midnight = make_ticket(ticket_id='in', created_at=_local(2025, 10, 19, 0, 0, 0))
    late_yesterday = make_ticket(ticket_id='out', created_at=_local(2025, 10, 18, 23, 59, 59))
    rows = apply_registry_filter([midnight, late_yesterday], RegistryFilter(date_range='today'), NOW, TZ)
    assert [t.ticket_id for t in rows] == ['in']
    assert count_created_today([midnight, late_yesterday], NOW, TZ) == 1


def test_yesterday_and_week_and_month():
    start, end = resolve_date_window('yesterday', NOW, TZ)
    assert start == _local(2025, 10, 18)
    assert end == _local(2025, 10, 19)
    start, end = resolve_date_window('week', NOW, TZ)
    assert start == _local(2025, 10, 12)
    assert end == _local(2025, 10, 20)
    start, end = resolve_date_window('month', NOW, TZ)
    assert start == _local(2025, 10, 1)
    assert end == _local(2025, 11, 1)


def test_custom_range_includes_end_day_and_needs_both_bounds():
    start, end = resolve_date_window('custom', NOW, TZ, date(2025, 10, 1), date(2025, 10, 5))
    assert start == _local(2025, 10, 1)
    assert end == _local(2025, 10, 6)
    assert resolve_date_window('custom', NOW, TZ, date(2025, 10, 1), None) is None
    assert resolve_date_window('all', NOW, TZ) is None


def test_status_priority_and_search_filters():
    a = make_ticket(ticket_id='251019111', status=RepairStatus.IN_PROGRESS, priority=Priority.URGENT, device_brand='OnePlus')
    b = make_ticket(ticket_id='251019222', status=RepairStatus.COMPLETED, customer_name='Kiran', device_brand='Nokia')
    c = make_ticket(ticket_id='251019333', status=RepairStatus.READY, customer_mobile='9988776655')
    tickets = [a, b, c]
    flt = RegistryFilter.from_args({'status': 'progress'})
    assert apply_registry_filter(tickets, flt, NOW, TZ) == [a]
    flt = RegistryFilter.from_args({'priority': 'urgent'})
    assert apply_registry_filter(tickets, flt, NOW, TZ) == [a]
    flt = RegistryFilter.from_args({'search': 'KIRAN'})
    assert apply_registry_filter(tickets, flt, NOW, TZ) == [b]
    flt = RegistryFilter.from_args({'q': '998877'})
    assert apply_registry_filter(tickets, flt, NOW, TZ) == [c]
    # 'all' is no filter, order preserved
    flt = RegistryFilter.from_args({'status': 'all', 'priority': 'all', 'date_range': 'all'})
    assert apply_registry_filter(tickets, flt, NOW, TZ) == tickets


def test_window_excludes_tickets_without_created_at():
    t = make_ticket(created_at=None)
    assert apply_registry_filter([t], RegistryFilter(date_range='today'), NOW, TZ) == []
    assert apply_registry_filter([t], RegistryFilter(), NOW, TZ) == [t]


@pytest.mark.parametrize('args', [
    {'date_range': 'fortnight'},
    {'date_range': 'custom', 'start_date': '19-10-2025'},
    {'priority': 'whenever'},
])
def test_bad_filter_args(args):
    with pytest.raises(ValidationError):
        RegistryFilter.from_args(args)
