from datetime import datetime, timedelta, timezone
from decimal import Decimal
from frontdesk import get_db
from frontdesk.models.payment_log import PaymentLogEntry, PaymentLogType


def _collect(client, finished_ticket, **payment):
    tid = finished_ticket()['ticket_id']
    resp = client.post(f'/frontdesk/tickets/{tid}/payment', json=payment)
    assert resp.status_code == 200, resp.get_json()
    return tid


def test_daily_report_two_tickets(client, finished_ticket, register):
    _collect(client, finished_ticket, amount=500, method='cash')
    _collect(client, finished_ticket, amount=300, method='upi')
    r = register()['ticket_id']
    client.post(f'/tickets/{r}/start')
    client.post(f'/tickets/{r}/unrepairable')
    client.post(f'/frontdesk/tickets/{r}/return')
    body = client.get('/reports/daily').get_json()
    assert body['revenue']['total_amount'] == 800.0
    assert body['revenue']['cash'] == 500.0
    assert body['revenue']['upi'] == 300.0
    assert body['tickets']['total_revenue'] == 800.0
    assert body['tickets']['average_ticket_value'] == 400.0
    assert body['tickets']['non_repairable_returns'] == 1
    assert body['counts'] == {'handovered': 2, 'returned': 1, 'payments': 2}
    assert body['discrepancies'] == []


def test_daily_report_other_day_is_empty(client, finished_ticket):
    _collect(client, finished_ticket, amount=500, method='cash')
    body = client.get('/reports/daily?date=2001-01-01').get_json()
    assert body['date'] == '2001-01-01'
    assert body['revenue']['total_amount'] == 0
    assert body['handovered'] == []
    assert client.get('/reports/daily?date=yesterday').status_code == 400


def test_split_payment_in_ledger(client, finished_ticket):
    tid = _collect(client, finished_ticket, mode='split', total_amount=500,
                   splits=[{'method': 'cash', 'amount': 300}, {'method': 'card', 'amount': 200}])
    body = client.get('/reports/ledger').get_json()
    assert body['pagination']['total'] == 2
    assert {(e['method'], e['amount'], e['type']) for e in body['data']} == {('cash', 300.0, 'split'), ('card', 200.0, 'split')}
    assert all(e['ticket_id'] == tid and e['split_count'] == 2 for e in body['data'])
    assert body['summary']['total_amount'] == 500.0
    assert body['summary']['payment_count'] == 2
    only_card = client.get('/reports/ledger?method=card').get_json()
    assert [e['amount'] for e in only_card['data']] == [200.0]


def test_daily_exports(client, finished_ticket):
    resp = client.get('/reports/daily/export/full.csv')
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'No data to export'
    _collect(client, finished_ticket, amount=750, method='card')
    for kind in ('handovered', 'payments', 'full'):
        resp = client.get(f'/reports/daily/export/{kind}.csv')
        assert resp.status_code == 200, kind
        assert resp.headers['Content-Type'].startswith('text/csv')
    assert client.get('/reports/daily/export/returned.csv').status_code == 400
    assert client.get('/reports/daily/export/everything.csv').status_code == 404
    full = client.get('/reports/daily/export/full.csv').get_data(as_text=True)
    assert 'DAILY SUMMARY' in full
    assert '"Total Revenue","₹750.00"' in full


def test_reconciliation_flags_ledger_gap(client, finished_ticket, app_instance):
    tid = _collect(client, finished_ticket, amount=500, method='cash')
    body = client.get('/reports/reconciliation').get_json()
    assert body['balanced'] is True
    assert body['date'] is None
    with app_instance.app_context():
        session = get_db()
        session.add(PaymentLogEntry(ticket_id=tid, amount=Decimal('50'), method='cash', type=PaymentLogType.OFFLINE,
                                    timestamp=datetime.now(timezone.utc) - timedelta(seconds=1)))
        session.commit()
    body = client.get('/reports/reconciliation').get_json()
    assert body['balanced'] is False
    assert body['discrepancies'] == [{'ticket_id': tid, 'kind': 'amount_mismatch', 'ticket_amount': 500.0, 'ledger_amount': 550.0}]
    day = client.get('/reports/daily').get_json()
    assert day['discrepancies'][0]['kind'] == 'amount_mismatch'
