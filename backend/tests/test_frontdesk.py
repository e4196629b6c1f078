from sqlalchemy import select
from frontdesk import get_db
from frontdesk.models.notification_log import NotificationLogEntry
from frontdesk.models.payment_log import PaymentLogEntry


def test_dashboard_buckets(client, register, finished_ticket):
    register()
    awaiting = finished_ticket()
    online = finished_ticket(customer_mobile='9000000002')
    client.post(f"/tickets/{online['ticket_id']}/online-payment", json={'amount': 900})
    body = client.get('/frontdesk/dashboard').get_json()
    assert body['counts'] == {'awaiting_payment': 1, 'ready_for_handover': 1, 'return_pending': 0}
    assert body['buckets']['awaiting_payment'][0]['ticket_id'] == awaiting['ticket_id']
    assert body['buckets']['ready_for_handover'][0]['ticket_id'] == online['ticket_id']
    assert body['stats']['registered_today'] == 3
    assert body['stats']['revenue_today'] == 900.0
    assert body['stats']['payments_today'] == 1


def test_single_payment_closes_ticket(client, finished_ticket):
    tid = finished_ticket()['ticket_id']
    resp = client.post(f'/frontdesk/tickets/{tid}/payment', json={'amount': 1450, 'method': 'cash'})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'Payment Collected'
    assert body['bucket'] == 'closed'
    assert body['final_amount'] == 1450.0
    assert body['payment_log'] == [{'id': body['payment_log'][0]['id'], 'amount': 1450.0, 'method': 'cash', 'type': 'single'}]
    dash = client.get('/frontdesk/dashboard').get_json()
    assert dash['counts']['awaiting_payment'] == 0
    assert dash['stats']['revenue_today'] == 1450.0


def test_unbalanced_split_is_rejected_without_write(client, finished_ticket, app_instance):
    tid = finished_ticket()['ticket_id']
    resp = client.post(f'/frontdesk/tickets/{tid}/payment', json={
        'mode': 'split', 'total_amount': 600,
        'splits': [{'method': 'cash', 'amount': 300}, {'method': 'upi', 'amount': 200}],
    })
    assert resp.status_code == 422
    assert resp.get_json()['error']['detail'] == 'Split payments must equal the total amount'
    assert client.get(f'/tickets/{tid}').get_json()['status'] == 'Completed'
    with app_instance.app_context():
        assert get_db().execute(select(PaymentLogEntry)).first() is None


def test_online_payment_then_handover(client, finished_ticket):
    tid = finished_ticket()['ticket_id']
    # handover before payment is refused
    assert client.post(f'/frontdesk/tickets/{tid}/handover').status_code == 409
    body = client.post(f'/tickets/{tid}/online-payment').get_json()
    assert body['payment_status'] == 'paid_online'
    assert body['bucket'] == 'ready_for_handover'
    unseen = client.get('/frontdesk/online-payments/unseen').get_json()['data']
    assert [u['ticket_id'] for u in unseen] == [tid]
    assert unseen[0]['message'] == f'Online payment received for {tid}!'
    # announced once only
    assert client.get('/frontdesk/online-payments/unseen').get_json()['data'] == []
    body = client.post(f'/frontdesk/tickets/{tid}/handover').get_json()
    assert body['status'] == 'Handed Over to Customer'
    assert body['handover_date'] is not None
    assert body['bucket'] == 'closed'


def test_return_and_pickup(client, register):
    tid = register()['ticket_id']
    client.post(f'/tickets/{tid}/start')
    client.post(f'/tickets/{tid}/unrepairable', json={'return_reason': 'Water damage'})
    body = client.post(f'/frontdesk/tickets/{tid}/return').get_json()
    assert body['status'] == 'Returned to Customer'
    assert body['return_reason'] == 'Water damage'
    assert body['bucket'] == 'return_pending'
    body = client.post(f'/frontdesk/tickets/{tid}/pickup').get_json()
    assert body['status'] == 'Customer Picked Up'
    assert body['customer_pickup_date'] is not None
    assert body['bucket'] == 'closed'
    assert client.post(f'/frontdesk/tickets/{tid}/pickup').status_code == 409


def test_notify_builds_link_and_logs(client, finished_ticket, app_instance):
    tid = finished_ticket()['ticket_id']
    resp = client.post(f'/frontdesk/tickets/{tid}/notify', json={'message_type': 'payment', 'language': 'hindi'})
    body = resp.get_json()
    assert resp.status_code == 200
    assert body['phone'] == '919876543210'
    assert body['url'].startswith('https://api.whatsapp.com/send?phone=919876543210&text=')
    assert body['message'].startswith('नमस्ते')
    with app_instance.app_context():
        logs = get_db().execute(select(NotificationLogEntry)).scalars().all()
        assert [(l.ticket_id, l.message_type, l.language, l.channel) for l in logs] == [(tid, 'payment', 'hindi', 'whatsapp')]
    assert client.post(f'/frontdesk/tickets/{tid}/notify', json={'language': 'french'}).status_code == 422


def test_changes_feed(client, register):
    first = client.get('/frontdesk/changes?since=2000-01-01T00:00:00Z').get_json()
    assert first['data'] == []
    t = register()
    body = client.get('/frontdesk/changes?since=2000-01-01T00:00:00Z').get_json()
    assert [r['ticket_id'] for r in body['data']] == [t['ticket_id']]
    cursor = body['cursor']
    assert client.get(f'/frontdesk/changes?since={cursor}').get_json()['data'] == []
    assert client.get('/frontdesk/changes').status_code == 400


def test_malformed_payment_body_is_rejected_without_write(client, finished_ticket, app_instance):
    tid = finished_ticket()['ticket_id']
    bad_bodies = [
        {'mode': 'split', 'total_amount': 500, 'splits': ['cash', 'upi']},
        {'mode': 'split', 'total_amount': 500, 'splits': 'cash'},
        {'mode': 5, 'amount': 500, 'method': 'cash'},
        {'mode': 'single', 'amount': 500, 'method': 'cash', 'notes': ['paid']},
        ['cash', 500],
    ]
    for body in bad_bodies:
        resp = client.post(f'/frontdesk/tickets/{tid}/payment', json=body)
        assert resp.status_code == 422, body
        assert resp.get_json()['error']['status'] == 422
    assert client.get(f'/tickets/{tid}').get_json()['status'] == 'Completed'
    with app_instance.app_context():
        assert get_db().execute(select(PaymentLogEntry)).first() is None
