from sqlalchemy import select
from frontdesk import get_db
from conftest import make_ticket
from frontdesk.models.audit import AuditLog
from frontdesk.models.repair_ticket import RepairTicket, RepairStatus


def test_register_ticket(client, register):
    t = register(priority='urgent', customer_email='ravi@example.com')
    assert len(t['ticket_id']) == 9 and t['ticket_id'].isdigit()
    assert t['status'] == 'Repair Not Started'
    assert t['payment_status'] == 'unpaid'
    assert t['priority'] == 'Urgent'
    assert t['bucket'] == 'in_repair'
    assert t['estimated_cost'] == 1500.0


def test_register_rejects_bad_mobile(client):
    from conftest import INTAKE
    resp = client.post('/tickets', json={**INTAKE, 'customer_mobile': '12345'})
    assert resp.status_code == 422
    body = resp.get_json()
    assert body['error']['detail'] == 'Please enter a valid 10-digit mobile number'


def test_register_requires_fields(client):
    resp = client.post('/tickets', json={'customer_mobile': '9876543210'})
    assert resp.status_code == 422
    assert 'required' in resp.get_json()['error']['detail']


def test_lifecycle_to_awaiting_payment(client, register):
    t = register()
    tid = t['ticket_id']
    resp = client.post(f'/tickets/{tid}/start')
    assert resp.get_json()['status'] == 'In Progress'
    resp = client.post(f'/tickets/{tid}/complete', json={'ready': True, 'service_cost': 500, 'total_parts_cost': 700, 'parts_used': ['Display']})
    body = resp.get_json()
    assert body['status'] == 'Ready for Pickup'
    assert body['bucket'] == 'awaiting_payment'
    assert body['parts_used'] == ['Display']
    assert body['total_parts_cost'] == 700.0


def test_invalid_transition_is_conflict(client, register):
    tid = register()['ticket_id']
    resp = client.post(f'/tickets/{tid}/complete')
    assert resp.status_code == 409
    assert resp.get_json()['error']['title'] == 'Conflict'


def test_unrepairable(client, register):
    tid = register()['ticket_id']
    client.post(f'/tickets/{tid}/start')
    body = client.post(f'/tickets/{tid}/unrepairable', json={'return_details': 'IC failure'}).get_json()
    assert body['status'] == 'Cannot Be Repaired'
    assert body['bucket'] == 'return_pending'
    assert body['return_reason'] == 'Cannot be repaired'
    assert body['unrepairable'] is True


def test_search(client, register):
    a = register(customer_name='Suresh Patel', customer_mobile='9000000011')
    b = register(customer_name='Sunita Rao', customer_mobile='9000000022')
    assert [r['ticket_id'] for r in client.get(f"/tickets/search?q={a['ticket_id']}").get_json()['data']] == [a['ticket_id']]
    assert [r['ticket_id'] for r in client.get('/tickets/search?q=9000000022').get_json()['data']] == [b['ticket_id']]
    names = [r['customer_name'] for r in client.get('/tickets/search?q=su').get_json()['data']]
    assert names == ['Sunita Rao', 'Suresh Patel']
    resp = client.get('/tickets/search?q=%20')
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'Please enter a search term'


def test_get_missing_ticket(client):
    resp = client.get('/tickets/999999999')
    assert resp.status_code == 404
    assert resp.get_json()['error']['status'] == 404


def test_receipt_html(client, register):
    t = register()
    resp = client.get(f"/tickets/{t['ticket_id']}/receipt")
    assert resp.status_code == 200
    assert resp.headers['Content-Type'].startswith('text/html')
    html = resp.get_data(as_text=True)
    assert 'CUSTOMER COPY' in html
    assert f'data-ticket="{t["ticket_id"]}"' in html
    assert 'JsBarcode' in html


def test_commands_are_audited(client, register, app_instance):
    tid = register()['ticket_id']
    client.post(f'/tickets/{tid}/start')
    with app_instance.app_context():
        rows = get_db().execute(select(AuditLog).where(AuditLog.entity_id == tid).order_by(AuditLog.id)).scalars().all()
        assert [r.action for r in rows] == ['TICKET.CREATE', 'TICKET.START']
        assert rows[1].meta['changes']['status'] == {'before': 'Repair Not Started', 'after': 'In Progress'}
        assert rows[0].actor == 'Front Desk'


def test_legacy_status_label_is_stored_canonically(app_context, client):
    session = get_db()
    session.add(make_ticket(ticket_id='251019777', status='Handover Completed'))
    session.commit()
    session.expire_all()
    row = session.execute(select(RepairTicket).where(RepairTicket.ticket_id == '251019777')).scalar_one()
    assert row.status is RepairStatus.HANDED_OVER
    assert client.get('/tickets/251019777').get_json()['status'] == 'Handed Over to Customer'
