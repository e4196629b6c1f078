from sqlalchemy import select
from frontdesk import get_db
from frontdesk.models.audit import AuditLog
from conftest import ADMIN_PASSWORD


def _token(client, ticket_id, password=ADMIN_PASSWORD):
    resp = client.post('/admin/verify', json={'password': password, 'ticket_id': ticket_id})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['access_token']


def test_registry_list_with_stats_and_filters(client, register):
    a = register(customer_name='Anil', priority='High')
    b = register(customer_name='Bina', device_brand='Xiaomi')
    body = client.get('/registry/tickets').get_json()
    assert body['stats'] == {'total_registered': 2, 'registered_today': 2, 'filtered': 2}
    assert body['pagination']['total'] == 2
    # newest first by default
    assert [r['ticket_id'] for r in body['data']] == [b['ticket_id'], a['ticket_id']]
    body = client.get('/registry/tickets?priority=High&date_range=today').get_json()
    assert [r['ticket_id'] for r in body['data']] == [a['ticket_id']]
    assert body['stats']['filtered'] == 1
    body = client.get('/registry/tickets?search=xiao').get_json()
    assert [r['ticket_id'] for r in body['data']] == [b['ticket_id']]
    body = client.get('/registry/tickets?sort=customer_name&limit=1').get_json()
    assert [r['customer_name'] for r in body['data']] == ['Anil']
    assert body['pagination'] == {'total': 2, 'limit': 1, 'offset': 0, 'returned': 1}


def test_registry_bad_args(client):
    assert client.get('/registry/tickets?date_range=decade').status_code == 422
    assert client.get('/registry/tickets?sort=password').status_code == 400
    assert client.get('/registry/tickets?limit=abc').status_code == 400


def test_registry_export(client, register):
    resp = client.get('/registry/export.csv')
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'No data to export'
    t = register()
    resp = client.get('/registry/export.csv')
    assert resp.status_code == 200
    assert resp.headers['Content-Type'].startswith('text/csv')
    assert 'attachment; filename=device_registry_' in resp.headers['Content-Disposition']
    lines = resp.get_data(as_text=True).splitlines()
    assert len(lines) == 2
    assert lines[1].startswith(f'"{t["ticket_id"]}"')


def test_delete_requires_token(client, register):
    tid = register()['ticket_id']
    resp = client.delete(f'/registry/tickets/{tid}')
    assert resp.status_code == 401
    assert resp.get_json()['error']['status'] == 401


def test_delete_with_capability_token_is_single_use(client, register, app_instance):
    tid = register(customer_name='Deepa')['ticket_id']
    token = _token(client, tid)
    headers = {'Authorization': f'Bearer {token}'}
    resp = client.delete(f'/registry/tickets/{tid}', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json() == {'deleted': True, 'ticket_id': tid, 'customer_name': 'Deepa', 'status': 'Repair Not Started'}
    assert client.get(f'/tickets/{tid}').status_code == 404
    # replay of the same token is refused
    again = client.delete(f'/registry/tickets/{tid}', headers=headers)
    assert again.status_code == 401
    with app_instance.app_context():
        row = get_db().execute(select(AuditLog).where(AuditLog.action == 'TICKET.DELETE')).scalar_one()
        assert row.entity_id == tid
        assert row.actor == 'admin'
        assert row.meta == {'customer_name': 'Deepa', 'status': 'Repair Not Started'}


def test_token_bound_to_other_ticket_is_forbidden(client, register):
    first = register()['ticket_id']
    second = register(customer_mobile='9000000003')['ticket_id']
    token = _token(client, first)
    resp = client.delete(f'/registry/tickets/{second}', headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code == 403
    assert client.get(f'/tickets/{second}').status_code == 200
    # the session for the first ticket is still usable
    assert client.delete(f'/registry/tickets/{first}', headers={'Authorization': f'Bearer {token}'}).status_code == 200


def test_logout_revokes_token(client, register):
    tid = register()['ticket_id']
    token = _token(client, tid)
    headers = {'Authorization': f'Bearer {token}'}
    assert client.post('/admin/logout', headers=headers).get_json() == {'revoked': True}
    assert client.delete(f'/registry/tickets/{tid}', headers=headers).status_code == 401
    assert client.get(f'/tickets/{tid}').status_code == 200


def test_delete_invalidates_cached_registry(client, register):
    keep = register(customer_name='Esha')['ticket_id']
    gone = register(customer_name='Farid')['ticket_id']
    first = client.get('/registry/tickets')
    assert {r['ticket_id'] for r in first.get_json()['data']} == {keep, gone}
    token = _token(client, gone)
    assert client.delete(f'/registry/tickets/{gone}', headers={'Authorization': f'Bearer {token}'}).status_code == 200
    # the survivor's updated_at is still the newest, yet the list changed
    for headers in ({'If-Modified-Since': first.headers['Last-Modified']}, {'If-None-Match': first.headers['ETag']}):
        resp = client.get('/registry/tickets', headers=headers)
        assert resp.status_code == 200
        assert [r['ticket_id'] for r in resp.get_json()['data']] == [keep]
