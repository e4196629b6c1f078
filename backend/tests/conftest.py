import os, sys, pytest
# Ensure the backend directory is on path so 'frontdesk' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from datetime import datetime, timezone
from decimal import Decimal
from frontdesk import create_app, get_db
from frontdesk.models import Base, RepairTicket, RepairStatus, PaymentStatus, Priority

ADMIN_PASSWORD = 'desk-secret'

INTAKE = {
    'customer_name': 'Ravi Kumar',
    'customer_mobile': '9876543210',
    'device_brand': 'Samsung',
    'device_model': 'Galaxy A52',
    'device_problem': 'Screen cracked',
    'estimated_cost': 1500,
}


@pytest.fixture()
def app_instance():
    # Fresh in-memory database and admin gate per test
    app = create_app({
        'DATABASE_URL': 'sqlite+pysqlite:///:memory:',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'TESTING': True,
    })
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance


@pytest.fixture()
def register(client):
    """POST an intake form (defaults overridable) and return the created ticket JSON."""
    def _register(**overrides):
        resp = client.post('/tickets', json={**INTAKE, **overrides})
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _register


@pytest.fixture()
def finished_ticket(client, register):
    """A ticket taken through start and complete, i.e. awaiting payment."""
    def _finished(**overrides):
        t = register(**overrides)
        assert client.post(f"/tickets/{t['ticket_id']}/start").status_code == 200
        resp = client.post(f"/tickets/{t['ticket_id']}/complete", json={'service_cost': 300, 'total_parts_cost': 200})
        assert resp.status_code == 200
        return resp.get_json()
    return _finished


def make_ticket(**fields):
    """Transient RepairTicket for pure-function tests (no session involved)."""
    base = dict(
        ticket_id='251019101',
        customer_name='Asha',
        customer_mobile='9123456789',
        device_brand='Apple',
        device_model='iPhone 12',
        device_problem='Battery drains fast',
        status=RepairStatus.NOT_STARTED,
        payment_status=PaymentStatus.UNPAID,
        priority=Priority.NORMAL,
        estimated_cost=Decimal('500'),
        unrepairable=False,
        handover_completed=False,
        split_payments=[],
        parts_used=[],
        created_at=datetime(2025, 10, 19, 6, 0, tzinfo=timezone.utc),
    )
    base.update(fields)
    return RepairTicket(**base)
