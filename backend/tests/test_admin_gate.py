import pytest
from werkzeug.security import generate_password_hash
from frontdesk.services.admin_gate import AdminGate


class FakeClock:
    def __init__(self, t=1_000_000.0):
        self.t = t

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def gate(clock):
    return AdminGate(generate_password_hash('s3cret'), max_attempts=3, lockout_seconds=300, session_seconds=600, clock=clock)


def test_three_wrong_passwords_lock_the_gate(gate):
    r1 = gate.verify('nope', 'T1')
    assert not r1.ok and r1.attempts_left == 2
    assert 'Incorrect password. 2 attempt(s) remaining.' == r1.message
    gate.verify('nope', 'T1')
    r3 = gate.verify('nope', 'T1')
    assert not r3.ok
    assert r3.locked_for == 300
    assert 'Locked for 5 minute(s)' in r3.message
    assert gate.status()['locked'] is True
    assert gate.attempts == 0


def test_attempt_during_lockout_is_not_counted(gate, clock):
    for _ in range(3):
        gate.verify('nope', 'T1')
    clock.advance(60)
    r = gate.verify('s3cret', 'T1')
    assert not r.ok
    assert r.message == 'Too many failed attempts. Try again in 4 minute(s).'
    assert gate.attempts == 0
    assert gate.status()['lockout_remaining_seconds'] == 240


def test_lockout_expiry_resets_counter(gate, clock):
    gate.verify('nope', 'T1')
    for _ in range(2):
        gate.verify('nope', 'T1')
    clock.advance(301)
    status = gate.status()
    assert status['locked'] is False
    assert status['attempts'] == 0
    r = gate.verify('nope', 'T1')
    assert r.attempts_left == 2


def test_session_is_single_use_and_bound_to_target(gate):
    r = gate.verify('s3cret', 'T1')
    assert r.ok and r.session_id
    assert gate.is_active(r.session_id)
    assert gate.consume(r.session_id, 'T2') is False
    assert gate.is_active(r.session_id)
    assert gate.consume(r.session_id, 'T1') is True
    assert gate.consume(r.session_id, 'T1') is False
    assert not gate.is_active(r.session_id)


def test_session_expires(gate, clock):
    r = gate.verify('s3cret', 'T1')
    clock.advance(600)
    assert not gate.is_active(r.session_id)
    assert gate.consume(r.session_id, 'T1') is False


def test_success_resets_attempts_and_revoke(gate):
    gate.verify('nope', 'T1')
    r = gate.verify('s3cret', 'T1')
    assert gate.attempts == 0
    assert gate.revoke(r.session_id) is True
    assert gate.revoke(r.session_id) is False
    assert gate.status()['active_sessions'] == 0


def test_from_config_hashes_plain_password():
    gate = AdminGate.from_config({'ADMIN_PASSWORD': 'plain', 'ADMIN_MAX_ATTEMPTS': '5'})
    assert gate.max_attempts == 5
    assert gate.password_hash != 'plain'
    assert gate.verify('plain', 'T1').ok
