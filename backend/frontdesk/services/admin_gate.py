"""Server-side guard for destructive registry actions.

The gate owns the only admin state: failed-attempt count, lockout deadline,
and the table of open delete sessions. A successful `verify` opens a session
bound to one delete target; the route wraps the session id in a signed
capability token and `consume` closes it on use.

Failures are returned as `VerifyResult(ok=False, ...)`, never raised.
"""
from __future__ import annotations
import logging
import math
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

log = logging.getLogger(__name__)

DELETE_SCOPE = 'ticket.delete'


@dataclass
class VerifyResult:
    ok: bool
    message: str
    session_id: Optional[str] = None
    expires_at: Optional[float] = None
    attempts_left: Optional[int] = None
    locked_for: int = 0  # seconds


@dataclass
class _Session:
    target: str
    expires_at: float


class AdminGate:
    def __init__(self, password_hash: str, max_attempts: int = 3, lockout_seconds: int = 300,
                 session_seconds: int = 600, clock: Callable[[], float] = time.time):
        if not password_hash:
            raise ValueError('admin password hash required')
        self.password_hash = password_hash
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.session_seconds = session_seconds
        self.clock = clock
        self.attempts = 0
        self.lockout_until: Optional[float] = None
        self._sessions: Dict[str, _Session] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg, clock: Callable[[], float] = time.time) -> 'AdminGate':
        pw_hash = cfg.get('ADMIN_PASSWORD_HASH') or generate_password_hash(cfg['ADMIN_PASSWORD'])
        return cls(
            pw_hash,
            max_attempts=int(cfg.get('ADMIN_MAX_ATTEMPTS', 3)),
            lockout_seconds=int(cfg.get('ADMIN_LOCKOUT_SECONDS', 300)),
            session_seconds=int(cfg.get('ADMIN_SESSION_SECONDS', 600)),
            clock=clock,
        )

    def _lockout_remaining(self, now: float) -> float:
        """Seconds of lockout left; clears an expired lockout and its attempt count."""
        if self.lockout_until is None:
            return 0
        if now >= self.lockout_until:
            self.lockout_until = None
            self.attempts = 0
            return 0
        return self.lockout_until - now

    def verify(self, password: str, target: str) -> VerifyResult:
        with self._lock:
            now = self.clock()
            remaining = self._lockout_remaining(now)
            if remaining:
                minutes = math.ceil(remaining / 60)
                return VerifyResult(False, f'Too many failed attempts. Try again in {minutes} minute(s).',
                                    locked_for=math.ceil(remaining))
            if password and check_password_hash(self.password_hash, password):
                self.attempts = 0
                sid = uuid.uuid4().hex
                expires_at = now + self.session_seconds
                self._sessions[sid] = _Session(target=str(target), expires_at=expires_at)
                self._prune(now)
                log.info('admin session opened for ticket %s', target)
                return VerifyResult(True, 'Access granted', session_id=sid, expires_at=expires_at)
            self.attempts += 1
            if self.attempts >= self.max_attempts:
                self.lockout_until = now + self.lockout_seconds
                self.attempts = 0
                log.warning('admin gate locked for %ss after %d failed attempts', self.lockout_seconds, self.max_attempts)
                minutes = math.ceil(self.lockout_seconds / 60)
                return VerifyResult(False, f'Too many failed attempts. Locked for {minutes} minute(s).',
                                    attempts_left=0, locked_for=self.lockout_seconds)
            left = self.max_attempts - self.attempts
            return VerifyResult(False, f'Incorrect password. {left} attempt(s) remaining.', attempts_left=left)

    def is_active(self, sid: Optional[str]) -> bool:
        with self._lock:
            s = self._sessions.get(sid) if sid else None
            return s is not None and self.clock() < s.expires_at

    def consume(self, sid: Optional[str], target: str) -> bool:
        """Close the session if it is live and bound to `target`."""
        with self._lock:
            s = self._sessions.get(sid) if sid else None
            if s is None:
                return False
            if self.clock() >= s.expires_at:
                del self._sessions[sid]
                return False
            if s.target != str(target):
                return False
            del self._sessions[sid]
            return True

    def revoke(self, sid: Optional[str]) -> bool:
        with self._lock:
            return self._sessions.pop(sid, None) is not None if sid else False

    def status(self) -> dict:
        with self._lock:
            now = self.clock()
            remaining = self._lockout_remaining(now)
            return {
                'locked': bool(remaining),
                'lockout_remaining_seconds': math.ceil(remaining),
                'attempts': self.attempts,
                'max_attempts': self.max_attempts,
                'active_sessions': sum(1 for s in self._sessions.values() if now < s.expires_at),
            }

    def _prune(self, now: float):
        for sid in [k for k, s in self._sessions.items() if now >= s.expires_at]:
            del self._sessions[sid]




def current_gate() -> AdminGate:
    return current_app.extensions['admin_gate']


__all__ = ['AdminGate', 'VerifyResult', 'DELETE_SCOPE', 'current_gate']
