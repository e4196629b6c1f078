"""Reusable input validation helpers.

All helpers raise `ValidationError` (422) so callers can validate an entire
command before touching the store.
"""
from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from frontdesk.errors import UnknownStatusError, ValidationError

MOBILE_RE = re.compile(r'^[0-9]{10}$')
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def require_text(data: dict, key: str, label: Optional[str] = None, max_len: Optional[int] = None) -> str:
    raw = data.get(key)
    value = str(raw).strip() if raw is not None else ''
    if not value:
        raise ValidationError(f'{label or key} is required')
    if max_len and len(value) > max_len:
        raise ValidationError(f'{label or key} must be at most {max_len} characters')
    return value


def optional_text(data: dict, key: str, max_len: Optional[int] = None) -> Optional[str]:
    raw = data.get(key)
    if raw is None:
        return None
    value = str(raw).strip()
    if max_len and len(value) > max_len:
        raise ValidationError(f'{key} must be at most {max_len} characters')
    return value or None


def validate_mobile(value: str) -> str:
    if not MOBILE_RE.match(value or ''):
        raise ValidationError('Please enter a valid 10-digit mobile number')
    return value


def validate_email(value: Optional[str]) -> Optional[str]:
    if value and not EMAIL_RE.match(value):
        raise ValidationError('customer_email invalid')
    return value


def parse_amount(raw: Any, field_name: str = 'amount', allow_zero: bool = False) -> Decimal:
    """Parse a money value into a 2dp Decimal; must be positive unless allow_zero."""
    if raw is None or raw == '':
        raise ValidationError(f'{field_name} is required')
    if isinstance(raw, bool):
        raise ValidationError(f'{field_name} must be a number')
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field_name} must be a number')
    if not value.is_finite():
        raise ValidationError(f'{field_name} must be a number')
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f'Please enter a valid {field_name.replace("_", " ")}')
    return value.quantize(Decimal('0.01'))


def parse_enum(enum_cls, raw: Any, field_name: str, default=None):
    if raw is None or raw == '':
        if default is not None:
            return default
        raise ValidationError(f'{field_name} is required')
    try:
        return enum_cls.parse(raw)
    except UnknownStatusError:
        raise ValidationError(f'{field_name} invalid')


__all__ = ['require_text', 'optional_text', 'validate_mobile', 'validate_email', 'parse_amount', 'parse_enum']
