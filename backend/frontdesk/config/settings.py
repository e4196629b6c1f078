"""Default configuration values and environment loading.

Every key can be overridden through the environment (after `.env` is loaded)
or by the dict passed to `create_app(config=...)`.
"""
from __future__ import annotations
import os
from typing import Any, Dict

DEFAULTS: Dict[str, Any] = {
    'DATABASE_URL': 'sqlite:///frontdesk.db',
    'JWT_SECRET_KEY': 'dev-secret',
    'SHOP_TIMEZONE': 'Asia/Kolkata',
    # Admin gate
    'ADMIN_PASSWORD': 'frontdesk-admin',
    'ADMIN_PASSWORD_HASH': None,
    'ADMIN_MAX_ATTEMPTS': 3,
    'ADMIN_LOCKOUT_SECONDS': 5 * 60,
    'ADMIN_SESSION_SECONDS': 10 * 60,
    # Shop details used in receipts and customer messages
    'SHOP_NAME': 'PhoneCare',
    'SHOP_NAME_HI': 'फोनकेयर',
    'SHOP_TAGLINE': 'Professional Mobile Repair Center',
    'SHOP_ADDRESS': 'Shop No 27, Mahanadi Complex, Niharika, Korba',
    'SHOP_ADDRESS_HI': 'शॉप नं 27, महानदी कॉम्प्लेक्स, निहारिका, कोरबा',
    'SHOP_PHONE': '+91 93407 57231',
    'SHOP_EMAIL': 'myphonecare@gmail.com',
    'SHOP_HOURS': '10 AM - 10 PM (All Days)',
    'SHOP_HOURS_HI': 'सुबह 10 बजे - रात 10 बजे (सभी दिन)',
    'DEFAULT_COUNTRY_CODE': '91',
    # Listing
    'PAGE_DEFAULT_LIMIT': 50,
    'PAGE_MAX_LIMIT': 500,
}

_INT_KEYS = {'ADMIN_MAX_ATTEMPTS', 'ADMIN_LOCKOUT_SECONDS', 'ADMIN_SESSION_SECONDS', 'PAGE_DEFAULT_LIMIT', 'PAGE_MAX_LIMIT'}


def load_settings() -> Dict[str, Any]:
    settings = dict(DEFAULTS)
    for key, default in DEFAULTS.items():
        raw = os.getenv(key)
        if raw is None or raw == '':
            continue
        if key in _INT_KEYS:
            try:
                settings[key] = int(raw)
            except ValueError:
                raise ValueError(f'{key} must be an integer, got {raw!r}')
        else:
            settings[key] = raw
    return settings


def normalize_pagination(limit_raw, offset_raw, default_limit: int = 50, max_limit: int = 500):
    try:
        limit = int(limit_raw) if limit_raw is not None else default_limit
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset


__all__ = ['DEFAULTS', 'load_settings', 'normalize_pagination']
