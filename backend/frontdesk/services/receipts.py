from __future__ import annotations
from datetime import datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from flask import render_template

from frontdesk.models.base import as_utc
from frontdesk.models.repair_ticket import RepairTicket

JSBARCODE_CDN = 'https://cdn.jsdelivr.net/npm/jsbarcode@3.11.6/dist/JsBarcode.all.min.js'
RECEIPT_TERMS = 'No warranty on repairs • Check device at delivery • Not responsible for damage during repair'


def receipt_context(ticket: RepairTicket, shop: Mapping[str, Any], now: datetime, tz: ZoneInfo) -> dict:
    local = as_utc(now).astimezone(tz)
    return {
        'ticket': ticket,
        'priority': getattr(ticket.priority, 'value', ticket.priority),
        'estimated_cost': f'{ticket.estimated_cost or 0:,.2f}',
        'printed_date': local.strftime('%d/%m/%Y'),
        'printed_time': local.strftime('%H:%M'),
        'shop_name': shop.get('SHOP_NAME', ''),
        'shop_address': shop.get('SHOP_ADDRESS', ''),
        'shop_phone': shop.get('SHOP_PHONE', ''),
        'terms': RECEIPT_TERMS,
        'barcode_src': JSBARCODE_CDN,
    }


def render_receipt(ticket: RepairTicket, shop: Mapping[str, Any], now: datetime, tz: ZoneInfo) -> str:
    """Customer and store copies on one A5 page; the barcode is drawn in the browser."""
    return render_template('receipt.html', **receipt_context(ticket, shop, now, tz))


__all__ = ['render_receipt', 'receipt_context', 'JSBARCODE_CDN']
