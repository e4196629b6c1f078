"""Customer messages as WhatsApp deep links.

Nothing is sent from the server: the operator opens the link in their own
client. Producing a link is recorded in the notification log.
"""
from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import Any, Dict, Mapping
from urllib.parse import quote

from sqlalchemy.orm import Session

from frontdesk.errors import ValidationError
from frontdesk.models.notification_log import NotificationLogEntry
from frontdesk.models.repair_ticket import RepairTicket

log = logging.getLogger(__name__)

WHATSAPP_SEND_URL = 'https://api.whatsapp.com/send'
MESSAGE_TYPES = ('payment', 'return')
LANGUAGES = ('english', 'hindi')

TEMPLATES: Dict[str, Dict[str, str]] = {
    'payment': {
        'english': (
            'Hello {customer_name}! 👋\n\n'
            'Good news! Your *{device}* has been successfully repaired and is ready for pickup! ✅\n\n'
            '📋 *Ticket ID:* {ticket_id}\n'
            '📍 *Location:* {shop_name}, {shop_address}\n\n'
            'Please visit us at your convenience to collect your device and complete the payment.\n\n'
            '🕒 *Working Hours:* {shop_hours}\n\n'
            'For any queries, call: {shop_phone}\n\n'
            'Thank you for choosing {shop_name}! 😊'
        ),
        'hindi': (
            'नमस्ते {customer_name}! 👋\n\n'
            'खुशखबरी! आपका *{device}* सफलतापूर्वक रिपेयर हो गया है और लेने के लिए तैयार है! ✅\n\n'
            '📋 *टिकट आईडी:* {ticket_id}\n'
            '📍 *पता:* {shop_name_hi}, {shop_address_hi}\n\n'
            'कृपया अपनी सुविधानुसार हमारे पास आएं और अपना डिवाइस लेकर भुगतान पूरा करें।\n\n'
            '🕒 *समय:* {shop_hours_hi}\n\n'
            'किसी भी प्रश्न के लिए कॉल करें: {shop_phone}\n\n'
            '{shop_name_hi} चुनने के लिए धन्यवाद! 😊'
        ),
    },
    'return': {
        'english': (
            'Hello {customer_name}! 👋\n\n'
            'Regarding your *{device}*\n\n'
            '📋 *Ticket ID:* {ticket_id}\n\n'
            'After thorough inspection, we regret to inform you that your device cannot be repaired due to:\n'
            '{return_reason}\n\n'
            'Your device is ready for return. Please collect it at your earliest convenience.\n\n'
            '📍 *Location:* {shop_name}, {shop_address}\n'
            '🕒 *Working Hours:* {shop_hours}\n\n'
            '*No charges* will be applied.\n\n'
            'For any queries, call: {shop_phone}\n\n'
            'We apologize for the inconvenience.'
        ),
        'hindi': (
            'नमस्ते {customer_name}! 👋\n\n'
            'आपके *{device}* के बारे में\n\n'
            '📋 *टिकट आईडी:* {ticket_id}\n\n'
            'पूरी जांच के बाद, हमें यह बताते हुए खेद है कि आपका डिवाइस रिपेयर नहीं हो सकता:\n'
            '{return_reason}\n\n'
            'आपका डिवाइस वापसी के लिए तैयार है। कृपया जल्द से जल्द इसे ले जाएं।\n\n'
            '📍 *पता:* {shop_name_hi}, {shop_address_hi}\n'
            '🕒 *समय:* {shop_hours_hi}\n\n'
            '*कोई शुल्क नहीं* लगेगा।\n\n'
            'किसी भी प्रश्न के लिए कॉल करें: {shop_phone}\n\n'
            'असुविधा के लिए खेद है।'
        ),
    },
}

DEFAULT_RETURN_REASON = {'english': 'technical limitations', 'hindi': 'तकनीकी सीमाओं के कारण'}


def normalize_phone(mobile: str, country_code: str = '91') -> str:
    """Digits only; every 10-digit mobile gets the country code, even one that starts with it."""
    digits = re.sub(r'\D', '', mobile or '')
    if not digits:
        raise ValidationError('Customer has no mobile number')
    if len(digits) == 10:
        digits = country_code + digits
    return digits


def render_message(ticket: RepairTicket, message_type: str, language: str, shop: Mapping[str, Any]) -> str:
    if message_type not in MESSAGE_TYPES:
        raise ValidationError(f'message_type must be one of {", ".join(MESSAGE_TYPES)}')
    if language not in LANGUAGES:
        raise ValidationError(f'language must be one of {", ".join(LANGUAGES)}')
    return TEMPLATES[message_type][language].format(
        customer_name=ticket.customer_name,
        device=ticket.device_info,
        ticket_id=ticket.ticket_id,
        return_reason=ticket.return_reason or DEFAULT_RETURN_REASON[language],
        shop_name=shop.get('SHOP_NAME', ''),
        shop_name_hi=shop.get('SHOP_NAME_HI') or shop.get('SHOP_NAME', ''),
        shop_address=shop.get('SHOP_ADDRESS', ''),
        shop_address_hi=shop.get('SHOP_ADDRESS_HI') or shop.get('SHOP_ADDRESS', ''),
        shop_hours=shop.get('SHOP_HOURS', ''),
        shop_hours_hi=shop.get('SHOP_HOURS_HI') or shop.get('SHOP_HOURS', ''),
        shop_phone=shop.get('SHOP_PHONE', ''),
    )


def whatsapp_link(phone: str, text: str) -> str:
    return f'{WHATSAPP_SEND_URL}?phone={phone}&text={quote(text, safe="")}'


def build_notification(ticket: RepairTicket, message_type: str, language: str, shop: Mapping[str, Any]) -> Dict[str, str]:
    phone = normalize_phone(ticket.customer_mobile, str(shop.get('DEFAULT_COUNTRY_CODE', '91')))
    text = render_message(ticket, message_type, language, shop)
    return {'phone': phone, 'message': text, 'url': whatsapp_link(phone, text)}


def log_notification(session: Session, ticket: RepairTicket, message_type: str, language: str,
                     now: datetime, sent_by: str = 'Front Desk') -> NotificationLogEntry:
    entry = NotificationLogEntry(
        ticket_pk=ticket.id,
        ticket_id=ticket.ticket_id,
        customer_name=ticket.customer_name,
        customer_mobile=ticket.customer_mobile,
        channel='whatsapp',
        message_type=message_type,
        language=language,
        sent_by=sent_by,
        timestamp=now,
    )
    session.add(entry)
    log.info('%s message (%s) prepared for %s', message_type, language, ticket.ticket_id)
    return entry


__all__ = [
    'normalize_phone', 'render_message', 'whatsapp_link', 'build_notification', 'log_notification',
    'MESSAGE_TYPES', 'LANGUAGES', 'WHATSAPP_SEND_URL',
]
