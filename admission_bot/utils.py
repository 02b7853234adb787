"""Shared utilities used across the admission bot."""

import re
from datetime import datetime


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+61 (412) 345-678")
        '+61412345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def phone_from_conversation_id(conversation_id: str) -> str:
    """Extract the sender's phone number from a WhatsApp conversation id.

    Accepts both Twilio (``whatsapp:+15551234567``) and web-client
    (``15551234567@c.us``) identifiers.

    Examples:
        >>> phone_from_conversation_id("whatsapp:+1 555 123 4567")
        '+15551234567'
        >>> phone_from_conversation_id("15551234567@c.us")
        '15551234567'
    """
    value = conversation_id.strip()
    if value.lower().startswith("whatsapp:"):
        value = value[len("whatsapp:"):]
    value = value.split("@", 1)[0]
    return normalize_phone(value)


def format_slot(moment: datetime) -> str:
    """Render a slot timestamp the way it is shown to applicants.

    Examples:
        >>> format_slot(datetime(2026, 10, 19, 9, 0))
        'October 19, 9:00 AM'
        >>> format_slot(datetime(2026, 10, 19, 14, 30))
        'October 19, 2:30 PM'
    """
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{moment.strftime('%B')} {moment.day}, {hour}:{moment.minute:02d} {suffix}"
