"""WhatsApp click-to-chat links."""
from __future__ import annotations

import re
from urllib.parse import quote

from ..models.property import OperationType

_NON_DIGITS = re.compile(r"[^0-9]")


def clean_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def generate_whatsapp_link(phone: str, message: str = "") -> str:
    number = clean_phone(phone)
    if not message:
        return f"https://wa.me/{number}"
    return f"https://wa.me/{number}?text={quote(message, safe='')}"


def format_price(price: float) -> str:
    # es-CL grouping: 125.000.000
    return f"{price:,.0f}".replace(",", ".")


def property_message(
    *, property_id: str, title: str, operation_type: str, price: float, currency: str, website_url: str
) -> str:
    operation = "Venta" if operation_type == OperationType.SALE.value else "Arriendo"
    url = f"{website_url.rstrip('/')}/propiedad/{property_id}"
    return (
        f'Hola, estoy interesado/a en la propiedad "{title}" ({operation} - {format_price(price)} {currency}). '
        f"Me gustaría obtener más información. {url}"
    )
