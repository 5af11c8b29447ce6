"""
Data normalization utilities for the extraction engine.

These functions turn raw text pulled out of storefront markup into typed
values. They never raise on malformed input.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Tuple

from ..base import DeliveryAddress, OrderStatus

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_PRICE_NOISE = re.compile(r"[^\d,.\-]")
_NUMERIC_PREFIX = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")


def clean_text(text: Optional[str]) -> Optional[str]:
    """
    Collapse whitespace and strip.

    Examples:
        "  Rajčata\n   cherry " -> "Rajčata cherry"
        "   " -> None
    """
    if text is None:
        return None
    cleaned = " ".join(text.split())
    return cleaned or None


def try_parse_price(text: Optional[str]) -> Optional[Decimal]:
    """
    Parse a price, returning None when nothing numeric is found.

    Everything outside digits, comma, dot and minus is stripped, commas become
    dots and the longest leading number is taken.

    Examples:
        "57,90 Kč" -> Decimal("57.90")
        "1 299,00 Kč" -> Decimal("1299.00")
        "abc" -> None
    """
    if not text:
        return None

    cleaned = _PRICE_NOISE.sub("", text).replace(",", ".")
    match = _NUMERIC_PREFIX.match(cleaned)
    if not match:
        return None

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return None


def parse_price(text: Optional[str]) -> Decimal:
    """
    Parse a price, resolving anything unparsable to zero.

    Examples:
        "57,90" -> Decimal("57.90")
        "" -> Decimal("0")
        "abc" -> Decimal("0")
    """
    price = try_parse_price(text)
    if price is None:
        if text:
            logger.debug(f"Unparsable price text {text!r}, using 0")
        return ZERO
    return price


def parse_quantity(text: Optional[str], default: int = 1) -> int:
    """
    Parse an item quantity.

    Examples:
        "3" -> 3
        "2 ks" -> 2
        "" -> 1
    """
    if not text:
        return default
    match = re.search(r"-?\d+", text)
    if not match:
        return default
    quantity = int(match.group(0))
    return quantity if quantity > 0 else default


def compute_discount(price: Optional[Decimal], original_price: Optional[Decimal]) -> Optional[int]:
    """
    Derive a discount percentage from the current and crossed-out prices.

    Only computed when the original price is present and greater than the
    current price.

    Examples:
        (57.90, 88.90) -> 35
        (57.90, None) -> None
        (57.90, 50.00) -> None
    """
    if price is None or original_price is None:
        return None
    if original_price <= 0 or original_price <= price:
        return None
    pct = (original_price - price) / original_price * 100
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_time_range(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract a delivery window from text.

    Handles formats like:
        14:00 - 16:00
        8:00–10:00

    Returns:
        Tuple of (time_from, time_to) zero-padded to HH:MM, or (None, None)
    """
    if not text:
        return None, None

    match = re.search(r"(\d{1,2}):(\d{2})\s*[-–]\s*(\d{1,2}):(\d{2})", text)
    if not match:
        return None, None

    time_from = f"{int(match.group(1)):02d}:{match.group(2)}"
    time_to = f"{int(match.group(3)):02d}:{match.group(4)}"
    return time_from, time_to


def parse_date(text: Optional[str]) -> Optional[datetime]:
    """
    Parse a date in Czech (DD.MM.YYYY) or ISO format.

    Examples:
        "12.3.2024" -> datetime(2024, 3, 12)
        "2024-03-12" -> datetime(2024, 3, 12)
        "včera" -> None
    """
    if not text:
        return None

    czech = re.search(r"(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4})", text)
    if czech:
        day, month, year = (int(g) for g in czech.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    iso = re.search(r"\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}(?::\d{2})?)?", text)
    if iso:
        try:
            return datetime.fromisoformat(iso.group(0))
        except ValueError:
            return None

    return None


# Status keywords, English and Czech
_STATUS_KEYWORDS = [
    (OrderStatus.PENDING, ("pending", "čekající")),
    (OrderStatus.CONFIRMED, ("confirmed", "potvrzeno")),
    (OrderStatus.PREPARING, ("preparing", "připravuje")),
    (OrderStatus.SHIPPED, ("shipped", "expedováno")),
    (OrderStatus.DELIVERED, ("delivered", "doručeno")),
    (OrderStatus.CANCELLED, ("cancelled", "zrušeno")),
    (OrderStatus.FAILED, ("failed", "neúspěšné")),
]


def parse_order_status(text: Optional[str]) -> OrderStatus:
    """Map a status label to OrderStatus, defaulting to PENDING."""
    if not text:
        return OrderStatus.PENDING
    lowered = text.lower()
    for status, keywords in _STATUS_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return status
    return OrderStatus.PENDING


def parse_address_text(text: Optional[str], country: str = "CZ") -> Optional[DeliveryAddress]:
    """
    Parse a one-line address into a DeliveryAddress.

    Examples:
        "Vinohradská 12, 120 00 Praha 2" ->
            street="Vinohradská", house_number="12", postal_code="12000", city="Praha 2"
        "Praha" -> None
    """
    text = clean_text(text)
    if not text:
        return None

    parts = [part.strip() for part in text.split(",") if part.strip()]
    if len(parts) < 2:
        return None

    street, house_number = parts[0], ""
    street_match = re.match(r"^(.*?)\s+(\d+[\w/]*)$", parts[0])
    if street_match:
        street, house_number = street_match.group(1), street_match.group(2)

    city = parts[-1]
    postal_code = ""
    postal_match = re.match(r"^(\d{3})\s?(\d{2})\s+(.+)$", city)
    if postal_match:
        postal_code = postal_match.group(1) + postal_match.group(2)
        city = postal_match.group(3)

    return DeliveryAddress(
        street=street,
        house_number=house_number,
        city=city,
        postal_code=postal_code,
        country=country,
    )


def mask_email(email: Optional[str]) -> Optional[str]:
    """
    Mask an email address for logs.

    Examples:
        "jana.novakova@example.cz" -> "ja***@example.cz"
    """
    if not email:
        return email
    return re.sub(r"^(.{2}).*(@.*)$", r"\1***\2", email)


def mask_identifier(value: Optional[str], keep: int = 8) -> Optional[str]:
    """Keep the first characters of an identifier for logs."""
    if not value:
        return value
    return value[:keep] + "..."
