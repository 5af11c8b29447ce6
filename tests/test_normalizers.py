"""
Tests for text normalization helpers.
"""

from datetime import datetime
from decimal import Decimal

from rohlik.base import OrderStatus
from rohlik.utils.normalizers import (
    clean_text,
    compute_discount,
    mask_email,
    mask_identifier,
    parse_address_text,
    parse_date,
    parse_order_status,
    parse_price,
    parse_quantity,
    parse_time_range,
    try_parse_price,
)


class TestParsePrice:
    """Test price parsing."""

    def test_czech_decimal_comma(self):
        assert parse_price("57,90") == Decimal("57.90")

    def test_currency_and_thousands_separator(self):
        assert parse_price("1 299,00 Kč") == Decimal("1299.00")

    def test_unparsable_resolves_to_zero(self):
        assert parse_price("") == Decimal("0")
        assert parse_price("abc") == Decimal("0")
        assert parse_price(None) == Decimal("0")

    def test_try_parse_price_returns_none(self):
        """The strict variant lets callers tell 'zero' from 'missing'."""
        assert try_parse_price("abc") is None
        assert try_parse_price("0 Kč") == Decimal("0")


class TestDiscount:
    """Test discount derivation."""

    def test_discount_rounded_percentage(self):
        assert compute_discount(Decimal("57.90"), Decimal("88.90")) == 35

    def test_no_discount_without_original_price(self):
        assert compute_discount(Decimal("57.90"), None) is None

    def test_no_discount_when_original_not_higher(self):
        assert compute_discount(Decimal("57.90"), Decimal("57.90")) is None
        assert compute_discount(Decimal("57.90"), Decimal("50.00")) is None


class TestParsers:
    """Test the remaining field parsers."""

    def test_clean_text(self):
        assert clean_text("  Rajčata\n   cherry ") == "Rajčata cherry"
        assert clean_text("   ") is None

    def test_parse_quantity(self):
        assert parse_quantity("3") == 3
        assert parse_quantity("2 ks") == 2
        assert parse_quantity("") == 1
        assert parse_quantity("0") == 1

    def test_parse_time_range(self):
        assert parse_time_range("14:00 - 16:00") == ("14:00", "16:00")
        assert parse_time_range("8:00–10:00") == ("08:00", "10:00")
        assert parse_time_range("brzy") == (None, None)

    def test_parse_date(self):
        assert parse_date("12.3.2024") == datetime(2024, 3, 12)
        assert parse_date("Objednáno 12. 03. 2024") == datetime(2024, 3, 12)
        assert parse_date("2024-03-12") == datetime(2024, 3, 12)
        assert parse_date("včera") is None
        assert parse_date("31.02.2024") is None

    def test_parse_order_status(self):
        assert parse_order_status("Doručeno") == OrderStatus.DELIVERED
        assert parse_order_status("Zrušeno") == OrderStatus.CANCELLED
        assert parse_order_status("Shipped") == OrderStatus.SHIPPED
        assert parse_order_status("???") == OrderStatus.PENDING
        assert parse_order_status(None) == OrderStatus.PENDING

    def test_parse_address_text(self):
        address = parse_address_text("Vinohradská 12, 120 00 Praha 2")

        assert address.street == "Vinohradská"
        assert address.house_number == "12"
        assert address.postal_code == "12000"
        assert address.city == "Praha 2"
        assert address.country == "CZ"

    def test_parse_address_text_needs_two_parts(self):
        assert parse_address_text("Praha") is None
        assert parse_address_text(None) is None


class TestMasking:
    """Test log masking helpers."""

    def test_mask_email(self):
        assert mask_email("jana.novakova@example.cz") == "ja***@example.cz"
        assert mask_email(None) is None

    def test_mask_identifier(self):
        assert mask_identifier("abcdefghijkl") == "abcdefgh..."
        assert mask_identifier(None) is None
