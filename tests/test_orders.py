"""
Tests for checkout, order history and cancellation.
"""

from decimal import Decimal

import pytest

from rohlik.base import CheckoutRequest, DeliveryAddress, OrderStatus
from rohlik.errors import AuthenticationRequired, OrderOperationError

from conftest import CART_HTML, form_body

ADDRESS_FORM_HTML = """
<form class="address-form" action="/adresa" method="post">
  <input type="hidden" name="_token" value="addr-token">
</form>
"""

CHECKOUT_HTML = """
<form class="checkout-form" action="/checkout/odeslat" method="post">
  <input type="hidden" name="_token" value="checkout-token">
  <input type="radio" name="payment_method" value="card" checked>
  <input type="radio" name="payment_method" value="cash">
</form>
"""

CONFIRMATION_HTML = """
<h1>Děkujeme! Objednávka 2024031299 byla přijata</h1>
<a href="/objednavka/88123">Detail objednávky</a>
"""

SMALL_CART_HTML = """
<div class="cart-item" data-product-id="1294559">
  <span class="product-name">Okurka hadovka</span>
  <span class="item-price">19,90 Kč</span>
  <input type="number" name="quantity" value="1">
  <span class="availability">Vyprodáno</span>
</div>
"""

ORDER_HTML = """
<span class="order-number">2024031201</span>
<span class="order-status">Potvrzeno</span>
<div class="order-item" data-product-id="1440986">
  <span class="name">Sutcha Prime Rump steak</span><span class="quantity">2</span><span class="price">289,90 Kč</span>
</div>
<form class="cancel-order-form" action="/objednavka/1001/cancel" method="post">
  <input type="hidden" name="_token" value="cancel-token">
</form>
"""

PRAGUE = DeliveryAddress(street="Vinohradská", house_number="12", city="Praha", postal_code="12000")


@pytest.fixture
def with_address(shop, site, logged_in):
    """Logged in, with a Prague delivery address set through the address form."""
    site.route("GET", "/adresa", html=ADDRESS_FORM_HTML)
    site.route("POST", "/adresa", html="ok")

    async def set_address():
        result = await shop.location.set_delivery_address(PRAGUE)
        assert result.is_valid
        site.requests.clear()

    return set_address


class TestValidateCheckout:
    """Test checkout validation."""

    @pytest.mark.asyncio
    async def test_requires_login(self, shop, site):
        validation = await shop.orders.validate_checkout()

        assert validation.is_valid is False
        assert validation.errors == ("User must be authenticated to checkout",)
        assert site.requests == []

    @pytest.mark.asyncio
    async def test_collects_problems(self, shop, site, logged_in):
        site.route("GET", "/kosik", html=SMALL_CART_HTML)

        validation = await shop.orders.validate_checkout()

        assert validation.is_valid is False
        assert validation.errors == (
            "Delivery address must be set",
            "Minimum order value is 500 Kč (current: 19.90 Kč)",
        )
        assert validation.warnings == ("Some items may not be available: Okurka hadovka",)
        assert validation.estimated_total == Decimal("19.90")
        assert validation.available_payment_methods == ("card", "cash", "bank_transfer")

    @pytest.mark.asyncio
    async def test_empty_cart(self, shop, site, logged_in):
        site.route("GET", "/kosik", html="<p>Košík je prázdný</p>")

        validation = await shop.orders.validate_checkout()

        assert "Cart is empty" in validation.errors

    @pytest.mark.asyncio
    async def test_valid_checkout(self, shop, site, with_address):
        await with_address()
        site.route("GET", "/kosik", html=CART_HTML)
        site.route("GET", "/checkout", html=CHECKOUT_HTML)

        validation = await shop.orders.validate_checkout()

        assert validation.is_valid is True
        assert validation.delivery_fee == Decimal("49")
        assert validation.estimated_total == Decimal("688.50")
        assert validation.available_payment_methods == ("card", "cash")


class TestCheckout:
    """Test order submission."""

    @pytest.mark.asyncio
    async def test_checkout(self, shop, context, site, with_address):
        await with_address()
        site.route("GET", "/kosik", html=CART_HTML)
        site.route("GET", "/checkout", html=CHECKOUT_HTML)
        site.route("POST", "/checkout/odeslat", html=CONFIRMATION_HTML)
        site.route("POST", "/api/cart/remove", json={"success": True})

        result = await shop.orders.checkout(CheckoutRequest(
            payment_method="card",
            delivery_slot_id="s1",
            confirm_inventory=True,
        ))

        assert result.success is True
        order = result.order
        assert order.id == "88123"
        assert order.order_number == "2024031299"
        assert order.status == OrderStatus.CONFIRMED
        assert order.total == Decimal("688.50")
        assert order.delivery_address.postal_code == "12000"
        assert result.confirmation_url == "https://www.rohlik.cz/objednavka/88123"
        assert context.cache.get("order", "88123") == order

        post = site.calls("POST", "/checkout/odeslat")[0]
        body = form_body(post)
        assert body["_token"] == "checkout-token"
        assert body["payment_method"] == "card"
        assert body["delivery_slot_id"] == "s1"
        assert body["confirm_inventory"] == "1"
        assert body["items[0][product_id]"] == "1440986"
        assert body["items[1][quantity]"] == "3"
        assert post.headers["referer"] == "https://www.rohlik.cz/checkout"

        assert len(site.calls("POST", "/api/cart/remove")) == 2

    @pytest.mark.asyncio
    async def test_unreadable_confirmation(self, shop, site, with_address):
        await with_address()
        site.route("GET", "/kosik", html=CART_HTML)
        site.route("GET", "/checkout", html=CHECKOUT_HTML)
        site.route("POST", "/checkout/odeslat", html="<p>Něco se pokazilo</p>")

        result = await shop.orders.checkout(CheckoutRequest(payment_method="card"))

        assert result.success is False
        assert result.errors == ("Order was submitted but no confirmation could be read",)
        assert site.calls("POST", "/api/cart/remove") == []

    @pytest.mark.asyncio
    async def test_invalid_checkout_not_submitted(self, shop, site, logged_in):
        site.route("GET", "/kosik", html=SMALL_CART_HTML)

        result = await shop.orders.checkout(CheckoutRequest(payment_method="card"))

        assert result.success is False
        assert "Delivery address must be set" in result.errors
        assert site.calls("POST") == []

    @pytest.mark.asyncio
    async def test_submission_error(self, shop, site, with_address):
        await with_address()
        site.route("GET", "/kosik", html=CART_HTML)
        site.route("GET", "/checkout", html=CHECKOUT_HTML)
        site.route("POST", "/checkout/odeslat", status=500)

        result = await shop.orders.checkout(CheckoutRequest(payment_method="card"))

        assert result.success is False
        assert "HTTP 500" in result.errors[0]


class TestOrders:
    """Test order reads."""

    @pytest.mark.asyncio
    async def test_order_history(self, shop, site, logged_in):
        site.route("GET", "/objednavky", html="""
            <div class="order" data-order-id="1001"><span class="status">Doručeno</span><span class="total">648,70 Kč</span></div>
            <div class="order" data-order-id="1002"><span class="status">Zrušeno</span><span class="total">120 Kč</span></div>
        """)

        orders = await shop.orders.get_order_history()

        assert [o.status for o in orders] == [OrderStatus.DELIVERED, OrderStatus.CANCELLED]

    @pytest.mark.asyncio
    async def test_history_requires_login(self, shop):
        with pytest.raises(AuthenticationRequired):
            await shop.orders.get_order_history()

    @pytest.mark.asyncio
    async def test_get_order_is_cached(self, shop, site, logged_in):
        site.route("GET", "/objednavka/1001", html=ORDER_HTML)

        order = await shop.orders.get_order("1001")
        await shop.orders.get_order("1001")

        assert order.order_number == "2024031201"
        assert order.status == OrderStatus.CONFIRMED
        assert len(site.requests) == 1

    @pytest.mark.asyncio
    async def test_track_order_refetches(self, shop, site, logged_in):
        site.route("GET", "/objednavka/1001", html=ORDER_HTML)

        await shop.orders.get_order("1001")
        await shop.orders.track_order("1001")

        assert len(site.requests) == 2

    @pytest.mark.asyncio
    async def test_missing_order(self, shop, site, logged_in):
        assert await shop.orders.get_order("9999") is None


class TestCancelOrder:
    """Test order cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_via_api_updates_cache(self, shop, context, site, logged_in):
        site.route("GET", "/objednavka/1001", html=ORDER_HTML)
        site.route("POST", "/api/orders/1001/cancel", json={"success": True})
        await shop.orders.get_order("1001")

        assert await shop.orders.cancel_order("1001") is True
        assert context.cache.get("order", "1001").status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_via_form(self, shop, site, logged_in):
        site.route("GET", "/objednavka/1001", html=ORDER_HTML)
        site.route("POST", "/objednavka/1001/cancel", html="ok")

        assert await shop.orders.cancel_order("1001") is True
        assert form_body(site.calls("POST", "/objednavka/1001/cancel")[0]) == {"_token": "cancel-token"}

    @pytest.mark.asyncio
    async def test_cancel_failure(self, shop, site, logged_in):
        site.route("POST", "/api/orders/1001/cancel", status=500)
        site.route("GET", "/objednavka/1001", html=ORDER_HTML)
        site.route("POST", "/objednavka/1001/cancel", status=500)

        with pytest.raises(OrderOperationError):
            await shop.orders.cancel_order("1001")
