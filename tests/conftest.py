"""
Pytest configuration and fixtures for storefront client tests.

Every test talks to an in-memory storefront served through
httpx.MockTransport; nothing leaves the process.
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl

import httpx
import pytest

from rohlik.config import Settings
from rohlik.context import create_context
from rohlik.storefront import Storefront

BASE_URL = "https://www.rohlik.cz"


class FakeClock:
    """Controllable wall clock; monotonic() reports seconds since the start."""

    def __init__(self, start=datetime(2024, 3, 12, 10, 0, tzinfo=timezone.utc)):
        self.start = start
        self.now = start

    def __call__(self):
        return self.now

    def monotonic(self):
        return (self.now - self.start).total_seconds()

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeStorefront:
    """
    Routes (METHOD, path) to canned responses and records every request.

    Unrouted requests get a 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def route(self, method, path, status=200, html=None, json=None, headers=None, handler=None):
        def respond(request):
            if json is not None:
                return httpx.Response(status, json=json, headers=headers)
            return httpx.Response(status, text=html or "", headers=headers)

        self.routes[(method.upper(), path)] = handler or respond

    def __call__(self, request):
        self.requests.append(request)
        respond = self.routes.get((request.method, request.url.path))
        if respond is None:
            return httpx.Response(404, text="Not found")
        return respond(request)

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def paths(self):
        return [r.url.path for r in self.requests]


def form_body(request):
    """Decoded application/x-www-form-urlencoded body of a recorded request."""
    return dict(parse_qsl(request.content.decode(), keep_blank_values=True))


# ============================================================
# PAGES
# ============================================================

PRODUCT_HTML = """
<html>
<head><meta property="og:image" content="/images/1440986.jpg"></head>
<body>
  <nav class="breadcrumbs"><a href="/">Rohlik</a><a href="/c300101000-maso">Maso a ryby</a></nav>
  <h1 data-test="product-title">Sutcha Prime Rump steak</h1>
  <div class="product-price">289,90 Kč</div>
  <div class="price-original">349,90 Kč</div>
  <span class="unit-price">1 159,60 Kč / kg</span>
  <span class="product-weight">250 g</span>
  <span class="product-tag">Novinka</span>
  <span class="badge">Bio</span>
  <table class="nutrition-table">
    <tr><th>Energie</th><td>850 kJ</td></tr>
    <tr><th>Tuky</th><td>12 g</td></tr>
  </table>
  <form class="add-to-cart-form" action="/kosik/pridat" method="post">
    <input type="hidden" name="_token" value="cart-token">
    <input type="hidden" name="product_id" value="1440986">
    <input type="number" name="quantity" value="1">
    <button type="submit">Do košíku</button>
  </form>
</body>
</html>
"""

CART_HTML = """
<html><body>
<div class="cart">
  <div class="cart-item" data-product-id="1440986">
    <span class="product-name">Sutcha Prime Rump steak</span>
    <span class="item-price">289,90 Kč</span>
    <input type="number" name="quantity" value="2">
    <span class="item-total">579,80 Kč</span>
    <span class="availability">Skladem</span>
  </div>
  <div class="cart-item" data-product-id="1294559">
    <span class="product-name">Okurka hadovka</span>
    <span class="item-price">19,90 Kč</span>
    <input type="number" name="quantity" value="3">
  </div>
</div>
<div class="cart-summary">
  <span class="delivery-fee">49 Kč</span>
  <span class="total-price">639,50 Kč</span>
</div>
</body></html>
"""

LOGIN_HTML = """
<html><body>
<form action="/prihlaseni" method="post" class="login-form">
  <input type="hidden" name="_token" value="login-token">
  <input type="email" name="email">
  <input type="password" name="password">
  <input type="checkbox" name="remember" value="1">
  <button type="submit">Přihlásit</button>
</form>
</body></html>
"""

PROFILE_HTML = """
<html><body>
<div class="user-info" data-user-id="u-77">
  <span class="user-name">Jana Nováková</span>
  <span class="user-email">jana@example.cz</span>
</div>
</body></html>
"""


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        rohlik_email=None,
        rohlik_password=None,
        rate_limit_requests_per_minute=100,
        product_batch_size=2,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def site():
    """The fake storefront behind the HTTP client."""
    return FakeStorefront()


@pytest.fixture
def context(settings, clock, site):
    """Storefront context wired to the fake storefront and the fake clock."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(site))
    return create_context(settings, client=client, clock=clock, monotonic=clock.monotonic)


@pytest.fixture
def shop(context):
    return Storefront(context, batch_delay=0)


@pytest.fixture
def logged_in(context):
    """Mark the shared session authenticated without going through the login form."""
    context.session.set_authenticated("sess-1234567890", email="jana@example.cz")
    return context.session
