"""
Tests for the dual-path mutator.
"""

import json

import pytest

from rohlik.errors import CsrfTokenMissing
from rohlik.mutator import API_PATH, FORM_PATH, MutationIntent, MutationState

from conftest import PRODUCT_HTML, form_body


def add_to_cart_intent(api_path="/api/cart/add"):
    return MutationIntent(
        name="add product 1440986 to cart",
        api_path=api_path,
        api_payload={"productId": "1440986", "quantity": 2},
        reference_path="/1440986-",
        form_intent="add_to_cart",
        form_values={"product_id": "1440986", "quantity": 2},
    )


class TestApiPath:
    """Test the structured API path."""

    @pytest.mark.asyncio
    async def test_api_success_skips_form(self, context, site):
        site.route("POST", "/api/cart/add", json={"success": True, "cartId": "c-1"})

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.success
        assert outcome.state is MutationState.SUCCESS
        assert outcome.succeeded_via == API_PATH
        assert outcome.data["cartId"] == "c-1"
        assert site.paths() == ["/api/cart/add"]
        assert json.loads(site.requests[0].content) == {"productId": "1440986", "quantity": 2}

    @pytest.mark.asyncio
    async def test_success_flag_must_be_true(self, context, site):
        site.route("POST", "/api/cart/add", json={"success": "yes"})
        site.route("GET", "/1440986-", html=PRODUCT_HTML)
        site.route("POST", "/kosik/pridat", html="ok")

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.succeeded_via == FORM_PATH
        assert outcome.attempts[0].path == API_PATH
        assert outcome.attempts[0].succeeded is False

    @pytest.mark.asyncio
    async def test_non_json_response_falls_back(self, context, site):
        site.route("POST", "/api/cart/add", html="<html>Košík</html>")
        site.route("GET", "/1440986-", html=PRODUCT_HTML)
        site.route("POST", "/kosik/pridat", html="ok")

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.succeeded_via == FORM_PATH
        assert outcome.attempts[0].detail == "Response is not JSON"


class TestFormPath:
    """Test the form fallback."""

    @pytest.mark.asyncio
    async def test_form_fallback_after_api_error(self, context, site):
        site.route("POST", "/api/cart/add", status=500)
        site.route("GET", "/1440986-", html=PRODUCT_HTML)
        site.route("POST", "/kosik/pridat", html="ok")

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.success
        assert outcome.succeeded_via == FORM_PATH
        assert [a.path for a in outcome.attempts] == [API_PATH, FORM_PATH]
        assert outcome.attempts[0].status == 500
        assert site.paths() == ["/api/cart/add", "/1440986-", "/kosik/pridat"]

        body = form_body(site.calls("POST", "/kosik/pridat")[0])
        assert body == {"_token": "cart-token", "product_id": "1440986", "quantity": "2"}

    @pytest.mark.asyncio
    async def test_form_only_intent(self, context, site):
        site.route("GET", "/1440986-", html=PRODUCT_HTML)
        site.route("POST", "/kosik/pridat", html="ok")

        outcome = await context.mutator.execute(add_to_cart_intent(api_path=None))

        assert outcome.success
        assert len(outcome.attempts) == 1
        assert site.paths() == ["/1440986-", "/kosik/pridat"]

    @pytest.mark.asyncio
    async def test_get_form_sends_fields_as_query(self, context, site):
        page = """
        <form class="add-to-cart-form" action="/kosik/pridat" method="GET">
          <input type="hidden" name="_token" value="cart-token">
        </form>
        """
        site.route("GET", "/1440986-", html=page)
        site.route("GET", "/kosik/pridat", html="ok")

        outcome = await context.mutator.execute(add_to_cart_intent(api_path=None))

        assert outcome.success
        submitted = site.calls("GET", "/kosik/pridat")[0]
        assert dict(submitted.url.params) == {"_token": "cart-token", "product_id": "1440986", "quantity": "2"}
        assert site.calls("POST") == []

    @pytest.mark.asyncio
    async def test_missing_token_raises(self, context, site):
        site.route("POST", "/api/cart/add", status=500)
        site.route("GET", "/1440986-", html="<h1>Sutcha Prime Rump steak</h1>")

        with pytest.raises(CsrfTokenMissing):
            await context.mutator.execute(add_to_cart_intent())

        assert site.calls("POST", "/kosik/pridat") == []

    @pytest.mark.asyncio
    async def test_both_paths_failing(self, context, site):
        site.route("POST", "/api/cart/add", status=503)
        site.route("GET", "/1440986-", html=PRODUCT_HTML)
        site.route("POST", "/kosik/pridat", status=500)

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.success is False
        assert outcome.state is MutationState.FAILED
        assert outcome.succeeded_via is None
        assert [a.status for a in outcome.attempts] == [503, 500]
        assert "api:" in outcome.describe()
        assert "form:" in outcome.describe()

    @pytest.mark.asyncio
    async def test_unreachable_reference_page_is_recorded(self, context, site):
        site.route("POST", "/api/cart/add", status=500)

        outcome = await context.mutator.execute(add_to_cart_intent())

        assert outcome.state is MutationState.FAILED
        assert outcome.attempts[1].path == FORM_PATH
        assert outcome.attempts[1].status == 404
