"""
Tests for login, logout and session validation.
"""

import pytest

from rohlik.errors import AuthenticationRequired, CsrfTokenMissing, LoginFailed

from conftest import LOGIN_HTML, PROFILE_HTML, form_body


@pytest.fixture
def login_routes(site):
    site.route("GET", "/prihlaseni", html=LOGIN_HTML)
    site.route("POST", "/prihlaseni", status=302, headers=[
        ("location", "/"),
        ("set-cookie", "PHPSESSID=sess-abc123456; Path=/"),
    ])
    site.route("GET", "/muj-ucet", html=PROFILE_HTML)
    return site


class TestLogin:
    """Test the login form flow."""

    @pytest.mark.asyncio
    async def test_login_success(self, shop, context, clock, login_routes):
        status = await shop.auth.login("jana@example.cz", "secret")

        assert status.is_authenticated is True
        assert status.email == "jana@example.cz"
        assert status.user_id == "u-77"
        assert status.session_id == "sess-abc..."
        assert status.login_time == clock.now
        assert context.session.state.session_id == "sess-abc123456"

    @pytest.mark.asyncio
    async def test_login_submits_form_with_token(self, shop, login_routes):
        await shop.auth.login("jana@example.cz", "secret")

        post = login_routes.calls("POST", "/prihlaseni")[0]
        assert form_body(post) == {
            "_token": "login-token",
            "email": "jana@example.cz",
            "password": "secret",
            "remember": "1",
        }
        assert post.headers["referer"] == "https://www.rohlik.cz/prihlaseni"

    @pytest.mark.asyncio
    async def test_session_cookie_sent_after_login(self, shop, login_routes):
        await shop.auth.login("jana@example.cz", "secret")

        profile_request = login_routes.calls("GET", "/muj-ucet")[0]
        assert profile_request.headers["cookie"] == "PHPSESSID=sess-abc123456"

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, shop, context, site):
        site.route("GET", "/prihlaseni", html=LOGIN_HTML)
        site.route("POST", "/prihlaseni", html=LOGIN_HTML)

        with pytest.raises(LoginFailed):
            await shop.auth.login("jana@example.cz", "wrong")

        assert context.session.is_valid() is False
        assert shop.auth.status().is_authenticated is False

    @pytest.mark.asyncio
    async def test_redirect_back_to_login_page(self, shop, site):
        site.route("GET", "/prihlaseni", html=LOGIN_HTML)
        site.route("POST", "/prihlaseni", status=302, headers={"location": "/prihlaseni?error=1"})

        with pytest.raises(LoginFailed):
            await shop.auth.login("jana@example.cz", "wrong")

    @pytest.mark.asyncio
    async def test_redirect_away_without_session_cookie(self, shop, site):
        site.route("GET", "/prihlaseni", html=LOGIN_HTML)
        site.route("POST", "/prihlaseni", status=302, headers={"location": "/muj-ucet"})
        site.route("GET", "/muj-ucet", html=PROFILE_HTML)

        status = await shop.auth.login("jana@example.cz", "secret")

        assert status.is_authenticated is True
        assert status.session_id is None

    @pytest.mark.asyncio
    async def test_profile_failure_keeps_login(self, shop, site):
        site.route("GET", "/prihlaseni", html=LOGIN_HTML)
        site.route("POST", "/prihlaseni", status=302, headers=[
            ("location", "/"),
            ("set-cookie", "PHPSESSID=sess-abc123456; Path=/"),
        ])

        status = await shop.auth.login("jana@example.cz", "secret")

        assert status.is_authenticated is True
        assert status.user_id is None

    @pytest.mark.asyncio
    async def test_login_page_without_token(self, shop, site):
        site.route("GET", "/prihlaseni", html='<form action="/prihlaseni"><input name="email"></form>')

        with pytest.raises(CsrfTokenMissing):
            await shop.auth.login("jana@example.cz", "secret")

        assert site.calls("POST", "/prihlaseni") == []

    @pytest.mark.asyncio
    async def test_login_with_settings_needs_credentials(self, shop):
        with pytest.raises(LoginFailed):
            await shop.auth.login_with_settings()

    @pytest.mark.asyncio
    async def test_refresh_without_credentials(self, shop, logged_in, clock):
        clock.advance(minutes=25)

        assert logged_in.needs_renewal() is True
        assert await shop.auth.refresh_if_needed() is False


class TestLogout:
    """Test logout."""

    @pytest.mark.asyncio
    async def test_logout_clears_session_and_cache(self, shop, context, site, logged_in):
        site.route("GET", "/odhlaseni", html="bye")
        context.cache.put("product", "1440986", "steak")

        await shop.auth.logout()

        assert logged_in.is_valid() is False
        assert len(context.cache) == 0
        assert site.paths() == ["/odhlaseni"]

    @pytest.mark.asyncio
    async def test_remote_failure_still_clears(self, shop, site, logged_in):
        site.route("GET", "/odhlaseni", status=500)

        await shop.auth.logout()

        assert logged_in.is_valid() is False

    @pytest.mark.asyncio
    async def test_anonymous_logout_sends_nothing(self, shop, site):
        await shop.auth.logout()

        assert site.requests == []


class TestSessionChecks:
    """Test session validation against the storefront."""

    @pytest.mark.asyncio
    async def test_valid_session(self, shop, site, logged_in):
        site.route("GET", "/muj-ucet", html=PROFILE_HTML)

        assert await shop.auth.validate_session() is True
        assert logged_in.is_valid() is True

    @pytest.mark.asyncio
    async def test_login_form_means_logged_out(self, shop, site, logged_in):
        site.route("GET", "/muj-ucet", html=LOGIN_HTML)

        assert await shop.auth.validate_session() is False
        assert logged_in.is_valid() is False

    @pytest.mark.asyncio
    async def test_unauthorized_means_logged_out(self, shop, site, logged_in):
        site.route("GET", "/muj-ucet", status=401)

        assert await shop.auth.validate_session() is False
        assert logged_in.is_valid() is False

    @pytest.mark.asyncio
    async def test_anonymous_session_not_probed(self, shop, site):
        assert await shop.auth.validate_session() is False
        assert site.requests == []

    @pytest.mark.asyncio
    async def test_expired_session_rejected_by_services(self, shop, site, logged_in, clock):
        clock.advance(minutes=31)

        with pytest.raises(AuthenticationRequired):
            await shop.cart.get_cart()

        assert site.requests == []
        assert logged_in.state.is_authenticated is False

    @pytest.mark.asyncio
    async def test_get_user_profile(self, shop, site, logged_in):
        site.route("GET", "/muj-ucet", html=PROFILE_HTML)

        profile = await shop.auth.get_user_profile()

        assert profile.user_id == "u-77"

    @pytest.mark.asyncio
    async def test_get_user_profile_anonymous(self, shop, site):
        assert await shop.auth.get_user_profile() is None
