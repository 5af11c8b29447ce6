"""
Tests for the session store: expiry, renewal and cookies.
"""

from datetime import timedelta

import pytest

from rohlik.session import SessionStore


@pytest.fixture
def store(clock):
    return SessionStore(timedelta(minutes=30), clock=clock)


class TestAuthenticationState:
    """Test authentication state and sliding expiry."""

    def test_new_session_is_not_valid(self, store):
        assert store.is_valid() is False
        assert store.state.is_authenticated is False

    def test_set_authenticated(self, store, clock):
        store.set_authenticated("sess-1", user_id="u-1", email="jana@example.cz")

        assert store.is_valid() is True
        state = store.state
        assert state.session_id == "sess-1"
        assert state.user_id == "u-1"
        assert state.expires_at == clock.now + timedelta(minutes=30)

    def test_expired_session_is_cleared(self, store, clock):
        """Once expires_at is reached the session is evicted on the validity check."""
        store.set_authenticated("sess-1", email="jana@example.cz")
        clock.advance(minutes=30)

        assert store.is_expired() is True
        assert store.is_valid() is False
        assert store.state.is_authenticated is False
        assert store.state.session_id is None
        assert store.is_valid() is False

    def test_is_expired_has_no_side_effects(self, store, clock):
        store.set_authenticated("sess-1")
        clock.advance(minutes=31)

        assert store.is_expired() is True
        assert store.state.is_authenticated is True
        assert store.expire_if_needed() is True
        assert store.state.is_authenticated is False

    def test_activity_slides_expiry(self, store, clock):
        store.set_authenticated("sess-1")
        clock.advance(minutes=20)
        store.update_activity()
        clock.advance(minutes=20)

        assert store.is_valid() is True
        assert store.remaining() == timedelta(minutes=10)

    def test_needs_renewal_at_twenty_percent(self, store, clock):
        store.set_authenticated("sess-1")

        clock.advance(minutes=23)
        assert store.needs_renewal() is False

        clock.advance(minutes=1)
        assert store.needs_renewal() is True

    def test_anonymous_session_never_needs_renewal(self, store, clock):
        clock.advance(minutes=29)

        assert store.needs_renewal() is False

    def test_info_is_redacted(self, store):
        store.set_authenticated("abcdefghijkl", email="jana.novakova@example.cz")

        info = store.info()

        assert info["session_id"] == "abcdefgh..."
        assert info["email"] == "ja***@example.cz"
        assert info["cookie_count"] == 0


class TestCookies:
    """Test cookie persistence and matching."""

    @pytest.mark.asyncio
    async def test_cookie_round_trip(self, store):
        stored = await store.set_cookies_from_response(
            "https://www.rohlik.cz/prihlaseni", ["PHPSESSID=abc123; Path=/"]
        )

        assert stored == 1
        assert await store.get_cookie_string("https://www.rohlik.cz/kosik") == "PHPSESSID=abc123"

    @pytest.mark.asyncio
    async def test_cookies_are_domain_scoped(self, store):
        await store.set_cookies_from_response("https://www.rohlik.cz/", ["PHPSESSID=abc123; Path=/"])

        assert await store.get_cookie_string("https://www.example.com/") == ""

    @pytest.mark.asyncio
    async def test_malformed_headers_are_skipped(self, store):
        stored = await store.set_cookies_from_response(
            "https://www.rohlik.cz/", ["", "no-pair-here", "lang=cs; Path=/"]
        )

        assert stored == 1
        assert await store.get_cookie_string("https://www.rohlik.cz/") == "lang=cs"

    @pytest.mark.asyncio
    async def test_session_id_from_cookies(self, store):
        await store.set_cookies_from_response(
            "https://www.rohlik.cz/", ["lang=cs; Path=/", "PHPSESSID=abc123; Path=/"]
        )

        assert store.session_id_from_cookies() == "abc123"

    @pytest.mark.asyncio
    async def test_clear_session_discards_jar(self, store):
        await store.set_cookies_from_response("https://www.rohlik.cz/", ["PHPSESSID=abc123; Path=/"])
        store.set_authenticated("abc123")

        store.clear_session()

        assert await store.get_cookie_string("https://www.rohlik.cz/") == ""
        assert store.state.is_authenticated is False
