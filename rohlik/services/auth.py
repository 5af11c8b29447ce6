"""
Authentication against the storefront login form.
"""

from datetime import datetime
from typing import Optional

import httpx

from ..base import AuthStatus, UserProfile
from ..errors import HttpStatusError, LoginFailed, StorefrontError
from ..session import SESSION_COOKIE_HINTS
from ..utils.normalizers import mask_email, mask_identifier
from .base import BaseService

LOGIN_PATH = '/prihlaseni'
LOGOUT_PATH = '/odhlaseni'
PROFILE_PATH = '/muj-ucet'


class AuthService(BaseService):
    """
    Login, logout and session checks.

    Usage:
        auth = AuthService(context)
        status = await auth.login('jana@example.cz', 'secret')
        profile = await auth.get_user_profile()
    """

    name = 'auth'

    def __init__(self, context):
        super().__init__(context)
        self._login_time: Optional[datetime] = None

    @staticmethod
    def login_succeeded(response: httpx.Response) -> bool:
        """
        Whether a login POST (sent without following redirects) was accepted.

        Success is a redirect that either sets a session-like cookie or points
        away from the login page.
        """
        if not 300 <= response.status_code < 400:
            return False

        cookie_names = [
            header.split('=', 1)[0].strip().lower()
            for header in response.headers.get_list('set-cookie')
        ]
        has_session_cookie = any(
            hint in name for name in cookie_names for hint in SESSION_COOKIE_HINTS
        )
        location = response.headers.get('location', '')
        redirected_away = bool(location) and LOGIN_PATH.strip('/') not in location

        return has_session_cookie or redirected_away

    async def login(self, email: str, password: str) -> AuthStatus:
        """
        Log in with account credentials.

        Args:
            email: Account email
            password: Account password

        Returns:
            AuthStatus of the new session

        Raises:
            CsrfTokenMissing: The login page carries no token
            LoginFailed: The storefront did not accept the credentials
            TransportError: The login page or submission could not be reached
        """
        self.logger.info(f"Starting authentication for {mask_email(email)}")

        page = await self.transport.get(LOGIN_PATH)
        form = self.engine.discover_form(page.text, 'login', page_url=str(page.url))
        self.logger.debug(f"Login form found, action {form.action}")

        fields = form.compose({'email': email, 'password': password, 'remember': '1'})
        response = await self.transport.post_form(
            form.action,
            fields,
            headers={'Referer': self.transport.resolve(LOGIN_PATH)},
            follow_redirects=False,
        )

        if not self.login_succeeded(response):
            self.logger.error(f"Authentication failed for {mask_email(email)} (HTTP {response.status_code})")
            self.session.clear_session()
            self._login_time = None
            raise LoginFailed("Login failed - invalid credentials or authentication error")

        session_id = self.session.session_id_from_cookies()
        self.session.set_authenticated(session_id, email=email)
        self._login_time = self.session.state.last_activity

        try:
            profile = await self._fetch_profile()
        except StorefrontError as e:
            self.logger.warning(f"Logged in but could not read the profile page: {e}")
            profile = None
        if profile is not None and profile.user_id:
            self.session.set_authenticated(session_id, user_id=profile.user_id, email=email)

        self.logger.info(
            f"Authentication successful for {mask_email(email)} "
            f"(user {profile.user_id if profile else None})"
        )
        return self.status()

    async def login_with_settings(self) -> AuthStatus:
        """Log in with the credentials from settings."""
        credentials = self.settings.credentials()
        if credentials is None:
            raise LoginFailed("No credentials configured (ROHLIK_EMAIL / ROHLIK_PASSWORD)")
        return await self.login(credentials['email'], credentials['password'])

    async def refresh_if_needed(self) -> bool:
        """
        Log in again when the session is close to expiry and credentials are configured.

        Returns:
            True if a fresh login was performed
        """
        if not self.session.needs_renewal() or not self.settings.has_credentials:
            return False
        self.logger.info("Session close to expiry, renewing")
        await self.login_with_settings()
        return True

    async def logout(self) -> None:
        """
        Log out. The remote call is best effort; local state is always cleared.
        """
        was_authenticated = self.session.state.is_authenticated
        self.logger.info(f"Starting logout (authenticated: {was_authenticated})")

        try:
            if was_authenticated:
                await self.transport.get(LOGOUT_PATH)
        except StorefrontError as e:
            self.logger.warning(f"Remote logout failed, clearing local session anyway: {e}")
        finally:
            self.session.clear_session()
            self.cache.clear()
            self._login_time = None

        self.logger.info("Logout completed")

    def status(self) -> AuthStatus:
        """Current authentication status with the session id redacted."""
        if not self.session.is_valid():
            return AuthStatus(is_authenticated=False)
        state = self.session.state
        return AuthStatus(
            is_authenticated=True,
            email=state.email,
            user_id=state.user_id,
            session_id=mask_identifier(state.session_id),
            login_time=self._login_time,
        )

    def is_authenticated(self) -> bool:
        return self.session.is_valid()

    async def _fetch_profile(self) -> Optional[UserProfile]:
        html = await self.transport.fetch_text(PROFILE_PATH)
        return self.engine.parse_user_profile(html, fallback_email=self.session.state.email)

    async def get_user_profile(self) -> Optional[UserProfile]:
        """Profile of the logged-in user, or None when not authenticated."""
        if not self.is_authenticated():
            return None
        return await self._fetch_profile()

    async def validate_session(self) -> bool:
        """
        Probe a protected page to confirm the storefront still knows the session.

        A login form on the account page, or a 401/403, means the storefront
        has dropped the session; the local session is cleared in that case.
        Network failures propagate and leave the session untouched.
        """
        if not self.session.is_valid():
            return False

        try:
            html = await self.transport.fetch_text(PROFILE_PATH)
        except HttpStatusError as e:
            if e.status in (401, 403):
                self.logger.info(f"Session rejected by storefront (HTTP {e.status})")
                self.session.clear_session()
                return False
            raise

        if self.engine.has_login_form(html):
            self.logger.info("Session validation failed - user appears to be logged out")
            self.session.clear_session()
            return False

        return True
