"""
Session and cookie lifecycle for the storefront client.

The SessionStore exclusively owns the cookie jar and the authentication
state. State lives for the process lifetime only.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from .utils.normalizers import mask_email, mask_identifier

logger = logging.getLogger(__name__)

# A Set-Cookie header must start with a non-empty name=value pair
_COOKIE_PAIR = re.compile(r"^\s*[^=;,\s]+\s*=")

# Cookie names that identify a server-side session
SESSION_COOKIE_HINTS = ('session', 'sid', 'auth', 'remember')

# Renew once less than this share of the timeout remains
RENEWAL_THRESHOLD = 0.2


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionState:
    """Authentication state. Mutated only by SessionStore."""
    is_authenticated: bool
    last_activity: datetime
    expires_at: datetime
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    email: Optional[str] = None

    def snapshot(self) -> Dict[str, object]:
        """Copy with identifiers redacted, for health/status reporting."""
        return {
            'is_authenticated': self.is_authenticated,
            'last_activity': self.last_activity.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'session_id': mask_identifier(self.session_id),
            'user_id': self.user_id,
            'email': mask_email(self.email),
        }


@dataclass
class _ResponseStub:
    """Minimal request/response pair so httpx.Cookies can parse raw headers."""
    url: str
    headers: List[str] = field(default_factory=list)

    def build(self) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[('set-cookie', header) for header in self.headers],
            request=httpx.Request('GET', self.url),
        )


class SessionStore:
    """
    Owns the cookie jar and authentication state.

    Expiry is sliding: every request attempt moves expires_at forward by the
    configured timeout. Expiry checks are split into a pure predicate
    (is_expired) and an explicit eviction (expire_if_needed).

    Usage:
        store = SessionStore(timedelta(minutes=30))
        store.set_authenticated('abc123', email='jana@example.cz')
        if store.needs_renewal():
            ...
    """

    def __init__(
        self,
        timeout: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize an unauthenticated session.

        Args:
            timeout: Sliding session lifetime
            clock: Returns the current time (timezone-aware)
        """
        self.timeout = timeout
        self._clock = clock
        self._jar = httpx.Cookies()
        self._state = self._fresh_state()
        logger.info(f"Session store initialized (timeout {timeout.total_seconds():.0f}s)")

    def _fresh_state(self) -> SessionState:
        now = self._clock()
        return SessionState(
            is_authenticated=False,
            last_activity=now,
            expires_at=now + self.timeout,
        )

    # ------------------------------------------------------------
    # Authentication state
    # ------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """A copy of the current state."""
        s = self._state
        return SessionState(
            is_authenticated=s.is_authenticated,
            last_activity=s.last_activity,
            expires_at=s.expires_at,
            session_id=s.session_id,
            user_id=s.user_id,
            email=s.email,
        )

    @property
    def cookie_jar(self) -> httpx.Cookies:
        return self._jar

    def set_authenticated(
        self,
        session_id: Optional[str],
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        """Mark the session authenticated and start a fresh expiry window."""
        now = self._clock()
        self._state = SessionState(
            is_authenticated=True,
            last_activity=now,
            expires_at=now + self.timeout,
            session_id=session_id,
            user_id=user_id,
            email=email,
        )
        logger.info(
            f"Session authenticated (session {mask_identifier(session_id)}, "
            f"user {user_id}, email {mask_email(email)})"
        )

    def is_expired(self) -> bool:
        """True once now >= expires_at. No side effects."""
        return self._clock() >= self._state.expires_at

    def expire_if_needed(self) -> bool:
        """
        Clear an authenticated session whose expiry has passed.

        Returns:
            True if the session was evicted by this call
        """
        if self._state.is_authenticated and self.is_expired():
            logger.warning(f"Session expired at {self._state.expires_at.isoformat()}")
            self.clear_session()
            return True
        return False

    def is_valid(self) -> bool:
        """
        Authenticated and not expired.

        Evicts an expired session first (via expire_if_needed), so a second
        call after expiry also reports False.
        """
        self.expire_if_needed()
        return self._state.is_authenticated and not self.is_expired()

    def update_activity(self) -> None:
        """Slide the expiry window forward from now."""
        now = self._clock()
        self._state.last_activity = now
        self._state.expires_at = now + self.timeout
        logger.debug(f"Session activity updated, expires at {self._state.expires_at.isoformat()}")

    def remaining(self) -> timedelta:
        return self._state.expires_at - self._clock()

    def needs_renewal(self) -> bool:
        """True when at most 20% of the timeout is left on an authenticated session."""
        if not self._state.is_authenticated:
            return False
        return self.remaining() <= self.timeout * RENEWAL_THRESHOLD

    def clear_session(self) -> None:
        """Reset to unauthenticated and discard the cookie jar wholesale."""
        was_authenticated = self._state.is_authenticated
        self._state = self._fresh_state()
        self._jar = httpx.Cookies()
        if was_authenticated:
            logger.info("Session cleared")

    def info(self) -> Dict[str, object]:
        """Redacted session snapshot."""
        snapshot = self._state.snapshot()
        snapshot['cookie_count'] = len(self._jar.jar)
        return snapshot

    # ------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------

    async def get_cookie_string(self, url: str) -> str:
        """
        Cookie header value for a request to url.

        Domain, path, expiry and secure matching follow http.cookiejar rules.
        """
        request = httpx.Request('GET', url)
        try:
            self._jar.set_cookie_header(request)
        except Exception as e:  # noqa: BLE001 - a bad jar entry must not block requests
            logger.error(f"Failed to build cookie header for {url}: {e}")
            return ''
        return request.headers.get('cookie', '')

    async def set_cookies_from_response(self, url: str, raw_headers: Iterable[str]) -> int:
        """
        Persist raw Set-Cookie header values received from url.

        Malformed headers are logged and skipped.

        Returns:
            Number of headers accepted
        """
        accepted = []
        for header in raw_headers:
            if not header or not _COOKIE_PAIR.match(header):
                logger.warning(f"Skipping malformed Set-Cookie header from {url}")
                continue
            accepted.append(header)

        stored = 0
        for header in accepted:
            # One header at a time so a single bad entry cannot drop the rest
            try:
                self._jar.extract_cookies(_ResponseStub(url, [header]).build())
                stored += 1
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Skipping unparsable Set-Cookie header from {url}: {e}")

        if stored:
            logger.debug(f"Stored {stored} cookie(s) from {url}")
        return stored

    def session_id_from_cookies(self) -> Optional[str]:
        """Value of the first cookie whose name looks like a session identifier."""
        for cookie in self._jar.jar:
            name = cookie.name.lower()
            if any(hint in name for hint in SESSION_COOKIE_HINTS):
                return cookie.value
        return None
