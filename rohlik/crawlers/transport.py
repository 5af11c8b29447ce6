"""
Rate-limited, session-aware HTTP transport.

Every outbound call goes through RateLimitedTransport: it consumes one unit of
the fixed-window quota, injects the session's cookies, performs the call with
httpx, persists returned cookies into the SessionStore and raises typed errors.
There is no queuing and no retry loop here; both belong to the caller.
"""

import logging
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

import httpx

from ..errors import HttpStatusError, NetworkError, RateLimitExceeded, TransportTimeout
from ..session import SessionStore
from .rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {'cookie', 'set-cookie', 'authorization'}
MAX_REDIRECTS = 5
REDIRECT_STATUSES = {301, 302, 303, 307, 308}


def sanitize_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy of headers with credential-bearing values redacted."""
    if not headers:
        return {}
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers.items()
    return {
        key: '[REDACTED]' if key.lower() in SENSITIVE_HEADERS else value
        for key, value in items
    }


def _cookieless_jar() -> CookieJar:
    """A jar that refuses every cookie, so httpx never keeps its own copy."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


class RateLimitedTransport:
    """
    Wrapper for all requests to the storefront.

    The SessionStore is the only cookie owner: the underlying httpx client is
    given a jar that refuses cookies, and the Cookie header is computed per
    request from the store. Redirects are followed here (not by httpx) so each
    hop gets the right cookies and each hop's Set-Cookie is persisted.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionStore,
        limiter: FixedWindowRateLimiter,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the transport.

        Args:
            base_url: Storefront origin that relative paths resolve against
            session: Cookie and activity owner
            limiter: Shared request quota
            timeout: Connect/read timeout in seconds
            headers: Default browser-like headers
            client: Pre-built httpx client (tests inject one with MockTransport)
        """
        self.base_url = base_url.rstrip('/')
        self.session = session
        self.limiter = limiter
        self.timeout = timeout
        self.headers = headers or {
            'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8',
            'Accept-Language': 'cs-CZ,cs;q=0.9,en;q=0.8',
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        }
        self._client = client
        if self._client is not None:
            self._client.cookies = _cookieless_jar()
            self._client.headers.update(self.headers)
        logger.info(f"Transport initialized for {self.base_url} (timeout {timeout}s)")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=False,
                timeout=self.timeout,
                headers=self.headers,
                cookies=_cookieless_jar(),
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> 'RateLimitedTransport':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def resolve(self, url: str) -> str:
        """Absolute URL for a path relative to the storefront origin."""
        return urljoin(self.base_url + '/', url)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """
        Perform one logical request.

        Args:
            method: HTTP method
            url: Absolute URL or path relative to base_url
            json: JSON body
            data: Form body (sent urlencoded)
            headers: Extra headers for this request
            follow_redirects: Follow 3xx responses; when False the 3xx
                response is returned to the caller

        Returns:
            The final httpx.Response (status < 400)

        Raises:
            RateLimitExceeded: Quota exhausted, nothing was sent
            TransportTimeout / NetworkError: The call did not complete
            HttpStatusError: The server answered with status >= 400
        """
        if not self.limiter.try_acquire():
            retry_after = self.limiter.reset_in()
            logger.warning(f"Rate limit exceeded for {method} {url}, window resets in {retry_after:.1f}s")
            raise RateLimitExceeded(self.limiter.limit, self.limiter.window_seconds, retry_after)

        # Activity counts on every attempt, not only on success
        self.session.update_activity()

        client = await self._get_client()
        method = method.upper()
        target = self.resolve(url)

        for _hop in range(MAX_REDIRECTS + 1):
            request_headers = dict(headers or {})
            cookie_header = await self.session.get_cookie_string(target)
            if cookie_header:
                request_headers['Cookie'] = cookie_header

            logger.debug(f"HTTP request {method} {target} headers={sanitize_headers(request_headers)}")

            try:
                response = await client.request(
                    method, target, json=json, data=data, headers=request_headers
                )
            except httpx.TimeoutException as e:
                logger.error(f"Timeout for {method} {target}: {e}")
                raise TransportTimeout(target, e) from e
            except httpx.HTTPError as e:
                logger.error(f"Network error for {method} {target}: {e}")
                raise NetworkError(target, e) from e

            set_cookies = response.headers.get_list('set-cookie')
            if set_cookies:
                await self.session.set_cookies_from_response(target, set_cookies)

            logger.debug(
                f"HTTP response {response.status_code} for {method} {target} "
                f"headers={sanitize_headers(response.headers)}"
            )

            location = response.headers.get('location')
            if not (follow_redirects and response.status_code in REDIRECT_STATUSES and location):
                break

            target = urljoin(target, location)
            if response.status_code == 303 or (response.status_code in (301, 302) and method == 'POST'):
                method, json, data = 'GET', None, None
        else:
            logger.warning(f"Stopped following redirects after {MAX_REDIRECTS} hops at {target}")

        if response.status_code >= 400:
            body = response.text[:500]
            logger.error(f"HTTP {response.status_code} for {method} {target}")
            raise HttpStatusError(response.status_code, target, body)

        return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request('GET', url, **kwargs)

    async def post_json(self, url: str, payload: Any = None, **kwargs) -> httpx.Response:
        """POST a JSON body (structured API calls)."""
        return await self.request('POST', url, json=payload if payload is not None else {}, **kwargs)

    async def post_form(self, url: str, fields: Mapping[str, Any], **kwargs) -> httpx.Response:
        """POST an application/x-www-form-urlencoded body (form submissions)."""
        return await self.request('POST', url, data=dict(fields), **kwargs)

    async def fetch_text(self, url: str) -> str:
        """
        Fetch a page and return its HTML.

        Args:
            url: URL or path to fetch

        Returns:
            Response body as text
        """
        logger.debug(f"Fetching page: {url}")
        response = await self.get(url)
        return response.text
