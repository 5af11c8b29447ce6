"""
Process-wide storefront context.

Built once at startup by create_context() and handed to every service, so the
session, rate limiter, transport, cache and mutator are shared without module
level singletons.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx

from .cache import EntityCache
from .config import Settings
from .crawlers.rate_limiter import FixedWindowRateLimiter
from .crawlers.transport import RateLimitedTransport
from .extraction.engine import ExtractionEngine
from .mutator import DualPathMutator
from .session import SessionStore, utcnow

logger = logging.getLogger(__name__)


@dataclass
class StorefrontContext:
    """Shared collaborators for all services."""
    settings: Settings
    session: SessionStore
    limiter: FixedWindowRateLimiter
    transport: RateLimitedTransport
    engine: ExtractionEngine
    cache: EntityCache
    mutator: DualPathMutator

    def api_path(self, path: str) -> str:
        """Structured endpoint path under the configured API prefix."""
        return self.settings.rohlik_api_prefix.rstrip('/') + '/' + path.lstrip('/')

    def health(self) -> Dict[str, Any]:
        """Connection state and redacted session snapshot for status reporting."""
        return {
            'status': 'healthy',
            'base_url': self.settings.rohlik_base_url,
            'client_open': self.transport.is_open,
            'session': self.session.info(),
            'rate_limit': {
                'limit': self.limiter.limit,
                'window_seconds': self.limiter.window_seconds,
                'remaining': self.limiter.remaining,
                'reset_in': round(self.limiter.reset_in(), 1),
            },
            'cache': self.cache.stats(),
        }

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> 'StorefrontContext':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_context(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], datetime] = utcnow,
    monotonic: Optional[Callable[[], float]] = None,
) -> StorefrontContext:
    """
    Build the shared context.

    Args:
        settings: Client settings (defaults to a fresh Settings())
        client: Pre-built httpx client, e.g. one backed by httpx.MockTransport
        clock: Wall clock for session expiry
        monotonic: Clock for the rate limiter and cache TTLs

    Returns:
        StorefrontContext
    """
    settings = settings or Settings()
    timers = {'clock': monotonic} if monotonic is not None else {}

    session = SessionStore(settings.session_timeout, clock=clock)
    limiter = FixedWindowRateLimiter(settings.rate_limit_requests_per_minute, 60.0, **timers)
    transport = RateLimitedTransport(
        settings.rohlik_base_url,
        session,
        limiter,
        timeout=settings.request_timeout,
        headers={
            'User-Agent': settings.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': settings.accept_language,
            'Cache-Control': 'no-cache',
            'Pragma': 'no-cache',
        },
        client=client,
    )
    engine = ExtractionEngine(settings.rohlik_base_url, currency=settings.currency)
    cache = EntityCache(settings.cache_ttls, **timers)
    mutator = DualPathMutator(transport, engine)

    logger.info(
        f"Storefront context ready for {settings.rohlik_base_url} "
        f"({settings.rate_limit_requests_per_minute} req/min, "
        f"session timeout {settings.session_timeout_minutes} min)"
    )
    return StorefrontContext(
        settings=settings,
        session=session,
        limiter=limiter,
        transport=transport,
        engine=engine,
        cache=cache,
        mutator=mutator,
    )
