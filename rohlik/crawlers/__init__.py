"""HTTP transport for the storefront: rate limiting, cookies, typed errors."""

from .rate_limiter import FixedWindowRateLimiter
from .transport import RateLimitedTransport, sanitize_headers

__all__ = ['FixedWindowRateLimiter', 'RateLimitedTransport', 'sanitize_headers']
