"""
Exception hierarchy for the storefront client.

Transport failures are raised as typed exceptions. Entity parse failures are
never raised: they surface as None or a shortened list. Mutation failures
after both paths are exhausted are returned as a MutationOutcome; only form
discovery problems are raised from the mutator.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base class for all client errors."""


# ============================================================
# TRANSPORT
# ============================================================

class TransportError(StorefrontError):
    """Base class for failures raised by the rate-limited transport."""


class RateLimitExceeded(TransportError):
    """The fixed-window request quota is exhausted. Raised locally, before any I/O."""

    def __init__(self, limit: int, window_seconds: float, retry_after: float):
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit of {limit} requests per {window_seconds:g}s exceeded; "
            f"window resets in {retry_after:.1f}s"
        )


class NetworkError(TransportError):
    """Connection-level failure reported by the HTTP library."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Network error for {url}{detail}")


class TransportTimeout(NetworkError):
    """Connect or read timeout."""


class HttpStatusError(TransportError):
    """The server answered with a status code >= 400."""

    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"HTTP {status} for {url}")

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500


# ============================================================
# FORM DISCOVERY
# ============================================================

class FormDiscoveryError(StorefrontError):
    """No usable form could be located for a mutation intent."""

    def __init__(self, intent: str, message: Optional[str] = None):
        self.intent = intent
        super().__init__(message or f"Could not locate a form for intent '{intent}'")


class CsrfTokenMissing(FormDiscoveryError):
    """The reference page carries no anti-forgery token for the intent."""

    def __init__(self, intent: str):
        super().__init__(intent, f"Could not extract CSRF token for intent '{intent}'")


# ============================================================
# SERVICE LEVEL
# ============================================================

class AuthenticationRequired(StorefrontError):
    """Raised by calling services when the session is not valid."""

    def __init__(self, action: str = "perform this action"):
        self.action = action
        super().__init__(f"User must be authenticated to {action}")


class LoginFailed(StorefrontError):
    """The login form was submitted but the storefront did not confirm a session."""


class CartOperationError(StorefrontError):
    """A cart mutation failed on both the API and the form path."""


class OrderOperationError(StorefrontError):
    """An order mutation failed on both the API and the form path."""
