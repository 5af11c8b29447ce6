"""
Base class for storefront services.
"""

import logging

from ..context import StorefrontContext
from ..errors import AuthenticationRequired


class BaseService:
    """
    Shared plumbing for the calling services.

    Subclasses set `name` and use the context's transport, engine, cache and
    mutator. Authentication-guarded operations call require_auth() first.
    """

    name = 'service'

    def __init__(self, context: StorefrontContext):
        """
        Initialize the service.

        Args:
            context: Shared storefront context
        """
        self.context = context
        self.settings = context.settings
        self.session = context.session
        self.transport = context.transport
        self.engine = context.engine
        self.cache = context.cache
        self.mutator = context.mutator
        self.logger = logging.getLogger(f"rohlik.services.{self.name}")

    def require_auth(self, action: str) -> None:
        """
        Raise AuthenticationRequired unless the session is valid.

        An expired session is evicted by this check.
        """
        if not self.session.is_valid():
            self.logger.warning(f"Rejected unauthenticated attempt to {action}")
            raise AuthenticationRequired(action)
