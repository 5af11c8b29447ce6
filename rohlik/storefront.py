"""
Storefront - wires the shared context and all calling services together.
"""

from typing import Any, Dict, Optional

from .config import Settings
from .context import StorefrontContext, create_context
from .services import AuthService, CartService, LocationService, OrderService, ProductService



class Storefront:
    """
    One context, one instance of each service.

    Usage:
        async with Storefront.create(settings) as shop:
            await shop.auth.login(email, password)
            cart = await shop.cart.add_to_cart('1440986', 2)
    """

    def __init__(self, context: StorefrontContext, batch_delay: float = 1.0):
        """
        Initialize the services.

        Args:
            context: Shared storefront context
            batch_delay: Pause between product batches (seconds)
        """
        self.context = context
        self.auth = AuthService(context)
        self.products = ProductService(context, batch_delay=batch_delay)
        self.cart = CartService(context, self.products)
        self.location = LocationService(context)
        self.orders = OrderService(context, self.cart, self.location)

    @classmethod
    def create(cls, settings: Optional[Settings] = None, batch_delay: float = 1.0, **context_options) -> 'Storefront':
        """Build the context from settings and wire the services onto it."""
        return cls(create_context(settings, **context_options), batch_delay=batch_delay)

    def health(self) -> Dict[str, Any]:
        report = self.context.health()
        report['authenticated'] = self.auth.is_authenticated()
        return report

    async def close(self) -> None:
        await self.context.close()

    async def __aenter__(self) -> 'Storefront':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
