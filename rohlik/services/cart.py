"""
Shopping cart reads and dual-path cart mutations.
"""

from dataclasses import replace
from typing import Optional

from ..base import CartSummary
from ..errors import CartOperationError
from ..mutator import MutationIntent, MutationOutcome
from ..session import utcnow
from .base import BaseService
from .product import ProductService, product_path

CART_PATH = '/kosik'
CART_CACHE_KEY = 'current'


class CartService(BaseService):
    """
    Cart operations for the logged-in user.

    Every mutation goes API-first with the cart form as fallback; a failure
    on both paths is escalated to CartOperationError. Successful mutations
    return the freshly fetched cart.
    """

    name = 'cart'

    def __init__(self, context, products: ProductService):
        super().__init__(context)
        self.products = products

    async def get_cart(self) -> CartSummary:
        """Fetch and parse the cart page; the result is cached briefly."""
        self.require_auth('view the cart')

        html = await self.transport.fetch_text(CART_PATH)
        cart = replace(self.engine.parse_cart(html), last_updated=utcnow())
        self.cache.put('cart', CART_CACHE_KEY, cart)

        self.logger.info(
            f"Cart fetched: {len(cart.items)} items, {cart.total_items} pieces, "
            f"{cart.final_total} {cart.currency}"
        )
        return cart

    def get_cached_cart(self) -> Optional[CartSummary]:
        return self.cache.get('cart', CART_CACHE_KEY)

    def clear_cart_cache(self) -> None:
        self.cache.invalidate('cart', CART_CACHE_KEY)

    async def _mutate(self, intent: MutationIntent) -> MutationOutcome:
        outcome = await self.mutator.execute(intent)
        self.clear_cart_cache()
        if not outcome.success:
            raise CartOperationError(f"Failed to {intent.name}: {outcome.describe()}")
        return outcome

    async def add_to_cart(self, product_id: str, quantity: int = 1) -> CartSummary:
        """
        Add a product to the cart.

        Raises:
            AuthenticationRequired: Not logged in
            CartOperationError: Invalid quantity, unknown product, or both paths failed
        """
        self.require_auth('add items to the cart')
        product_id = str(product_id)
        if quantity < 1:
            raise CartOperationError(f"Quantity must be at least 1 (got {quantity})")

        product = await self.products.get_product(product_id)
        if product is None:
            raise CartOperationError(f"Product {product_id} not found")

        self.logger.info(f"Adding {quantity}x {product_id} ({product.name}) to cart")
        await self._mutate(MutationIntent(
            name=f"add product {product_id} to cart",
            api_path=self.context.api_path('/cart/add'),
            api_payload={'productId': product_id, 'quantity': quantity},
            reference_path=product_path(product_id),
            form_intent='add_to_cart',
            form_values={'product_id': product_id, 'quantity': quantity},
        ))
        return await self.get_cart()

    async def update_cart_item(self, product_id: str, quantity: int) -> CartSummary:
        """Set the quantity of a cart item; zero or less removes it."""
        product_id = str(product_id)
        if quantity <= 0:
            return await self.remove_from_cart(product_id)

        self.require_auth('update the cart')
        self.logger.info(f"Updating cart item {product_id} to quantity {quantity}")
        await self._mutate(MutationIntent(
            name=f"update cart item {product_id}",
            api_path=self.context.api_path('/cart/update'),
            api_payload={'productId': product_id, 'quantity': quantity},
            reference_path=CART_PATH,
            form_intent='update_cart',
            form_params={'product_id': product_id},
            form_values={'product_id': product_id, 'quantity': quantity},
        ))
        return await self.get_cart()

    async def remove_from_cart(self, product_id: str) -> CartSummary:
        """Remove a product from the cart."""
        self.require_auth('remove items from the cart')
        product_id = str(product_id)

        self.logger.info(f"Removing {product_id} from cart")
        await self._mutate(MutationIntent(
            name=f"remove product {product_id} from cart",
            api_path=self.context.api_path('/cart/remove'),
            api_payload={'productId': product_id},
            reference_path=CART_PATH,
            form_intent='remove_from_cart',
            form_params={'product_id': product_id},
            form_values={'product_id': product_id, 'quantity': 0},
        ))
        return await self.get_cart()

    async def clear_cart(self) -> CartSummary:
        """Remove every item, one mutation per item."""
        cart = await self.get_cart()
        for item in cart.items:
            cart = await self.remove_from_cart(item.product_id)
        self.logger.info("Cart cleared")
        return cart
