"""
Checkout, order history, order details and cancellation.
"""

from dataclasses import replace
from decimal import Decimal
from typing import List, Optional

from ..base import CheckoutRequest, CheckoutResult, CheckoutValidation, Order, OrderStatus
from ..errors import FormDiscoveryError, HttpStatusError, OrderOperationError, StorefrontError, TransportError
from ..mutator import MutationIntent
from ..session import utcnow
from .base import BaseService
from .cart import CartService
from .location import LocationService

CHECKOUT_PATH = '/checkout'
ORDERS_PATH = '/objednavky'
ORDER_PATH = '/objednavka'

# Availability labels that mark a cart item as not orderable
UNAVAILABLE_MARKERS = ('unavailable', 'out of stock', 'nedostupn', 'vyprodáno')


def order_path(order_id: str) -> str:
    return f"{ORDER_PATH}/{order_id}"


class OrderService(BaseService):
    """
    Order placement and order lookups.

    Usage:
        orders = OrderService(context, cart_service, location_service)
        validation = await orders.validate_checkout()
        if validation.is_valid:
            result = await orders.checkout(CheckoutRequest(payment_method='card'))
    """

    name = 'orders'

    def __init__(self, context, cart: CartService, location: LocationService):
        super().__init__(context)
        self.cart = cart
        self.location = location

    async def get_payment_methods(self) -> List[str]:
        """Payment methods offered on the checkout page (storefront defaults on failure)."""
        try:
            html = await self.transport.fetch_text(CHECKOUT_PATH)
        except TransportError as e:
            self.logger.warning(f"Failed to get payment methods, using defaults: {e}")
            return self.engine.parse_payment_methods('')
        return self.engine.parse_payment_methods(html)

    async def validate_checkout(self) -> CheckoutValidation:
        """
        Check that the current cart can be ordered.

        Problems are reported in the result, not raised.
        """
        if not self.session.is_valid():
            return CheckoutValidation(is_valid=False, errors=('User must be authenticated to checkout',))

        self.logger.info("Validating checkout requirements")
        errors = []
        warnings = []

        cart = await self.cart.get_cart()
        if cart.is_empty:
            errors.append('Cart is empty')

        if self.location.get_current_address() is None:
            errors.append('Delivery address must be set')

        delivery_fee = await self.location.calculate_delivery_fee() or Decimal('0')
        payment_methods = await self.get_payment_methods()

        subtotal = cart.total_price
        min_order_value = Decimal(self.settings.min_order_value)
        if subtotal < min_order_value:
            errors.append(f"Minimum order value is {min_order_value} Kč (current: {subtotal} Kč)")

        unavailable = [
            item.name for item in cart.items
            if item.availability and any(m in item.availability.lower() for m in UNAVAILABLE_MARKERS)
        ]
        if unavailable:
            warnings.append(f"Some items may not be available: {', '.join(unavailable)}")

        validation = CheckoutValidation(
            is_valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            estimated_total=subtotal + delivery_fee,
            delivery_fee=delivery_fee,
            available_payment_methods=tuple(payment_methods),
        )
        self.logger.info(
            f"Checkout validation: valid={validation.is_valid}, {len(errors)} errors, "
            f"{len(warnings)} warnings, estimated total {validation.estimated_total}"
        )
        return validation

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """
        Place an order for the current cart.

        The checkout form is submitted with its anti-forgery token; the new
        order is read from the confirmation page, cached, and the cart is
        cleared.
        """
        if not self.session.is_valid():
            return CheckoutResult(success=False, errors=('User must be authenticated to checkout',))

        self.logger.info(f"Starting checkout (payment {request.payment_method}, slot {request.delivery_slot_id})")

        validation = await self.validate_checkout()
        if not validation.is_valid:
            return CheckoutResult(success=False, errors=validation.errors)

        cart = await self.cart.get_cart()
        address = self.location.get_current_address()

        values = {
            'payment_method': request.payment_method,
            'delivery_slot_id': request.delivery_slot_id or '',
            'special_instructions': request.special_instructions or '',
            'confirm_inventory': '1' if request.confirm_inventory else '0',
        }
        for index, item in enumerate(cart.items):
            values[f'items[{index}][product_id]'] = item.product_id
            values[f'items[{index}][quantity]'] = item.quantity

        try:
            page = await self.transport.get(CHECKOUT_PATH)
            form = self.engine.discover_form(page.text, 'checkout', page_url=str(page.url))
            response = await self.transport.post_form(
                form.action,
                form.compose(values),
                headers={'Referer': self.transport.resolve(CHECKOUT_PATH)},
            )
        except (FormDiscoveryError, TransportError) as e:
            self.logger.error(f"Failed to submit order: {e}")
            return CheckoutResult(success=False, errors=(str(e),))

        order = self.engine.parse_order_confirmation(response.text, cart, request, now=utcnow())
        if order is None:
            return CheckoutResult(
                success=False,
                errors=('Order was submitted but no confirmation could be read',),
            )
        order = replace(order, delivery_address=address)

        self.cache.put('order', order.id, order)
        try:
            await self.cart.clear_cart()
        except StorefrontError as e:
            self.logger.warning(f"Order {order.order_number} placed but the cart could not be cleared: {e}")

        self.logger.info(f"Checkout completed: order {order.order_number}, total {order.total}")
        return CheckoutResult(
            success=True,
            order=order,
            confirmation_url=self.transport.resolve(order_path(order.id)),
        )

    async def get_order_history(self) -> List[Order]:
        self.require_auth('view order history')
        html = await self.transport.fetch_text(ORDERS_PATH)
        orders = self.engine.parse_order_history(html)
        self.logger.info(f"Order history fetched: {len(orders)} orders")
        return orders

    async def _load_order(self, order_id: str) -> Optional[Order]:
        try:
            html = await self.transport.fetch_text(order_path(order_id))
        except HttpStatusError as e:
            if e.status == 404:
                self.logger.info(f"Order {order_id} not found")
                return None
            raise
        return self.engine.parse_order_details(html, order_id)

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Order details (cached)."""
        self.require_auth('view order details')
        order_id = str(order_id)
        return await self.cache.get_or_load('order', order_id, lambda: self._load_order(order_id))

    async def track_order(self, order_id: str) -> Optional[Order]:
        """Fresh order details, bypassing the cache."""
        self.require_auth('track orders')
        order_id = str(order_id)
        self.cache.invalidate('order', order_id)
        order = await self.get_order(order_id)
        if order is not None:
            self.logger.info(f"Order {order_id} status: {order.status.value}")
        return order

    async def cancel_order(self, order_id: str) -> bool:
        """
        Cancel an order.

        Raises:
            AuthenticationRequired: Not logged in
            OrderOperationError: Both paths failed
        """
        self.require_auth('cancel orders')
        order_id = str(order_id)
        self.logger.info(f"Cancelling order {order_id}")

        outcome = await self.mutator.execute(MutationIntent(
            name=f"cancel order {order_id}",
            api_path=self.context.api_path(f'/orders/{order_id}/cancel'),
            reference_path=order_path(order_id),
            form_intent='cancel_order',
            form_params={'order_id': order_id},
        ))
        if not outcome.success:
            raise OrderOperationError(f"Failed to cancel order {order_id}: {outcome.describe()}")

        cached = self.cache.get('order', order_id)
        if cached is not None:
            self.cache.put('order', order_id, replace(cached, status=OrderStatus.CANCELLED, updated_at=utcnow()))

        self.logger.info(f"Order {order_id} cancelled via {outcome.succeeded_via}")
        return True
