"""
HTML extraction engine.

Turns storefront pages into typed entities by running the declarative field
chains in selectors.py. Parse failures never raise: a single entity resolves
to None and a list comes back shorter.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..base import (
    CartItem,
    CartSummary,
    CheckoutRequest,
    DeliveryAddress,
    DeliverySlot,
    DiscoveredForm,
    Order,
    OrderItem,
    OrderStatus,
    PickupPoint,
    Product,
    UserProfile,
)
from ..errors import CsrfTokenMissing, FormDiscoveryError
from ..utils.normalizers import compute_discount, parse_order_status
from . import selectors
from .selectors import FORM_INTENTS, TOKEN_FIELD_NAMES, TOKEN_META_SELECTORS
from .strategies import EntitySchema, FieldSpec, Strategy, is_present

logger = logging.getLogger(__name__)

T = TypeVar('T')
Markup = Union[str, bytes, BeautifulSoup]

# Input types that a browser never submits as plain name=value pairs
_SKIPPED_INPUT_TYPES = {'submit', 'button', 'image', 'file', 'reset'}


class ExtractionEngine:
    """
    Stateless HTML-to-entity extractor.

    Usage:
        engine = ExtractionEngine(base_url='https://www.rohlik.cz')
        product = engine.parse_product(html, '1440986')
        products = engine.parse_product_list(search_html)
    """

    def __init__(self, base_url: str = 'https://www.rohlik.cz', currency: str = 'CZK'):
        self.base_url = base_url.rstrip('/')
        self.currency = currency

    # ------------------------------------------------------------
    # Generic machinery
    # ------------------------------------------------------------

    @staticmethod
    def soup(html: Markup) -> BeautifulSoup:
        if isinstance(html, BeautifulSoup):
            return html
        return BeautifulSoup(html or '', 'html.parser')

    @staticmethod
    def _apply(node: Tag, spec: FieldSpec, strategy: Strategy) -> Any:
        raw = strategy.extract(node)
        if not is_present(raw):
            return None
        value = spec.convert(raw)
        if value is None or not spec.validate(value):
            logger.debug(f"{spec.name}: {strategy} gave {raw!r}, rejected")
            return None
        return value

    def extract_value(self, node: Tag, spec: FieldSpec) -> Any:
        """
        Run one field's strategy chain against node.

        Returns:
            The first accepted value, the merged values for collect fields,
            or the field default when no strategy succeeds
        """
        if spec.collect:
            collected = []
            for strategy in spec.strategies:
                value = self._apply(node, spec, strategy)
                if value is None:
                    continue
                for item in value if isinstance(value, (list, tuple)) else (value,):
                    if item not in collected:
                        collected.append(item)
            return tuple(collected) if collected else spec.default

        for strategy in spec.strategies:
            value = self._apply(node, spec, strategy)
            if value is not None:
                return value
        return spec.default

    def extract_fields(self, node: Tag, schema: EntitySchema) -> Optional[Dict[str, Any]]:
        """
        Extract every field of schema from node.

        Returns:
            Field dict, or None when a required (identity) field is missing
        """
        values = {}
        for spec in schema.fields:
            value = self.extract_value(node, spec)
            if value is None and spec.required:
                logger.debug(f"{schema.kind}: identity field '{spec.name}' not found")
                return None
            values[spec.name] = value
        return values

    def match_items(self, root: Tag, schema: EntitySchema) -> List[Tag]:
        """
        Repeating elements for a list schema.

        All item_selectors are matched together, in document order. Elements
        nested inside another match are dropped, so a card wins over the
        buttons it contains.
        """
        if not schema.item_selectors:
            return []
        matches = root.select(", ".join(schema.item_selectors))
        matched = {id(el) for el in matches}
        return [el for el in matches if not any(id(p) in matched for p in el.parents)]

    def extract_list(
        self,
        root: Tag,
        schema: EntitySchema,
        build: Callable[[Dict[str, Any], int], Optional[T]],
    ) -> List[T]:
        """
        Parse each repeating element independently; malformed ones are skipped.

        Args:
            root: Document or container
            schema: List schema
            build: (field dict, element index) -> entity or None
        """
        elements = self.match_items(root, schema)
        results = []
        for index, element in enumerate(elements):
            try:
                values = self.extract_fields(element, schema)
                entity = build(values, index) if values is not None else None
            except Exception as e:  # noqa: BLE001 - one bad element must not sink the batch
                logger.warning(f"Error parsing {schema.kind} #{index}: {e}")
                continue
            if entity is not None:
                results.append(entity)

        skipped = len(elements) - len(results)
        if skipped:
            logger.info(f"Parsed {len(results)} of {len(elements)} {schema.kind} elements ({skipped} skipped)")
        return results

    def _absolute(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        return urljoin(self.base_url + '/', url)

    # ------------------------------------------------------------
    # Products
    # ------------------------------------------------------------

    def _build_product(self, product_id: str, values: Mapping[str, Any]) -> Product:
        price = values['price']
        original_price = values.get('original_price')
        return Product(
            id=product_id,
            name=values['name'],
            price=price,
            unit=values.get('unit') or 'ks',
            unit_price=values.get('unit_price'),
            unit_type=values.get('unit_type') or 'ks',
            original_price=original_price,
            discount_pct=compute_discount(price, original_price),
            tags=frozenset(values.get('tags') or ()),
            in_stock=not values.get('out_of_stock'),
            weight=values.get('weight'),
            description=values.get('description'),
            image_url=self._absolute(values.get('image_url')),
            category=values.get('category'),
            nutrition=values.get('nutrition'),
            ingredients=values.get('ingredients'),
        )

    def parse_product(self, html: Markup, product_id: Optional[str] = None) -> Optional[Product]:
        """
        Parse a product detail page.

        Args:
            html: Page markup
            product_id: Id taken from the requested URL; when omitted the page
                must carry one

        Returns:
            Product, or None when the name or id cannot be found
        """
        values = self.extract_fields(self.soup(html), selectors.PRODUCT_PAGE)
        if values is None:
            return None
        product_id = product_id or values.get('id')
        if not product_id:
            logger.debug("Product page has no product id")
            return None
        return self._build_product(str(product_id), values)

    def parse_product_list(self, html: Markup) -> List[Product]:
        """Parse product cards from a search or category page."""
        return self.extract_list(
            self.soup(html),
            selectors.PRODUCT_CARD,
            lambda values, _index: self._build_product(values['id'], values),
        )

    # ------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------

    def _build_cart_item(self, values: Mapping[str, Any], _index: int) -> CartItem:
        price = values['price']
        quantity = values['quantity']
        total_price = values.get('total_price')
        if total_price is None:
            total_price = price * quantity
        return CartItem(
            product_id=values['product_id'],
            name=values['name'],
            price=price,
            quantity=quantity,
            total_price=total_price,
            image_url=self._absolute(values.get('image_url')),
            unit=values.get('unit'),
            availability=values.get('availability'),
        )

    def parse_cart(self, html: Markup) -> CartSummary:
        """
        Parse the cart page.

        Page-level totals win when present; otherwise they are summed from
        the parsed items. An unrecognisable page yields an empty cart.
        """
        soup = self.soup(html)
        items = tuple(self.extract_list(soup, selectors.CART_ITEM, self._build_cart_item))
        totals = self.extract_fields(soup, selectors.CART_TOTALS) or {}

        total_items = totals.get('total_items')
        if total_items is None:
            total_items = sum(item.quantity for item in items)

        total_price = totals.get('total_price')
        if total_price is None:
            total_price = sum((item.total_price for item in items), Decimal('0'))

        delivery_fee = totals.get('delivery_fee')
        final_total = total_price + (delivery_fee or Decimal('0'))

        return CartSummary(
            items=items,
            total_items=total_items,
            total_price=total_price,
            final_total=final_total,
            currency=self.currency,
            delivery_fee=delivery_fee,
        )

    # ------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------

    def _build_order_item(self, values: Mapping[str, Any], index: int) -> OrderItem:
        quantity = values['quantity']
        unit_price = values['unit_price']
        return OrderItem(
            product_id=values.get('product_id') or f"item-{index}",
            product_name=values['product_name'],
            quantity=quantity,
            unit_price=unit_price,
            total_price=unit_price * quantity,
            image_url=self._absolute(values.get('image_url')),
        )

    def parse_order_details(self, html: Markup, order_id: str) -> Optional[Order]:
        """
        Parse an order detail page.

        Returns:
            Order, or None when the page shows neither an order number nor
            any order items
        """
        soup = self.soup(html)
        values = self.extract_fields(soup, selectors.ORDER_DETAIL) or {}
        items = tuple(self.extract_list(soup, selectors.ORDER_ITEM, self._build_order_item))

        if not values.get('order_number') and not items:
            logger.debug(f"No order details found for order {order_id}")
            return None

        subtotal = sum((item.total_price for item in items), Decimal('0'))
        delivery_fee = values.get('delivery_fee')
        total = values.get('total')
        if total is None:
            total = subtotal + (delivery_fee or Decimal('0'))

        return Order(
            id=order_id,
            order_number=values.get('order_number') or order_id,
            status=parse_order_status(values.get('status')),
            created_at=values.get('created_at'),
            updated_at=values.get('created_at'),
            items=items,
            total=total,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            delivery_address=values.get('delivery_address'),
            payment_method=values.get('payment_method'),
            tracking_url=self._absolute(values.get('tracking_url')),
        )

    def parse_order_history(self, html: Markup) -> List[Order]:
        """
        Parse the order history listing.

        History rows carry no line items, subtotal, delivery fee or address;
        those stay None.
        """
        def build(values: Mapping[str, Any], _index: int) -> Order:
            return Order(
                id=values['id'],
                order_number=values.get('order_number') or values['id'],
                status=parse_order_status(values.get('status')),
                created_at=values.get('created_at'),
                updated_at=values.get('created_at'),
                total=values['total'],
            )

        return self.extract_list(self.soup(html), selectors.ORDER_SUMMARY, build)

    def parse_order_confirmation(
        self,
        html: Markup,
        cart: CartSummary,
        request: CheckoutRequest,
        now: Optional[datetime] = None,
    ) -> Optional[Order]:
        """
        Build the new order from a checkout confirmation page.

        Line items and amounts come from the cart that was submitted; the page
        supplies the order number (and id/tracking data when present).

        Returns:
            Order, or None when no order number is found on the page
        """
        values = self.extract_fields(self.soup(html), selectors.ORDER_CONFIRMATION)
        if values is None:
            logger.warning("Checkout confirmation page has no order number")
            return None

        items = tuple(
            OrderItem(
                product_id=item.product_id,
                product_name=item.name,
                quantity=item.quantity,
                unit_price=item.price,
                total_price=item.total_price,
                image_url=item.image_url,
            )
            for item in cart.items
        )
        delivery_fee = cart.delivery_fee
        return Order(
            id=values.get('id') or values['order_number'],
            order_number=values['order_number'],
            status=OrderStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
            items=items,
            total=cart.total_price + (delivery_fee or Decimal('0')),
            subtotal=cart.total_price,
            delivery_fee=delivery_fee,
            payment_method=request.payment_method,
            special_instructions=request.special_instructions,
            tracking_url=self._absolute(values.get('tracking_url')),
            estimated_delivery=values.get('estimated_delivery'),
        )

    # ------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------

    def parse_delivery_slots(self, html: Markup, requested_date: Optional[str] = None) -> List[DeliverySlot]:
        """
        Parse delivery slots.

        Slots without a time window are malformed and skipped. Slots without
        their own date take the requested date (today when none was given).
        """
        fallback_date = requested_date or date.today().isoformat()

        def build(values: Mapping[str, Any], index: int) -> DeliverySlot:
            time_from, time_to = values['time']
            slot_date = values.get('date')
            return DeliverySlot(
                id=values.get('id') or f"slot-{index}",
                date=slot_date.date().isoformat() if slot_date else fallback_date,
                time_from=time_from,
                time_to=time_to,
                available=not values['unavailable'],
                price=values['price'],
                is_express=bool(values['is_express']),
                description=values.get('description'),
            )

        return self.extract_list(self.soup(html), selectors.DELIVERY_SLOT, build)

    def parse_pickup_points(self, html: Markup) -> List[PickupPoint]:
        """Parse pickup points; entries without a name or a parsable address are skipped."""
        def build(values: Mapping[str, Any], index: int) -> PickupPoint:
            return PickupPoint(
                id=values.get('id') or f"pickup-{index}",
                name=values['name'],
                address=values['address'],
                opening_hours=values['opening_hours'],
                available=not values['unavailable'],
                distance_km=values.get('distance_km'),
            )

        return self.extract_list(self.soup(html), selectors.PICKUP_POINT, build)

    def parse_current_address(self, html: Markup) -> Optional[DeliveryAddress]:
        """Current address from the pre-filled address form, or from its text rendering."""
        values = self.extract_fields(self.soup(html), selectors.CURRENT_ADDRESS) or {}
        if values.get('street') and values.get('city') and values.get('postal_code'):
            return DeliveryAddress(
                street=values['street'],
                house_number=values.get('house_number') or '',
                city=values['city'],
                postal_code=''.join(values['postal_code'].split()),
                country=values.get('country') or 'CZ',
                district=values.get('district'),
            )
        return values.get('text')

    def parse_delivery_fee(self, html: Markup) -> Optional[Decimal]:
        """Delivery fee shown on a page (address confirmation, checkout), if any."""
        return self.extract_value(self.soup(html), selectors.ORDER_DETAIL.field('delivery_fee'))

    # ------------------------------------------------------------
    # Account
    # ------------------------------------------------------------

    def parse_user_profile(self, html: Markup, fallback_email: Optional[str] = None) -> Optional[UserProfile]:
        """
        Parse the account page.

        Args:
            html: Page markup
            fallback_email: Email used when the page does not show one (the
                address the session logged in with)

        Returns:
            UserProfile, or None when no email is known
        """
        values = self.extract_fields(self.soup(html), selectors.USER_PROFILE) or {}
        email = values.get('email') or fallback_email
        if not email:
            return None
        return UserProfile(
            email=email,
            user_id=values.get('user_id'),
            name=values.get('name'),
            account_type=values.get('account_type'),
            delivery_address=values.get('delivery_address'),
        )

    def has_login_form(self, html: Markup) -> bool:
        """True when the page asks for credentials (the session is anonymous)."""
        soup = self.soup(html)
        return any(soup.select_one(marker) is not None for marker in selectors.LOGIN_FORM_MARKERS)

    def has_user_content(self, html: Markup) -> bool:
        """True when the page shows account-only content."""
        soup = self.soup(html)
        return any(soup.select_one(marker) is not None for marker in selectors.USER_CONTENT_MARKERS)

    def parse_payment_methods(self, html: Markup) -> List[str]:
        """Offered payment method codes; the storefront defaults when the page lists none."""
        soup = self.soup(html)
        methods = []
        for selector in selectors.PAYMENT_METHOD_SELECTORS:
            for element in soup.select(selector):
                value = (element.get('value') or '').strip()
                if value and value not in methods:
                    methods.append(value)
        return methods or list(selectors.DEFAULT_PAYMENT_METHODS)

    # ------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------

    @staticmethod
    def form_fields(form: Tag) -> Dict[str, str]:
        """Name/value pairs a browser would submit for form as rendered."""
        fields = {}
        for element in form.select('input[name], textarea[name], select[name]'):
            name = element['name']
            if element.name == 'textarea':
                fields[name] = element.get_text()
            elif element.name == 'select':
                option = element.select_one('option[selected]') or element.select_one('option')
                fields[name] = option.get('value', option.get_text(strip=True)) if option else ''
            else:
                input_type = (element.get('type') or 'text').lower()
                if input_type in _SKIPPED_INPUT_TYPES:
                    continue
                if input_type in ('checkbox', 'radio') and not element.has_attr('checked'):
                    continue
                fields[name] = element.get('value', '')
        return fields

    @staticmethod
    def find_token(soup: BeautifulSoup, fields: Optional[Mapping[str, str]] = None) -> Tuple[Optional[str], Optional[str]]:
        """
        Locate an anti-forgery token.

        Looks in the form's own fields first, then in hidden inputs anywhere on
        the page, then in meta tags.

        Returns:
            (field name, token value), or (None, None)
        """
        fields = fields or {}
        for name in TOKEN_FIELD_NAMES:
            if fields.get(name):
                return name, fields[name]

        for name in TOKEN_FIELD_NAMES:
            element = soup.select_one(f'input[name="{name}"]')
            if element is not None and element.get('value'):
                return name, element['value']

        for selector in TOKEN_META_SELECTORS:
            element = soup.select_one(selector)
            if element is not None and element.get('content'):
                return TOKEN_FIELD_NAMES[0], element['content']

        return None, None

    def discover_form(
        self,
        html: Markup,
        intent: str,
        params: Optional[Mapping[str, Any]] = None,
        page_url: Optional[str] = None,
    ) -> DiscoveredForm:
        """
        Locate the form for a mutation intent on a reference page.

        Args:
            html: Reference page markup
            intent: Key into FORM_INTENTS
            params: Values for {placeholders} in the intent's selectors
            page_url: URL the page was fetched from; relative actions resolve
                against it

        Returns:
            DiscoveredForm with action, method, current fields and token

        Raises:
            FormDiscoveryError: Unknown intent, or no form and no default action
            CsrfTokenMissing: No anti-forgery token on the page
        """
        spec = FORM_INTENTS.get(intent)
        if spec is None:
            raise FormDiscoveryError(intent, f"Unknown form intent '{intent}'")

        soup = self.soup(html)
        params = {key: str(value) for key, value in (params or {}).items()}

        try:
            form_selectors = [selector.format(**params) for selector in spec.form_selectors]
            default_action = spec.default_action.format(**params) if spec.default_action else None
        except KeyError as e:
            raise FormDiscoveryError(intent, f"Missing form parameter {e} for intent '{intent}'") from e

        form = None
        for selector in form_selectors:
            form = soup.select_one(selector)
            if form is not None:
                logger.debug(f"Form for '{intent}' matched {selector}")
                break

        if form is not None:
            fields = self.form_fields(form)
            action = form.get('action') or default_action or page_url
            method = (form.get('method') or 'post').lower()
        elif default_action is not None:
            logger.debug(f"No form element for '{intent}', using default action {default_action}")
            fields = {}
            action = default_action
            method = 'post'
        else:
            raise FormDiscoveryError(intent)

        if not action:
            raise FormDiscoveryError(intent, f"Form for intent '{intent}' has no action")

        token_field, token = self.find_token(soup, fields)
        if token is None:
            raise CsrfTokenMissing(intent)
        fields[token_field] = token

        if page_url:
            action = urljoin(page_url, action)

        return DiscoveredForm(
            intent=intent,
            action=action,
            method=method,
            fields=fields,
            token_field=token_field,
            token=token,
        )
