"""
Declarative extraction tables for every storefront page type.

Each entity kind has an EntitySchema: per field, an ordered list of
strategies tried until one yields a valid value. When the storefront changes
its markup, this is the only file that needs touching.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple

from ..utils.normalizers import (
    clean_text,
    parse_address_text,
    parse_date,
    parse_quantity,
    parse_time_range,
    try_parse_price,
)
from .strategies import (
    Attr,
    EntitySchema,
    Exists,
    FieldSpec,
    InputValue,
    KeyValueRows,
    Pattern,
    Text,
    TextList,
)


# ============================================================
# CONVERTERS / VALIDATORS
# ============================================================

def _is_price(value) -> bool:
    return isinstance(value, Decimal) and value >= 0


def _is_identifier(value) -> bool:
    return isinstance(value, str) and bool(value) and not any(c.isspace() for c in value)


def _to_int(raw) -> Optional[int]:
    if raw is None:
        return None
    digits = "".join(c for c in str(raw) if c.isdigit())
    return int(digits) if digits else None


def _to_float(raw) -> Optional[float]:
    price = try_parse_price(raw)
    return float(price) if price is not None else None


def _to_flag(raw) -> bool:
    return bool(raw)


def _to_time_range(raw) -> Optional[Tuple[str, str]]:
    time_from, time_to = parse_time_range(raw)
    if time_from is None or time_to is None:
        return None
    return time_from, time_to


def _to_tags(raw) -> Optional[Tuple[str, ...]]:
    if not raw:
        return None
    values = raw if isinstance(raw, (list, tuple)) else [raw]
    tags = tuple(t.lower() for t in (clean_text(v) for v in values) if t)
    return tags or None


# ============================================================
# PRODUCT DETAIL PAGE
# ============================================================

PRODUCT_PAGE = EntitySchema(
    kind='product',
    fields=(
        FieldSpec('id', (
            Attr('data-product-id', '[data-product-id]'),
            Attr('content', 'meta[itemprop="sku"]'),
        ), validate=_is_identifier),
        FieldSpec('name', (
            Text('h1[data-test="product-title"]'),
            Text('[data-test="product-name"]'),
            Text('.product-title'),
            Text('.productTitle'),
            Text('.product-name'),
            Text('h1.title'),
            Attr('content', 'meta[property="og:title"]'),
        ), required=True),
        FieldSpec('price', (
            Text('[data-test="product-price"]'),
            Text('.product-price'),
            Text('.productPrice'),
            Text('.price-current'),
            Text('.price'),
            Attr('content', 'meta[itemprop="price"]'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('original_price', (
            Text('.price-original'),
            Text('.original-price'),
            Text('.price-before'),
            Text('del'),
            Text('s'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('unit', (
            Text('.product-unit'),
            Text('.unit'),
        ), default='ks'),
        FieldSpec('unit_price', (
            Text('.unit-price'),
            Text('.price-per-unit'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('unit_type', (
            Pattern(r'/\s*(\w+)\s*$', '.unit-price'),
            Pattern(r'/\s*(\w+)\s*$', '.price-per-unit'),
        ), default='ks'),
        FieldSpec('weight', (
            Text('.product-weight'),
            Text('.weight'),
            Text('.amount'),
        )),
        FieldSpec('description', (
            Text('.product-description'),
            Text('.description'),
            Attr('content', 'meta[name="description"]'),
        )),
        FieldSpec('image_url', (
            Attr('src', '.product-image img'),
            Attr('src', '.productImage img'),
            Attr('data-src', '.product-image img'),
            Attr('content', 'meta[property="og:image"]'),
        )),
        FieldSpec('category', (
            Text('.breadcrumb li:last-child'),
            Text('.breadcrumbs a', last=True),
            Text('.category'),
        )),
        FieldSpec('nutrition', (
            KeyValueRows('.nutrition-table tr'),
            KeyValueRows('.nutritional-values tr'),
            KeyValueRows('.nutrition tr'),
        )),
        FieldSpec('ingredients', (
            Text('.ingredients'),
            Text('.product-ingredients'),
            Text('.slozeni'),
        )),
        FieldSpec('tags', (
            TextList('.product-tag'),
            TextList('.badge'),
            TextList('[data-tag]'),
        ), convert=_to_tags, collect=True, default=()),
        FieldSpec('out_of_stock', (
            Exists('.out-of-stock', include_self=False),
            Exists('.not-available', include_self=False),
            Exists('.vyprodano', include_self=False),
            Exists('[data-availability="out-of-stock"]', include_self=False),
            Exists('[data-test="out-of-stock"]', include_self=False),
            Exists('.unavailable', include_self=False),
            Exists('.sold-out', include_self=False),
        ), convert=_to_flag, validate=lambda v: v is True, default=False),
    ),
)


# ============================================================
# PRODUCT LISTING CARD (search, category)
# ============================================================

PRODUCT_CARD = EntitySchema(
    kind='product_card',
    item_selectors=('.productCard', '.product-card', '[data-product-id]'),
    fields=(
        FieldSpec('id', (
            Attr('data-product-id'),
            Attr('data-id'),
            Pattern(r'/(\d+)-', 'a[href]', attr='href'),
            Attr('id'),
        ), validate=_is_identifier, required=True),
        FieldSpec('name', (
            Text('[data-test="product-name"]'),
            Text('.productCard__title'),
            Text('.product-name'),
            Text('.productName'),
            Text('h3'),
            Attr('title', 'a[title]'),
        ), required=True),
        FieldSpec('price', (
            Text('[data-test="product-price"]'),
            Text('.productCard__price'),
            Text('.product-price'),
            Text('.price'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('original_price', (
            Text('.price-original'),
            Text('.original-price'),
            Text('del'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('unit', (
            Text('.product-unit'),
            Text('.unit'),
        ), default='ks'),
        FieldSpec('image_url', (
            Attr('src', 'img'),
            Attr('data-src', 'img'),
        )),
        FieldSpec('tags', (
            TextList('.product-tag'),
            TextList('.badge'),
        ), convert=_to_tags, collect=True, default=()),
        FieldSpec('out_of_stock', (
            Exists('.out-of-stock'),
            Exists('.not-available'),
            Exists('.vyprodano'),
            Exists('[data-test="out-of-stock"]'),
            Exists('.unavailable'),
            Exists('.sold-out'),
        ), convert=_to_flag, validate=lambda v: v is True, default=False),
    ),
)


# ============================================================
# CART
# ============================================================

CART_ITEM = EntitySchema(
    kind='cart_item',
    item_selectors=('.cart-item', '.kosik-item', '[data-product-id]'),
    fields=(
        FieldSpec('product_id', (
            Attr('data-product-id'),
            Attr('data-product-id', '[data-product-id]'),
            InputValue('input[name="product_id"]'),
            Pattern(r'/(\d+)-', 'a[href]', attr='href'),
        ), validate=_is_identifier, required=True),
        FieldSpec('name', (
            Text('.product-name'),
            Text('.item-name'),
            Text('h3'),
            Text('h4'),
            Text('a'),
        ), required=True),
        FieldSpec('price', (
            Text('.item-price'),
            Text('.unit-price'),
            Text('.price'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('total_price', (
            Text('.item-total'),
            Text('.line-total'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('quantity', (
            InputValue('input[name="quantity"]'),
            InputValue('input[type="number"]'),
            Text('.quantity'),
            Text('.item-quantity'),
        ), convert=lambda raw: parse_quantity(raw, default=0) or None, default=1),
        FieldSpec('image_url', (
            Attr('src', 'img'),
            Attr('data-src', 'img'),
        )),
        FieldSpec('unit', (
            Text('.unit'),
            Text('.item-unit'),
        )),
        FieldSpec('availability', (
            Text('.availability'),
            Text('.item-availability'),
        )),
    ),
)

CART_TOTALS = EntitySchema(
    kind='cart_totals',
    fields=(
        FieldSpec('total_items', (
            Attr('data-total-items', '[data-total-items]'),
            Text('.cart-total-items'),
            Text('.kosik-pocet'),
        ), convert=_to_int),
        FieldSpec('total_price', (
            Text('.cart-total-price'),
            Text('.kosik-cena'),
            Text('.cart-summary .total-price'),
            Text('.total-price', last=True),
        ), convert=try_parse_price, validate=lambda v: _is_price(v) and v > 0),
        FieldSpec('delivery_fee', (
            Text('.delivery-fee'),
            Text('.doprava'),
            Text('.shipping-cost'),
        ), convert=try_parse_price, validate=_is_price),
    ),
)


# ============================================================
# ORDERS
# ============================================================

ORDER_DETAIL = EntitySchema(
    kind='order',
    fields=(
        FieldSpec('order_number', (
            Text('.order-number'),
            Text('.cislo-objednavky'),
            Attr('data-order-number', '[data-order-number]'),
        )),
        FieldSpec('status', (
            Text('.order-status'),
            Text('.status'),
            Text('.stav'),
        )),
        FieldSpec('created_at', (
            Text('.order-date'),
            Text('.datum'),
            Attr('datetime', 'time[datetime]'),
        ), convert=parse_date),
        FieldSpec('total', (
            Text('.order-total'),
            Text('.celkem'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('delivery_fee', (
            Text('.delivery-fee'),
            Text('.doprava-cena'),
            Text('.doprava'),
        ), convert=try_parse_price, validate=_is_price),
        FieldSpec('delivery_address', (
            Text('.delivery-address'),
            Text('.adresa-doruceni'),
        ), convert=parse_address_text),
        FieldSpec('payment_method', (
            Text('.payment-method'),
            Text('.platba'),
        )),
        FieldSpec('tracking_url', (
            Attr('href', 'a.tracking-link'),
            Attr('href', 'a[href*="tracking"]'),
        )),
    ),
)

ORDER_ITEM = EntitySchema(
    kind='order_item',
    item_selectors=('.order-item', '.polozka'),
    fields=(
        FieldSpec('product_id', (
            Attr('data-product-id'),
            Attr('data-product-id', '[data-product-id]'),
            Pattern(r'/(\d+)-', 'a[href]', attr='href'),
        ), validate=_is_identifier),
        FieldSpec('product_name', (
            Text('.name'),
            Text('.nazev'),
            Text('.product-name'),
        ), required=True),
        FieldSpec('quantity', (
            Text('.quantity'),
            Text('.mnozstvi'),
        ), convert=lambda raw: parse_quantity(raw, default=0) or None, default=1),
        FieldSpec('unit_price', (
            Text('.price'),
            Text('.cena'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('image_url', (
            Attr('src', 'img'),
        )),
    ),
)

ORDER_SUMMARY = EntitySchema(
    kind='order_summary',
    item_selectors=('[data-order-id]', '.order', '.objednavka'),
    fields=(
        FieldSpec('id', (
            Attr('data-order-id'),
            Attr('data-order-id', '[data-order-id]'),
            Pattern(r'/objednavka/([\w-]+)', 'a[href]', attr='href'),
        ), validate=_is_identifier, required=True),
        FieldSpec('order_number', (
            Text('.order-number'),
            Text('.cislo'),
        )),
        FieldSpec('status', (
            Text('.status'),
            Text('.stav'),
        )),
        FieldSpec('total', (
            Text('.total'),
            Text('.celkem'),
            Text('.cena'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('created_at', (
            Text('.date'),
            Text('.datum'),
        ), convert=parse_date),
    ),
)

ORDER_CONFIRMATION = EntitySchema(
    kind='order_confirmation',
    fields=(
        FieldSpec('id', (
            Attr('data-order-id', '[data-order-id]'),
            Pattern(r'/objednavka/([\w-]+)', 'a[href*="/objednavka/"]', attr='href'),
        ), validate=_is_identifier),
        FieldSpec('order_number', (
            Text('.order-number'),
            Text('.cislo-objednavky'),
            Pattern(r'(\d{5,})', 'h1'),
            Pattern(r'(\d{5,})', 'h2'),
        ), required=True),
        FieldSpec('estimated_delivery', (
            Text('.estimated-delivery'),
            Text('.delivery-date'),
        ), convert=parse_date),
        FieldSpec('tracking_url', (
            Attr('href', 'a.tracking-link'),
            Attr('href', 'a[href*="tracking"]'),
        )),
    ),
)


# ============================================================
# DELIVERY
# ============================================================

DELIVERY_SLOT = EntitySchema(
    kind='delivery_slot',
    item_selectors=('[data-slot-id]', '.delivery-slot', '.slot'),
    fields=(
        FieldSpec('id', (
            Attr('data-slot-id'),
            Attr('data-id'),
            InputValue('input[name="slot_id"]'),
        ), validate=_is_identifier),
        FieldSpec('date', (
            Attr('data-date'),
            Text('.date'),
            Text('.slot-date'),
        ), convert=parse_date),
        FieldSpec('time', (
            Text('.time'),
            Text('.slot-time'),
            Text(),
        ), convert=_to_time_range, required=True),
        FieldSpec('price', (
            Text('.price'),
            Text('.slot-price'),
        ), convert=try_parse_price, validate=_is_price, default=Decimal("0")),
        FieldSpec('unavailable', (
            Exists('.disabled'),
            Exists('.unavailable'),
            Exists('[disabled]'),
        ), convert=_to_flag, validate=lambda v: v is True, default=False),
        FieldSpec('is_express', (
            Exists('.express'),
            Pattern(r'(express)', '.time'),
        ), convert=_to_flag, validate=lambda v: v is True, default=False),
        FieldSpec('description', (
            Text('.description'),
            Text('.slot-description'),
        )),
    ),
)

PICKUP_POINT = EntitySchema(
    kind='pickup_point',
    item_selectors=('[data-pickup-id]', '.pickup-point', '.vyzvedni-misto'),
    fields=(
        FieldSpec('id', (
            Attr('data-pickup-id'),
            Attr('data-id'),
        ), validate=_is_identifier),
        FieldSpec('name', (
            Text('.name'),
            Text('.pickup-name'),
            Text('h3'),
            Text('h4'),
        ), required=True),
        FieldSpec('address', (
            Text('.address'),
            Text('.pickup-address'),
        ), convert=parse_address_text, required=True),
        FieldSpec('opening_hours', (
            Text('.hours'),
            Text('.opening-hours'),
        ), default='Not specified'),
        FieldSpec('distance_km', (
            Attr('data-distance'),
            Text('.distance'),
        ), convert=_to_float),
        FieldSpec('unavailable', (
            Exists('.disabled'),
            Exists('.unavailable'),
        ), convert=_to_flag, validate=lambda v: v is True, default=False),
    ),
)


# ============================================================
# ACCOUNT
# ============================================================

USER_PROFILE = EntitySchema(
    kind='user_profile',
    fields=(
        FieldSpec('email', (
            Attr('data-email', '[data-email]'),
            Text('.user-email'),
            InputValue('input[name="email"]'),
            InputValue('input[type="email"]'),
        ), validate=lambda v: isinstance(v, str) and '@' in v),
        FieldSpec('name', (
            Attr('data-name', '[data-user-name]'),
            Text('.user-name'),
            Text('.account-name'),
            InputValue('input[name="name"]'),
            InputValue('input[name="first_name"]'),
        )),
        FieldSpec('user_id', (
            Attr('data-user-id', '[data-user-id]'),
            Attr('data-customer-id', '[data-customer-id]'),
        ), validate=_is_identifier),
        FieldSpec('account_type', (
            Attr('data-account-type', '[data-account-type]'),
            Text('.account-type'),
        ), default='standard'),
        FieldSpec('delivery_address', (
            Text('.delivery-address'),
            Text('.current-address'),
        )),
    ),
)

CURRENT_ADDRESS = EntitySchema(
    kind='current_address',
    fields=(
        FieldSpec('street', (InputValue('input[name="street"]'),)),
        FieldSpec('house_number', (InputValue('input[name="house_number"]'),)),
        FieldSpec('city', (InputValue('input[name="city"]'),)),
        FieldSpec('postal_code', (InputValue('input[name="postal_code"]'),)),
        FieldSpec('district', (InputValue('input[name="district"]'),)),
        FieldSpec('country', (
            InputValue('select[name="country"]'),
            InputValue('input[name="country"]'),
        ), default='CZ'),
        FieldSpec('text', (
            Text('.current-address'),
            Text('.delivery-address'),
        ), convert=parse_address_text),
    ),
)

# Markers of an anonymous page: a login form is present
LOGIN_FORM_MARKERS = (
    'form[action*="prihlaseni"]',
    'form[action*="login"]',
)

# Markers of an authenticated page
USER_CONTENT_MARKERS = ('.user-info', '.account-info', '[data-user]')

PAYMENT_METHOD_SELECTORS = (
    'input[name="payment_method"]',
    'select[name="payment_method"] option',
)

DEFAULT_PAYMENT_METHODS = ('card', 'cash', 'bank_transfer')


# ============================================================
# FORMS
# ============================================================

# Hidden fields that carry the anti-forgery token, in lookup order
TOKEN_FIELD_NAMES = ('_token', 'csrf_token', 'csrfmiddlewaretoken', 'authenticity_token', '_csrf')

# Page-level token carriers, used when the form itself has none
TOKEN_META_SELECTORS = ('meta[name="csrf-token"]', 'meta[name="_token"]')


@dataclass(frozen=True)
class FormIntent:
    """
    Where to find the form for one mutation.

    Attributes:
        name: Intent key
        form_selectors: Tried in order; may contain {placeholders} filled
            from the caller's params (e.g. {product_id})
        default_action: Submission path when no form element is found; None
            means the form element is mandatory
    """
    name: str
    form_selectors: Tuple[str, ...]
    default_action: Optional[str] = None


FORM_INTENTS = {
    'add_to_cart': FormIntent(
        name='add_to_cart',
        form_selectors=(
            'form.add-to-cart-form',
            'form[action*="cart"]',
            'form[action*="kosik"]',
        ),
        default_action='/kosik/pridat',
    ),
    'update_cart': FormIntent(
        name='update_cart',
        form_selectors=(
            '[data-product-id="{product_id}"] form',
            'form[data-product-id="{product_id}"]',
        ),
        default_action='/kosik/upravit',
    ),
    'remove_from_cart': FormIntent(
        name='remove_from_cart',
        form_selectors=(
            '[data-product-id="{product_id}"] form.remove-item',
            '[data-product-id="{product_id}"] form',
            'form[data-product-id="{product_id}"]',
        ),
        default_action='/kosik/upravit',
    ),
    'checkout': FormIntent(
        name='checkout',
        form_selectors=(
            'form.checkout-form',
            'form[action*="checkout"]',
            'form[action*="objednavka"]',
        ),
        default_action='/api/orders/submit',
    ),
    'login': FormIntent(
        name='login',
        form_selectors=(
            'form[action*="prihlaseni"]',
            'form[action*="login"]',
            'form.login-form',
        ),
        default_action='/prihlaseni',
    ),
    'address': FormIntent(
        name='address',
        form_selectors=(
            'form.address-form',
            'form[action*="adresa"]',
            'form[action*="address"]',
        ),
        default_action='/adresa',
    ),
    'book_slot': FormIntent(
        name='book_slot',
        form_selectors=(
            'form.slot-form',
            'form[action*="doruceni"]',
            'form[action*="delivery"]',
        ),
        default_action='/doruceni',
    ),
    'cancel_order': FormIntent(
        name='cancel_order',
        form_selectors=(
            'form[action*="/objednavka/{order_id}/cancel"]',
            'form.cancel-order-form',
            'form[action*="cancel"]',
            'form[action*="zrusit"]',
        ),
        default_action='/objednavka/{order_id}/cancel',
    ),
}
