"""
Data structures shared by the storefront client.

Entities produced by the extraction engine are immutable value objects.
Amounts are Decimal values in the storefront currency; optional fields that
the page did not provide are None rather than a sentinel zero.
"""

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


def _jsonable(value: Any) -> Any:
    """Convert dataclass dict values into JSON-friendly primitives."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(_jsonable(v) for v in value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class Entity:
    """Mixin for dataclass entities exposed to the route layer."""

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


# ============================================================
# CATALOG
# ============================================================

@dataclass(frozen=True)
class Product(Entity):
    """A product parsed from a detail page or a listing card."""
    id: str
    name: str
    price: Decimal
    unit: str = "ks"
    unit_price: Optional[Decimal] = None
    unit_type: str = "ks"
    original_price: Optional[Decimal] = None
    discount_pct: Optional[int] = None      # derived, never scraped
    tags: FrozenSet[str] = frozenset()
    in_stock: bool = True
    weight: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    nutrition: Optional[Dict[str, str]] = None
    ingredients: Optional[str] = None
    min_quantity: int = 1
    max_quantity: int = 100


# ============================================================
# CART
# ============================================================

@dataclass(frozen=True)
class CartItem(Entity):
    product_id: str
    name: str
    price: Decimal
    quantity: int
    total_price: Decimal
    image_url: Optional[str] = None
    unit: Optional[str] = None
    availability: Optional[str] = None


@dataclass(frozen=True)
class CartSummary(Entity):
    items: Tuple[CartItem, ...]
    total_items: int
    total_price: Decimal
    final_total: Decimal
    currency: str = "CZK"
    delivery_fee: Optional[Decimal] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def empty(cls, currency: str = "CZK") -> "CartSummary":
        return cls(items=(), total_items=0, total_price=Decimal("0"),
                   final_total=Decimal("0"), currency=currency)

    @property
    def is_empty(self) -> bool:
        return not self.items


# ============================================================
# LOCATION
# ============================================================

@dataclass(frozen=True)
class DeliveryAddress(Entity):
    street: str
    house_number: str
    city: str
    postal_code: str
    country: str = "CZ"
    district: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def normalized_postal_code(self) -> str:
        return "".join(self.postal_code.split())


@dataclass(frozen=True)
class DeliverySlot(Entity):
    id: str
    date: str               # YYYY-MM-DD
    time_from: str          # HH:MM
    time_to: str            # HH:MM
    available: bool
    price: Decimal
    is_express: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class PickupPoint(Entity):
    id: str
    name: str
    address: DeliveryAddress
    opening_hours: str
    available: bool = True
    distance_km: Optional[float] = None


@dataclass(frozen=True)
class DeliveryArea(Entity):
    postal_code: str
    city: str
    available: bool
    delivery_fee: Decimal
    min_order_value: Decimal
    express_available: bool = False


@dataclass(frozen=True)
class LocationValidationResult(Entity):
    is_valid: bool
    delivery_available: bool
    errors: Tuple[str, ...] = ()
    suggested_address: Optional[DeliveryAddress] = None
    delivery_fee: Optional[Decimal] = None
    min_order_value: Optional[Decimal] = None

    @classmethod
    def failure(cls, *errors: str) -> "LocationValidationResult":
        return cls(is_valid=False, delivery_available=False, errors=tuple(errors))


# ============================================================
# ORDERS
# ============================================================

class OrderStatus(Enum):
    """Lifecycle states reported by the storefront."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class OrderItem(Entity):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Order(Entity):
    id: str
    order_number: str
    status: OrderStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: Tuple[OrderItem, ...] = ()
    total: Decimal = Decimal("0")
    subtotal: Optional[Decimal] = None
    delivery_fee: Optional[Decimal] = None
    delivery_address: Optional[DeliveryAddress] = None
    delivery_slot: Optional[DeliverySlot] = None
    payment_method: Optional[str] = None
    special_instructions: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


@dataclass(frozen=True)
class CheckoutRequest:
    payment_method: str
    delivery_slot_id: Optional[str] = None
    special_instructions: Optional[str] = None
    confirm_inventory: bool = False


@dataclass(frozen=True)
class CheckoutValidation(Entity):
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    estimated_total: Decimal = Decimal("0")
    delivery_fee: Decimal = Decimal("0")
    available_payment_methods: Tuple[str, ...] = ()
    required_delivery_slot: bool = True


@dataclass(frozen=True)
class CheckoutResult(Entity):
    success: bool
    order: Optional[Order] = None
    errors: Tuple[str, ...] = ()
    confirmation_url: Optional[str] = None


# ============================================================
# ACCOUNT
# ============================================================

@dataclass(frozen=True)
class UserProfile(Entity):
    email: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    account_type: Optional[str] = None
    delivery_address: Optional[str] = None


@dataclass(frozen=True)
class AuthStatus(Entity):
    is_authenticated: bool
    email: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    login_time: Optional[datetime] = None


# ============================================================
# FORMS
# ============================================================

@dataclass(frozen=True)
class DiscoveredForm:
    """A form located on a reference page, ready to be overlaid and submitted."""
    intent: str
    action: str
    method: str = "post"
    fields: Dict[str, str] = field(default_factory=dict)
    token_field: Optional[str] = None
    token: Optional[str] = None

    def compose(self, values: Dict[str, Any]) -> Dict[str, str]:
        """Overlay intent-specific values onto the discovered hidden fields."""
        composed = dict(self.fields)
        for name, value in values.items():
            composed[name] = "" if value is None else str(value)
        return composed
