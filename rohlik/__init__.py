"""
Rohlik.cz storefront client.

This package provides a session-aware, rate-limited scraping client:
- SessionStore owns cookies and authentication state
- RateLimitedTransport performs every HTTP call under a fixed-window quota
- ExtractionEngine turns storefront HTML into typed entities
- EntityCache keeps extracted entities for a short TTL
- DualPathMutator performs state changes API-first with a form fallback
"""

from .base import (
    AuthStatus,
    CartItem,
    CartSummary,
    CheckoutRequest,
    CheckoutResult,
    CheckoutValidation,
    DeliveryAddress,
    DeliveryArea,
    DeliverySlot,
    DiscoveredForm,
    LocationValidationResult,
    Order,
    OrderItem,
    OrderStatus,
    PickupPoint,
    Product,
    UserProfile,
)
from .cache import EntityCache
from .config import Settings
from .context import StorefrontContext, create_context
from .crawlers import FixedWindowRateLimiter, RateLimitedTransport
from .errors import (
    AuthenticationRequired,
    CartOperationError,
    CsrfTokenMissing,
    FormDiscoveryError,
    HttpStatusError,
    LoginFailed,
    NetworkError,
    OrderOperationError,
    RateLimitExceeded,
    StorefrontError,
    TransportError,
    TransportTimeout,
)
from .extraction import ExtractionEngine
from .mutator import DualPathMutator, MutationIntent, MutationOutcome, MutationState
from .session import SessionStore
from .storefront import Storefront

__all__ = [
    'Settings',
    'StorefrontContext',
    'create_context',
    'Storefront',
    'SessionStore',
    'FixedWindowRateLimiter',
    'RateLimitedTransport',
    'ExtractionEngine',
    'EntityCache',
    'DualPathMutator',
    'MutationIntent',
    'MutationOutcome',
    'MutationState',
    # Entities
    'Product',
    'CartItem',
    'CartSummary',
    'DeliveryAddress',
    'DeliverySlot',
    'DeliveryArea',
    'PickupPoint',
    'LocationValidationResult',
    'Order',
    'OrderItem',
    'OrderStatus',
    'CheckoutRequest',
    'CheckoutValidation',
    'CheckoutResult',
    'UserProfile',
    'AuthStatus',
    'DiscoveredForm',
    # Errors
    'StorefrontError',
    'TransportError',
    'RateLimitExceeded',
    'NetworkError',
    'TransportTimeout',
    'HttpStatusError',
    'FormDiscoveryError',
    'CsrfTokenMissing',
    'AuthenticationRequired',
    'LoginFailed',
    'CartOperationError',
    'OrderOperationError',
]
