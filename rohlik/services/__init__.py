"""
Calling services built on the storefront context.
"""

from .auth import AuthService
from .base import BaseService
from .cart import CartService
from .location import LocationService
from .order import OrderService
from .product import KNOWN_PRODUCT_IDS, ProductService

__all__ = [
    'BaseService',
    'AuthService',
    'ProductService',
    'CartService',
    'LocationService',
    'OrderService',
    'KNOWN_PRODUCT_IDS',
]
