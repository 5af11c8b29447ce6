"""
Product lookups: detail pages, search and category listings.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode

from ..base import Product
from ..errors import HttpStatusError, StorefrontError
from .base import BaseService

SEARCH_PATH = '/hledat'

# Products verified during reverse engineering, used for smoke checks
KNOWN_PRODUCT_IDS = (
    '1440986',  # Sutcha Prime Rump steak
    '1412825',  # FJORU ASC Krevety
    '1354611',  # Meloun vodní červený
    '1294559',  # Okurka hadovka
    '1287919',  # Ledový salát
    '1326593',  # Dublin Dairy cheddar
    '1295189',  # Monster Energy
)


def product_path(product_id: str) -> str:
    """Detail page path; the storefront redirects /{id}- to the canonical slug."""
    return f"/{product_id}-"


class ProductService(BaseService):
    """
    Cache-backed product reads.

    Usage:
        products = ProductService(context)
        product = await products.get_product('1440986')
        results = await products.search_products(query='mleko', limit=10)
    """

    name = 'products'

    def __init__(self, context, batch_delay: float = 1.0):
        """
        Args:
            context: Shared storefront context
            batch_delay: Pause between batches in get_products (seconds)
        """
        super().__init__(context)
        self.batch_delay = batch_delay

    async def _load_product(self, product_id: str) -> Optional[Product]:
        self.logger.info(f"Fetching product {product_id}")
        try:
            html = await self.transport.fetch_text(product_path(product_id))
        except HttpStatusError as e:
            if e.status == 404:
                self.logger.info(f"Product {product_id} not found")
                return None
            raise

        product = self.engine.parse_product(html, product_id)
        if product is None:
            self.logger.warning(f"Could not parse product page for {product_id}")
        else:
            self.logger.debug(f"Parsed product {product_id}: {product.name} ({product.price} {self.settings.currency})")
        return product

    async def get_product(self, product_id: str) -> Optional[Product]:
        """
        Get one product by id.

        Returns:
            Product, or None when the page is missing or unparsable
        """
        return await self.cache.get_or_load(
            'product', str(product_id), lambda: self._load_product(str(product_id))
        )

    async def get_products(self, product_ids: Iterable[str]) -> List[Product]:
        """
        Get several products, fetched concurrently in batches.

        Ids that fail or cannot be parsed are skipped; the result keeps the
        order of the ids that succeeded.
        """
        ids = [str(pid) for pid in product_ids]
        batch_size = max(1, self.settings.product_batch_size)
        products: List[Product] = []

        for start in range(0, len(ids), batch_size):
            batch = ids[start:start + batch_size]
            results = await asyncio.gather(
                *(self.get_product(pid) for pid in batch), return_exceptions=True
            )
            for pid, result in zip(batch, results):
                if isinstance(result, StorefrontError):
                    self.logger.warning(f"Skipping product {pid}: {result}")
                elif isinstance(result, BaseException):
                    raise result
                elif result is not None:
                    products.append(result)

            if start + batch_size < len(ids) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        self.logger.info(f"Fetched {len(products)} of {len(ids)} products")
        return products

    async def search_products(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Product]:
        """
        Search by text, or list a category when no query is given.

        Args:
            query: Search text
            category: Category path (e.g. 'c300105000-pekarna')
            limit: Page size passed to the storefront
            offset: Result offset passed to the storefront

        Returns:
            Products parsed from the listing (at most limit)
        """
        params: Dict[str, Any] = {}
        if query:
            path = SEARCH_PATH
            params['q'] = query
        elif category:
            path = '/' + category.strip('/')
        else:
            path = '/'

        if limit:
            params['limit'] = limit
        if offset:
            params['offset'] = offset

        url = path + (f"?{urlencode(params)}" if params else '')
        self.logger.info(f"Searching products: {url}")

        html = await self.transport.fetch_text(url)
        products = self.engine.parse_product_list(html)
        if limit:
            products = products[:limit]

        self.logger.info(f"Found {len(products)} products for {url}")
        return products

    async def get_category_products(self, category_path: str, limit: int = 20) -> List[Product]:
        return await self.search_products(category=category_path, limit=limit)

    async def get_known_products(self) -> List[Product]:
        return await self.get_products(KNOWN_PRODUCT_IDS)

    def clear_cache(self) -> int:
        return self.cache.clear('product')

    def cache_stats(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        return {
            'size': stats['by_kind'].get('product', 0),
            'ttl_seconds': self.cache.ttl_for('product'),
            'hits': stats['hits'],
            'misses': stats['misses'],
        }
