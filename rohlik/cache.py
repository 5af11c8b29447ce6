"""
Short-lived in-process cache for extracted entities.

Usage:
    cache = EntityCache({'product': 600, 'order': 300})

    product = cache.get('product', '1440986')
    cache.put('product', '1440986', product)

    # Miss -> load -> store
    product = await cache.get_or_load('product', '1440986', lambda: fetch('1440986'))
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300

CacheKey = Tuple[str, Hashable]


@dataclass(frozen=True)
class CacheEntry:
    """A cached entity. Replaced wholesale, never updated in place."""
    entity: Any
    inserted_at: float


class EntityCache:
    """
    Map of (kind, identity) -> CacheEntry with a fixed TTL per kind.

    Expired entries are evicted when read. There is no lock and no
    single-flight: two concurrent misses for the same key both run their
    loader, and the later put wins.
    """

    def __init__(
        self,
        ttls: Optional[Mapping[str, float]] = None,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttls = dict(ttls or {})
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def ttl_for(self, kind: str) -> float:
        return self.ttls.get(kind, self.default_ttl)

    def get(self, kind: str, key: Hashable) -> Optional[Any]:
        """Cached entity, or None when absent or expired."""
        cache_key = (kind, key)
        entry = self._entries.get(cache_key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() - entry.inserted_at >= self.ttl_for(kind):
            del self._entries[cache_key]
            self._misses += 1
            logger.debug(f"Cache expired: {kind} {key}")
            return None

        self._hits += 1
        return entry.entity

    def put(self, kind: str, key: Hashable, entity: Any) -> None:
        """Store entity under (kind, key). None is never cached."""
        if entity is None:
            return
        self._entries[(kind, key)] = CacheEntry(entity=entity, inserted_at=self._clock())
        logger.debug(f"Cached {kind} {key}")

    async def get_or_load(
        self,
        kind: str,
        key: Hashable,
        loader: Callable[[], Awaitable[Optional[Any]]],
    ) -> Optional[Any]:
        """
        Return the cached entity or await loader() and cache its result.

        Args:
            kind: Entity kind (selects the TTL)
            key: Entity identity
            loader: Coroutine factory producing the entity (or None)

        Returns:
            The entity, or None when the loader found nothing
        """
        cached = self.get(kind, key)
        if cached is not None:
            logger.debug(f"Cache hit: {kind} {key}")
            return cached

        entity = await loader()
        self.put(kind, key, entity)
        return entity

    def invalidate(self, kind: str, key: Hashable) -> bool:
        """Drop one entry. Returns True if it was present."""
        return self._entries.pop((kind, key), None) is not None

    def clear(self, kind: Optional[str] = None) -> int:
        """
        Drop all entries, or only those of one kind.

        Returns:
            Number of entries removed
        """
        if kind is None:
            removed = len(self._entries)
            self._entries = {}
        else:
            keys = [k for k in self._entries if k[0] == kind]
            for k in keys:
                del self._entries[k]
            removed = len(keys)
        if removed:
            logger.info(f"Cleared {removed} cached {kind or 'entity'} entries")
        return removed

    def stats(self) -> Dict[str, Any]:
        """Entry counts per kind plus hit/miss counters."""
        per_kind: Dict[str, int] = {}
        for kind, _key in self._entries:
            per_kind[kind] = per_kind.get(kind, 0) + 1
        return {
            'size': len(self._entries),
            'by_kind': per_kind,
            'hits': self._hits,
            'misses': self._misses,
        }

    def __len__(self) -> int:
        return len(self._entries)
