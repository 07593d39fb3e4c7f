"""
Result Cache Service

This module provides the in-process result caches placed in front of the
upstream employee service.

Two independently configured caches exist:
- collection: the whole employee list under a single key (capacity 1)
- by-id: single employees keyed by id (bounded LRU, capacity 500)

Eviction:
- TTL: an entry older than its TTL is never returned. Expiry is lazy on
  read, with purge_expired() available for an eager sweep.
- Capacity: least-recently-used entries are evicted when a put exceeds
  capacity. TTL and capacity are independent; either may evict first.

Invalidation:
- invalidate_all() empties a cache and bumps its generation. A put made
  with a generation captured before an invalidation is discarded, so a slow
  read that raced a write cannot re-populate stale data.

Reference Documents:
- GUIDELINES: Async patterns, dependency injection
- Caffeine-style expire-after-write + maximum-size policies

Pattern: Repository pattern with in-memory storage
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, Optional, TypeVar

from pydantic import BaseModel, Field

from employee_gateway.core.config import Settings
from employee_gateway.models.domain import Employee
from employee_gateway.observability.logging import get_logger
from employee_gateway.resilience.metrics import record_cache_operation

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

COLLECTION_CACHE_NAME = "collection"
BY_ID_CACHE_NAME = "by-id"
COLLECTION_KEY = "all"

DEFAULT_COLLECTION_TTL_SECONDS = 60.0
DEFAULT_COLLECTION_CAPACITY = 1
DEFAULT_BY_ID_TTL_SECONDS = 300.0
DEFAULT_BY_ID_CAPACITY = 500


# =============================================================================
# Models
# =============================================================================


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with its insertion time and TTL."""

    value: V
    inserted_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        """Whether the entry has reached its TTL."""
        return now - self.inserted_at >= self.ttl_seconds


class CacheStats(BaseModel):
    """
    Statistics for one cache.

    Attributes:
        name: Cache name
        size: Entries currently stored (expired ones included until swept)
        capacity: Maximum number of entries
        hits: Reads served from the cache
        misses: Reads not served from the cache
        evictions: Entries removed for capacity
        expirations: Entries removed for TTL
        hit_rate: hits / (hits + misses), 0.0 before any read
    """

    name: str
    size: int = Field(ge=0)
    capacity: int = Field(ge=1)
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    evictions: int = Field(default=0, ge=0)
    expirations: int = Field(default=0, ge=0)
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = {"frozen": True}


# =============================================================================
# TTLCache
# =============================================================================


class TTLCache(Generic[K, V]):
    """
    Bounded LRU cache with per-entry TTL.

    Each instance owns its own asyncio.Lock; no lock is shared with other
    caches or with the resilience components.

    Example:
        >>> cache = TTLCache("by-id", ttl_seconds=300, capacity=500)
        >>> await cache.put("42", employee)
        >>> await cache.get("42")
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        capacity: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize TTLCache.

        Args:
            name: Cache name for logs and metrics
            ttl_seconds: Default time-to-live of an entry
            capacity: Maximum number of entries (LRU beyond this)
            clock: Monotonic time source (injectable for tests)
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self._name = name
        self._ttl_seconds = ttl_seconds
        self._capacity = capacity
        self._clock = clock

        self._entries: "OrderedDict[K, CacheEntry[V]]" = OrderedDict()
        self._generation = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

        self._lock = asyncio.Lock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        """Cache name."""
        return self._name

    @property
    def ttl_seconds(self) -> float:
        """Default time-to-live of an entry."""
        return self._ttl_seconds

    @property
    def capacity(self) -> int:
        """Maximum number of entries."""
        return self._capacity

    @property
    def generation(self) -> int:
        """Counter bumped by every invalidate_all()."""
        return self._generation

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # Operations
    # =========================================================================

    async def get(self, key: K) -> Optional[V]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            The cached value, or None on a miss (absent or expired)
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                record_cache_operation(self._name, "miss")
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                record_cache_operation(self._name, "expiration")
                record_cache_operation(self._name, "miss")
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            record_cache_operation(self._name, "hit")
            return entry.value

    async def put(
        self,
        key: K,
        value: V,
        ttl_seconds: Optional[float] = None,
        generation: Optional[int] = None,
    ) -> bool:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Override of the default TTL
            generation: Generation observed before the value was loaded;
                the put is discarded if the cache was invalidated since

        Returns:
            True if the value was stored
        """
        async with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(
                    "discarding cache put from before invalidation",
                    cache=self._name,
                    key=str(key),
                )
                return False

            self._entries[key] = CacheEntry(
                value=value,
                inserted_at=self._clock(),
                ttl_seconds=self._ttl_seconds if ttl_seconds is None else ttl_seconds,
            )
            self._entries.move_to_end(key)

            while len(self._entries) > self._capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                record_cache_operation(self._name, "eviction")
                logger.debug("cache eviction", cache=self._name, key=str(evicted_key))

            return True

    async def invalidate_all(self) -> int:
        """
        Remove every entry and bump the generation.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._generation += 1
            record_cache_operation(self._name, "invalidation")
            logger.debug(
                "cache invalidated",
                cache=self._name,
                removed=removed,
                generation=self._generation,
            )
            return removed

    async def purge_expired(self) -> int:
        """
        Eagerly remove expired entries.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
                record_cache_operation(self._name, "expiration")
            self._expirations += len(expired)
            return len(expired)

    def stats(self) -> CacheStats:
        """Return a statistics snapshot."""
        reads = self._hits + self._misses
        return CacheStats(
            name=self._name,
            size=len(self._entries),
            capacity=self._capacity,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            expirations=self._expirations,
            hit_rate=self._hits / reads if reads else 0.0,
        )


# =============================================================================
# ResultCache
# =============================================================================


class ResultCache:
    """
    The pair of caches used by the employee service.

    The two caches may transiently disagree (an id can be cached
    individually after the collection entry expired); writes invalidate both.

    Attributes:
        collection: Whole-collection cache (single key COLLECTION_KEY)
        by_id: Employee-by-id cache
    """

    def __init__(
        self,
        collection: Optional[TTLCache[str, list[Employee]]] = None,
        by_id: Optional[TTLCache[str, Employee]] = None,
    ) -> None:
        self._collection = collection or TTLCache(
            COLLECTION_CACHE_NAME,
            ttl_seconds=DEFAULT_COLLECTION_TTL_SECONDS,
            capacity=DEFAULT_COLLECTION_CAPACITY,
        )
        self._by_id = by_id or TTLCache(
            BY_ID_CACHE_NAME,
            ttl_seconds=DEFAULT_BY_ID_TTL_SECONDS,
            capacity=DEFAULT_BY_ID_CAPACITY,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ) -> "ResultCache":
        """Create both caches from application settings."""
        return cls(
            collection=TTLCache(
                COLLECTION_CACHE_NAME,
                ttl_seconds=settings.collection_cache_ttl_seconds,
                capacity=settings.collection_cache_capacity,
                clock=clock,
            ),
            by_id=TTLCache(
                BY_ID_CACHE_NAME,
                ttl_seconds=settings.by_id_cache_ttl_seconds,
                capacity=settings.by_id_cache_capacity,
                clock=clock,
            ),
        )

    @property
    def collection(self) -> TTLCache[str, list[Employee]]:
        """Whole-collection cache."""
        return self._collection

    @property
    def by_id(self) -> TTLCache[str, Employee]:
        """Employee-by-id cache."""
        return self._by_id

    async def invalidate_all(self) -> None:
        """Invalidate both caches in full."""
        await self._collection.invalidate_all()
        await self._by_id.invalidate_all()

    def stats(self) -> dict[str, CacheStats]:
        """Statistics of both caches keyed by cache name."""
        return {
            self._collection.name: self._collection.stats(),
            self._by_id.name: self._by_id.stats(),
        }
