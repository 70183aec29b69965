"""
Booking cache with a durable envelope, single-flight fetches, and stale-while-revalidate.
"""
from .core import CacheEnvelope, CacheSource, FetchResult
from .coalescer import InFlightFetch, SingleFlight
from .store import (
    DEFAULT_CACHE_KEY,
    DEFAULT_CACHE_TTL_MS,
    KeyValueStore,
    PersistentCacheStore,
    SQLKeyValueStore,
)
from .manager import BookingDataManager

__all__ = [
    # Core types
    "CacheEnvelope",
    "CacheSource",
    "FetchResult",
    # Coordination
    "InFlightFetch",
    "SingleFlight",
    # Persistence
    "DEFAULT_CACHE_KEY",
    "DEFAULT_CACHE_TTL_MS",
    "KeyValueStore",
    "PersistentCacheStore",
    "SQLKeyValueStore",
    # Manager
    "BookingDataManager",
]
