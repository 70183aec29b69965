"""
Booking data orchestration with single-flight fetches and stale-while-revalidate.
"""
import threading
import logging
import time
from typing import Dict, Optional, Callable, Any
from concurrent.futures import Future, ThreadPoolExecutor

from app.booking.errors import BookingError, classify_error
from app.booking.expiry import ExpiryInfo, evaluate_expiry, should_refresh
from app.booking.merge import merge_booking_data
from app.booking.models import BookingRecord
from app.booking.service import BookingService

from .coalescer import InFlightFetch, SingleFlight
from .core import CacheEnvelope, CacheSource, FetchResult
from .store import PersistentCacheStore

logger = logging.getLogger("cache.manager")


class BookingDataManager:
    """
    Main cache orchestration for the booking record:
    - Serves valid cache, refreshing in the background near domain expiry
    - Fetches synchronously on miss, TTL expiry, or forced refresh
    - One shared in-flight slot for foreground and background fetches
    - Merges fresh records with still-valid cached segments
    - Falls back to the last cached envelope when the upstream fails

    Construct one instance per application and pass it to callers.
    """

    def __init__(
        self,
        store: PersistentCacheStore,
        service: BookingService,
        background_delay_ms: int = 100,
        join_timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the manager.

        Args:
            store: Persistent cache for the booking envelope
            service: Upstream source with retry
            background_delay_ms: Delay before a scheduled background refresh runs
            join_timeout: Max seconds a caller waits on a joined fetch (None = no limit)
            sleep: Sleep function, injectable for tests
        """
        self._store = store
        self._service = service
        self._flight = SingleFlight(timeout=join_timeout)
        self._background_delay_ms = background_delay_ms
        self._sleep = sleep

        # Background refresh runs one at a time; the shared slot enforces it
        self._refresh_pool = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="booking-refresh",
        )

        # Bumped by clear_cache; fetches begun under an older generation don't persist
        self._cache_lock = threading.Lock()
        self._generation = 0

        # Stats tracking
        self._stats_lock = threading.Lock()
        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "joined": 0,
            "fallbacks": 0,
            "failures": 0,
            "store_read_errors": 0,
            "upstream_fetches": 0,
            "background_refreshes": 0,
            "background_failures": 0,
            "superseded_fetches": 0,
        }

    # =========================================================================
    # Upward interface
    # =========================================================================

    def get_data(self, force_refresh: bool = False) -> FetchResult:
        """
        Get the booking record from cache or upstream.

        Never raises for recoverable situations: failures come back as a
        FetchResult carrying the error, with cached data when any exists.

        Args:
            force_refresh: Skip the cache and fetch synchronously
        """
        if force_refresh:
            logger.info("FORCE REFRESH: booking")
        else:
            envelope = self._read_cache()
            if envelope is None:
                logger.info("CACHE MISS: booking")
            elif self._store.is_cache_stale(envelope):
                logger.info(f"CACHE EXPIRED: booking [cached_at={envelope.cached_at}]")
            else:
                return self._serve_cached(envelope)

        try:
            return self._fetch_sync()
        except Exception as e:
            return self._fallback(classify_error(e))

    def refresh_data(self) -> FetchResult:
        """Force a synchronous fetch, falling back to cache on failure."""
        return self.get_data(force_refresh=True)

    def clear_cache(self) -> None:
        """
        Remove the cached envelope.

        Raises:
            StoreError: on write failure
        """
        logger.info("Clearing booking cache")
        with self._cache_lock:
            self._generation += 1
            self._store.clear()

    @staticmethod
    def get_expiry_info(record: BookingRecord) -> ExpiryInfo:
        """Domain expiry info for a record."""
        return evaluate_expiry(record)

    def schedule_background_refresh(self, cached: BookingRecord) -> Optional[Future]:
        """
        Refresh in the background, keeping the cached record's domain expiry.

        No-op while any fetch (foreground or background) is in flight.

        Returns:
            Future of the refresh task, or None if nothing was scheduled
        """
        generation = self._current_generation()
        flight = self._flight.try_start("background")
        if flight is None:
            logger.debug("Background refresh skipped: fetch already in flight")
            return None

        try:
            return self._refresh_pool.submit(
                self._background_refresh, flight, generation, cached.expiry_time
            )
        except RuntimeError as e:
            # Pool already shut down
            logger.warning(f"Could not schedule background refresh: {e}")
            self._flight.finish(flight, error=classify_error(e))
            return None

    # =========================================================================
    # Read paths
    # =========================================================================

    def _serve_cached(self, envelope: CacheEnvelope) -> FetchResult:
        """Serve a TTL-valid envelope, revalidating if near domain expiry."""
        if should_refresh(envelope.data):
            logger.info("CACHE HIT (near expiry, revalidating): booking")
            self._bump("hits_stale")
            self.schedule_background_refresh(envelope.data)
            return FetchResult(data=envelope.data, is_from_cache=True, source=CacheSource.STALE)

        logger.debug("CACHE HIT (fresh): booking")
        self._bump("hits_fresh")
        return FetchResult(data=envelope.data, is_from_cache=True, source=CacheSource.FRESH)

    def _fetch_sync(self) -> FetchResult:
        """Fetch through the shared slot, joining any fetch already in flight."""
        self._bump("misses")
        generation = self._current_generation()
        flight, is_initiator = self._flight.join_or_start("foreground")
        if is_initiator:
            self._run_flight(flight, generation)
        else:
            self._bump("joined")

        record = self._flight.wait(flight)
        return FetchResult(data=record, is_from_cache=False, source=CacheSource.UPSTREAM)

    def _fallback(self, error: BookingError) -> FetchResult:
        """Serve the most recent envelope, whatever its age, after a failed fetch."""
        envelope = self._read_cache()
        if envelope is not None:
            logger.warning(f"FALLBACK: serving cached booking after failure: {error}")
            self._bump("fallbacks")
            return FetchResult(
                data=envelope.data,
                error=error,
                is_from_cache=True,
                source=CacheSource.FALLBACK,
            )

        logger.error(f"No booking data available: {error}")
        self._bump("failures")
        return FetchResult(data=None, error=error, is_from_cache=False)

    # =========================================================================
    # Fetch execution
    # =========================================================================

    def _current_generation(self) -> int:
        with self._cache_lock:
            return self._generation

    def _run_flight(
        self,
        flight: InFlightFetch,
        generation: int,
        preserve_expiry_time: Optional[str] = None,
    ) -> None:
        """Fetch, merge, persist, then complete the flight for every waiter."""
        result = None
        error = None
        self._bump("upstream_fetches")
        try:
            fresh = self._service.fetch_with_retry(preserve_expiry_time)
            result = self._merge_and_persist(fresh, generation)
        except Exception as e:
            error = classify_error(e)
            logger.warning(f"Upstream {flight.origin} fetch failed: {error}")
        finally:
            self._flight.finish(flight, result=result, error=error)

    def _merge_and_persist(self, fresh: BookingRecord, generation: int) -> BookingRecord:
        """
        Merge with a still-valid cached record, then save.

        A fetch claimed before the last clear_cache is returned to its
        waiters but not merged or saved.
        """
        with self._cache_lock:
            if generation != self._generation:
                logger.info("Cache cleared during fetch, result not persisted")
                self._bump("superseded_fetches")
                return fresh

            record = fresh
            cached = self._read_cache()
            if cached is not None and not self._store.is_cache_stale(cached):
                logger.debug(
                    f"Merging segments {cached.data.segment_ids} with fresh {fresh.segment_ids}"
                )
                record = merge_booking_data(cached.data, fresh)

            self._store.save(self._store.wrap(record))
            return record

    def _background_refresh(self, flight: InFlightFetch, generation: int, expiry_time: str) -> None:
        """Runs on the refresh pool; failures are logged, never raised."""
        if self._background_delay_ms:
            self._sleep(self._background_delay_ms / 1000)

        logger.debug("Background refresh started: booking")
        self._run_flight(flight, generation, preserve_expiry_time=expiry_time)

        if flight.error is not None:
            self._bump("background_failures")
            logger.warning(f"Background refresh failed: {flight.error}")
        else:
            self._bump("background_refreshes")
            logger.info("Background refresh complete: booking")

    def _read_cache(self) -> Optional[CacheEnvelope]:
        """Load the envelope; read failures count as a miss."""
        try:
            return self._store.load()
        except Exception as e:
            self._bump("store_read_errors")
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def _bump(self, counter: str) -> None:
        with self._stats_lock:
            self._stats[counter] += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self._stats)

        total_hits = stats["hits_fresh"] + stats["hits_stale"]
        total_requests = total_hits + stats["misses"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        stats["hit_rate_percent"] = round(hit_rate, 1)
        stats["single_flight"] = self._flight.get_stats()
        stats["last_successful_fetch_ms"] = self._service.last_successful_fetch_ms
        stats["upstream_attempts"] = self._service.total_attempts
        return stats

    def shutdown(self, wait: bool = True) -> None:
        """Stop the refresh pool, optionally waiting for a pending refresh."""
        self._refresh_pool.shutdown(wait=wait)
