"""
Core cache data structures.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from app.booking.errors import BookingError
from app.booking.models import BookingRecord


class CacheSource(Enum):
    """Which path produced a result."""
    FRESH = "fresh"         # Valid cache, not near domain expiry
    STALE = "stale"         # Valid cache near domain expiry, refreshing in background
    UPSTREAM = "upstream"   # Fetched (or joined a fetch) from the upstream
    FALLBACK = "fallback"   # Fetch failed, serving last cached envelope


@dataclass(frozen=True)
class CacheEnvelope:
    """
    A cached record with its cache-validity window.

    `expiry_time` here is the cache TTL deadline (ms), not the record's
    domain expiry (seconds, on the record itself).
    """
    data: BookingRecord
    cached_at: int      # ms since epoch
    expiry_time: int    # ms since epoch

    @classmethod
    def create(cls, data: BookingRecord, ttl_ms: int, now: int) -> "CacheEnvelope":
        return cls(data=data, cached_at=now, expiry_time=now + ttl_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data.to_dict(),
            "cachedAt": self.cached_at,
            "expiryTime": self.expiry_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEnvelope":
        return cls(
            data=BookingRecord.from_dict(data["data"]),
            cached_at=int(data["cachedAt"]),
            expiry_time=int(data["expiryTime"]),
        )


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of a read. `data` is None only when `error` is set and no
    cached envelope existed to fall back to.
    """
    data: Optional[BookingRecord]
    error: Optional[BookingError] = None
    is_from_cache: bool = False
    source: CacheSource = CacheSource.UPSTREAM

    def __post_init__(self):
        if self.data is None and self.error is None:
            raise ValueError("FetchResult without data must carry an error")
