"""
Domain expiry evaluation for booking records.

Pure functions of the record and wall-clock time. Domain expiry is the
server-declared `expiryTime`; it is unrelated to the cache TTL checked by
the persistent store.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import DataExpiredError
from .models import BookingRecord

# Records expiring within this window are due for a refresh
WARNING_WINDOW_MS = 10 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in ms since epoch."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ExpiryInfo:
    """
    Remaining lifetime of a record.

    `is_near_expiry` also holds for expired records (negative remaining
    time is inside the warning window), so treat it as
    "expired or about to expire".
    """
    is_expired: bool
    time_until_expiry_ms: int
    is_near_expiry: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isExpired": self.is_expired,
            "timeUntilExpiry": self.time_until_expiry_ms,
            "isNearExpiry": self.is_near_expiry,
        }


def evaluate_expiry(record: BookingRecord, now: Optional[int] = None) -> ExpiryInfo:
    """Compute remaining lifetime and the near-expiry flag for a record."""
    current = now if now is not None else now_ms()
    time_until_expiry = record.expiry_time_ms - current
    return ExpiryInfo(
        is_expired=time_until_expiry <= 0,
        time_until_expiry_ms=time_until_expiry,
        is_near_expiry=time_until_expiry < WARNING_WINDOW_MS,
    )


def should_refresh(record: BookingRecord, now: Optional[int] = None) -> bool:
    """True if the record is expired or inside the warning window."""
    info = evaluate_expiry(record, now)
    return info.is_expired or info.is_near_expiry


def ensure_not_expired(record: BookingRecord, now: Optional[int] = None) -> BookingRecord:
    """
    Return the record unchanged, or raise if its domain expiry has passed.

    Raises:
        DataExpiredError: if the record is expired
    """
    info = evaluate_expiry(record, now)
    if info.is_expired:
        raise DataExpiredError(
            f"Booking {record.ship_reference} expired {-info.time_until_expiry_ms // 1000}s ago",
            details={"expiryTime": record.expiry_time},
        )
    return record


def format_time_until_expiry(time_ms: int) -> str:
    """
    Format remaining lifetime as 'expires in 1h 30m' or 'expires in 45m'.

    Zero or negative values format as 'expired'.
    """
    if time_ms <= 0:
        return "expired"

    minutes = time_ms // (60 * 1000)
    hours = minutes // 60

    if hours > 0:
        return f"expires in {hours}h {minutes % 60}m"
    return f"expires in {minutes}m"


def format_remaining_time(time_ms: int) -> str:
    """Format remaining lifetime as an HH:MM:SS countdown."""
    total_seconds = max(0, time_ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
