"""
Error taxonomy for the booking cache.

Every error surfaced to callers is a BookingError carrying a classification,
so presentation code can render a stable message per category instead of
raw exception text.
"""
import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(Enum):
    """Classification of booking errors."""
    NETWORK_ERROR = "NETWORK_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    DATA_EXPIRED = "DATA_EXPIRED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Stable user-facing messages, keyed by classification
ERROR_MESSAGES: Dict[ErrorType, str] = {
    ErrorType.NETWORK_ERROR: "Network connection failed. Please check your connection.",
    ErrorType.CACHE_ERROR: "Cached data could not be read. The booking may need to be reloaded.",
    ErrorType.DATA_EXPIRED: "Booking data has expired. Refresh to get the latest information.",
    ErrorType.SERVICE_UNAVAILABLE: "The booking service is temporarily unavailable. Please try again later.",
    ErrorType.UNKNOWN_ERROR: "An unknown error occurred.",
}

RETRYABLE_TYPES = (ErrorType.NETWORK_ERROR, ErrorType.SERVICE_UNAVAILABLE)

# Caller-level retry delay bounds (ms)
RETRY_DELAY_BASE_MS = 1000
RETRY_DELAY_MAX_MS = 10000


class BookingError(Exception):
    """Base exception for the booking cache."""

    error_type: ErrorType = ErrorType.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        error_type: Optional[ErrorType] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        self.details = details or {}
        self.timestamp = int(time.time() * 1000)

    @property
    def retryable(self) -> bool:
        return self.error_type in RETRYABLE_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class NetworkError(BookingError):
    """Upstream unreachable or timed out."""
    error_type = ErrorType.NETWORK_ERROR


class StoreError(BookingError):
    """Persistent cache read/write/parse failure."""
    error_type = ErrorType.CACHE_ERROR


class DataExpiredError(BookingError):
    """Booking data is past its server-declared expiry."""
    error_type = ErrorType.DATA_EXPIRED


class ServiceUnavailableError(BookingError):
    """Upstream explicitly rejected the request."""
    error_type = ErrorType.SERVICE_UNAVAILABLE


class UnknownError(BookingError):
    """Catch-all classification."""
    error_type = ErrorType.UNKNOWN_ERROR


class ServerError(UnknownError):
    """Upstream answered with something unusable (bad status, bad payload). Not retried."""


class RetryExhaustedError(BookingError):
    """Raised when the upstream still fails after all retries."""

    def __init__(self, retries: int, last_error: BookingError):
        super().__init__(
            f"Upstream fetch failed after {retries} retries: {last_error.message}",
            error_type=last_error.error_type,
            details={"retries": retries, "last_error": last_error.message},
        )
        self.retries = retries
        self.last_error = last_error


def classify_error(error: BaseException) -> BookingError:
    """
    Normalize any exception into a BookingError.

    BookingErrors pass through untouched. Builtin timeout/connection errors
    map to NETWORK_ERROR; anything else is classified from its message.
    """
    if isinstance(error, BookingError):
        return error

    message = str(error) or error.__class__.__name__

    if isinstance(error, (TimeoutError, ConnectionError)):
        return NetworkError(message)

    lowered = message.lower()
    if "network" in lowered or "fetch" in lowered or "timeout" in lowered:
        return NetworkError(message)
    if "cache" in lowered or "storage" in lowered:
        return StoreError(message)
    if "expired" in lowered:
        return DataExpiredError(message)
    if "unavailable" in lowered:
        return ServiceUnavailableError(message)
    return UnknownError(message)


def get_error_message(error: BookingError) -> str:
    """Human-readable message for an error's classification."""
    return ERROR_MESSAGES[error.error_type]


def should_retry(error: BookingError) -> bool:
    """Whether the caller should offer a retry for this error."""
    return error.error_type in RETRYABLE_TYPES


def get_retry_delay(attempt: int) -> int:
    """
    Suggested caller-level retry delay in ms (exponential, capped).

    Separate from the upstream client's own linear backoff.
    """
    return min(RETRY_DELAY_BASE_MS * (2 ** attempt), RETRY_DELAY_MAX_MS)
