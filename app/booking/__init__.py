"""
Booking domain: record models, expiry evaluation, merge, and the upstream source.
"""
from .errors import (
    BookingError,
    DataExpiredError,
    ErrorType,
    NetworkError,
    RetryExhaustedError,
    ServerError,
    ServiceUnavailableError,
    StoreError,
    UnknownError,
    classify_error,
    get_error_message,
    get_retry_delay,
    should_retry,
)
from .expiry import (
    WARNING_WINDOW_MS,
    ExpiryInfo,
    ensure_not_expired,
    evaluate_expiry,
    format_remaining_time,
    format_time_until_expiry,
    should_refresh,
)
from .merge import merge_booking_data, merge_segments
from .models import BookingRecord, Location, OriginAndDestinationPair, Segment
from .service import BookingService
from .transport import BookingTransport, HttpBookingTransport

__all__ = [
    # Models
    "BookingRecord",
    "Location",
    "OriginAndDestinationPair",
    "Segment",
    # Expiry
    "WARNING_WINDOW_MS",
    "ExpiryInfo",
    "evaluate_expiry",
    "should_refresh",
    "ensure_not_expired",
    "format_time_until_expiry",
    "format_remaining_time",
    # Merge
    "merge_booking_data",
    "merge_segments",
    # Upstream
    "BookingService",
    "BookingTransport",
    "HttpBookingTransport",
    # Errors
    "BookingError",
    "ErrorType",
    "NetworkError",
    "StoreError",
    "DataExpiredError",
    "ServiceUnavailableError",
    "UnknownError",
    "ServerError",
    "RetryExhaustedError",
    "classify_error",
    "get_error_message",
    "should_retry",
    "get_retry_delay",
]
