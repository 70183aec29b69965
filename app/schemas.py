"""
Pydantic schemas for API request/response models
Response structures for the booking endpoints
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from app.booking.errors import BookingError, get_error_message, get_retry_delay, should_retry
from app.booking.expiry import (
    ExpiryInfo,
    evaluate_expiry,
    format_remaining_time,
    format_time_until_expiry,
)
from app.booking.models import BookingRecord
from app.cache.core import FetchResult


# ===== ERROR SCHEMAS =====

class ErrorPayload(BaseModel):
    """Classified error with a stable user-facing message"""
    code: str
    message: str
    retryable: bool
    retry_delay_ms: Optional[int] = None
    detail: Optional[str] = None

    @classmethod
    def from_error(cls, error: BookingError, attempt: int = 0) -> "ErrorPayload":
        retryable = should_retry(error)
        return cls(
            code=error.error_type.value,
            message=get_error_message(error),
            retryable=retryable,
            retry_delay_ms=get_retry_delay(attempt) if retryable else None,
            detail=error.message,
        )


# ===== EXPIRY SCHEMAS =====

class ExpiryPayload(BaseModel):
    """Domain expiry of a booking, with display strings"""
    is_expired: bool
    time_until_expiry_ms: int
    is_near_expiry: bool
    formatted: str
    countdown: str

    @classmethod
    def from_info(cls, info: ExpiryInfo) -> "ExpiryPayload":
        return cls(
            is_expired=info.is_expired,
            time_until_expiry_ms=info.time_until_expiry_ms,
            is_near_expiry=info.is_near_expiry,
            formatted=format_time_until_expiry(info.time_until_expiry_ms),
            countdown=format_remaining_time(info.time_until_expiry_ms),
        )


# ===== BOOKING SCHEMAS =====

class SegmentPayload(BaseModel):
    """One leg, flattened for display"""
    id: int
    route: str
    origin_city: str
    destination_city: str


class BookingResponse(BaseModel):
    """Result of a booking read"""
    data: Optional[Dict[str, Any]] = None
    segments: List[SegmentPayload] = []
    is_from_cache: bool
    source: str
    expiry: Optional[ExpiryPayload] = None
    error: Optional[ErrorPayload] = None

    @classmethod
    def from_result(cls, result: FetchResult) -> "BookingResponse":
        record: Optional[BookingRecord] = result.data
        return cls(
            data=record.to_dict() if record else None,
            segments=[
                SegmentPayload(
                    id=segment.id,
                    route=segment.route_display,
                    origin_city=segment.origin_and_destination_pair.origin_city,
                    destination_city=segment.origin_and_destination_pair.destination_city,
                )
                for segment in (record.segments if record else ())
            ],
            is_from_cache=result.is_from_cache,
            source=result.source.value,
            expiry=ExpiryPayload.from_info(evaluate_expiry(record)) if record else None,
            error=ErrorPayload.from_error(result.error) if result.error else None,
        )
