"""
Upstream booking source with bounded linear-backoff retry.
"""
import logging
import time
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from .errors import (
    BookingError,
    NetworkError,
    RetryExhaustedError,
    ServerError,
    ServiceUnavailableError,
)
from .expiry import now_ms
from .models import BookingRecord
from .transport import BookingTransport

logger = logging.getLogger("booking.service")

RETRYABLE_ERRORS = (NetworkError, ServiceUnavailableError)


class BookingService:
    """
    Fetches fresh booking records from an unreliable upstream.

    Retry policy:
    - First attempt plus up to `max_retries` retries
    - Delay before retry n is `base_delay_ms * n` (linear)
    - Only network and service-unavailable failures are retried

    Expiry policy:
    - A fresh record is stamped `now + default_expiry_seconds`
    - With `preserve_expiry_time` (background refresh) the previous
      record's expiry is stamped instead, so the domain countdown
      is not reset by a content refresh
    """

    def __init__(
        self,
        transport: BookingTransport,
        max_retries: int = 3,
        base_delay_ms: int = 1000,
        default_expiry_seconds: int = 3600,
        honor_upstream_expiry: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._transport = transport
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.default_expiry_seconds = default_expiry_seconds
        self.honor_upstream_expiry = honor_upstream_expiry
        self._sleep = sleep

        # Bookkeeping
        self.last_successful_fetch_ms: Optional[int] = None
        self.last_attempt_count = 0
        self.total_attempts = 0

    def fetch(self, preserve_expiry_time: Optional[str] = None) -> BookingRecord:
        """
        Single upstream attempt.

        Raises:
            NetworkError, ServiceUnavailableError: retryable failures
            ServerError: unusable response or malformed payload
        """
        self.total_attempts += 1
        payload = self._transport.fetch_payload()

        try:
            record = BookingRecord.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise ServerError(f"Malformed booking payload: {e}") from e

        if preserve_expiry_time is not None:
            record = record.with_expiry(preserve_expiry_time)
        elif not self.honor_upstream_expiry:
            record = record.with_expiry(str(now_ms() // 1000 + self.default_expiry_seconds))

        self.last_successful_fetch_ms = now_ms()
        return record

    def _retrying(self) -> Retrying:
        """Retry controller: first attempt plus max_retries, linear waits."""
        base_delay = self.base_delay_ms / 1000
        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=base_delay, increment=base_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        delay_ms = retry_state.next_action.sleep * 1000 if retry_state.next_action else 0
        logger.warning(
            f"Retrying booking fetch in {delay_ms:.0f}ms "
            f"(retry {retry_state.attempt_number}/{self.max_retries}): "
            f"{retry_state.outcome.exception()}"
        )

    def fetch_with_retry(self, preserve_expiry_time: Optional[str] = None) -> BookingRecord:
        """
        Fetch with bounded linear-backoff retry.

        Raises:
            RetryExhaustedError: retryable failures persisted past max_retries
            BookingError: non-retryable failure, raised on first occurrence
        """
        self.last_attempt_count = 0

        def attempt() -> BookingRecord:
            self.last_attempt_count += 1
            return self.fetch(preserve_expiry_time)

        try:
            record = self._retrying()(attempt)
        except RetryError as e:
            last_error: BookingError = e.last_attempt.exception()
            logger.error(f"Booking fetch failed after {self.max_retries} retries: {last_error}")
            raise RetryExhaustedError(self.max_retries, last_error) from last_error

        if self.last_attempt_count > 1:
            logger.info(f"Booking fetch succeeded on retry {self.last_attempt_count - 1}")
        return record
