"""
Transport interface and HTTP implementation for the booking upstream.

The transport performs a single round trip and classifies its failures;
retry policy lives in BookingService.
"""
import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .errors import NetworkError, ServerError, ServiceUnavailableError

logger = logging.getLogger("booking.transport")

# Statuses that mean "try again later" rather than "this request is wrong"
UNAVAILABLE_STATUSES = (429, 502, 503, 504)


class BookingTransport(Protocol):
    """
    Interface for fetching the raw booking payload.

    Implementations:
    - HttpBookingTransport: GET against the booking API (current)
    """

    def fetch_payload(self) -> Dict[str, Any]:
        """
        Perform one upstream round trip.

        Returns:
            The booking record in wire format

        Raises:
            NetworkError: upstream unreachable or timed out
            ServiceUnavailableError: upstream explicitly refused service
            ServerError: any other unusable response
        """
        ...


class HttpBookingTransport:
    """Fetches the booking document with `requests`."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_payload(self) -> Dict[str, Any]:
        try:
            response = self._session.get(self.url, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkError(f"Network request to {self.url} failed: {e}") from e
        except requests.RequestException as e:
            raise ServerError(f"Request to {self.url} failed: {e}") from e

        if response.status_code in UNAVAILABLE_STATUSES:
            raise ServiceUnavailableError(
                f"Booking service unavailable (HTTP {response.status_code})",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 400:
            raise ServerError(
                f"Booking service returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ServerError(f"Booking service returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ServerError(f"Booking payload must be an object, got {type(payload).__name__}")

        logger.debug(f"Fetched booking payload from {self.url}")
        return payload

    def close(self) -> None:
        self._session.close()
