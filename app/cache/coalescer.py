"""
Single-flight coordination for upstream fetches.

At most one upstream fetch is in flight at a time. Callers that need a
fetch while one is running join it and receive the same result or error.
Foreground and background fetches share the same slot.
"""
import threading
import time
import logging
from typing import Dict, Optional, Any, Tuple
from dataclasses import dataclass, field

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightFetch:
    """Tracks the in-progress upstream fetch."""
    origin: str
    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.time)
    waiter_count: int = 0

    @property
    def done(self) -> bool:
        return self.event.is_set()


class SingleFlight:
    """
    One shared in-flight slot guarded by a lock.

    Pattern:
    - The first caller claims the slot and performs the fetch
    - Later callers join and wait on the slot's Event
    - The initiator clears the slot, then signals completion,
      so any call after completion starts a new fetch

    Usage:
        flight, is_initiator = single_flight.join_or_start("foreground")
        if is_initiator:
            single_flight.finish(flight, result=do_fetch())
        result = single_flight.wait(flight)
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Max seconds a joiner waits; None waits indefinitely
        """
        self._current: Optional[InFlightFetch] = None
        self._lock = threading.Lock()
        self._timeout = timeout

    def join_or_start(self, origin: str) -> Tuple[InFlightFetch, bool]:
        """
        Join the in-flight fetch, or claim the slot for a new one.

        Returns:
            (flight, is_initiator)
        """
        with self._lock:
            if self._current is not None:
                self._current.waiter_count += 1
                logger.debug(
                    f"Joining in-flight {self._current.origin} fetch "
                    f"(waiters: {self._current.waiter_count})"
                )
                return self._current, False

            self._current = InFlightFetch(origin=origin)
            logger.debug(f"Initiating {origin} fetch")
            return self._current, True

    def try_start(self, origin: str) -> Optional[InFlightFetch]:
        """Claim the slot only if it is free; None if a fetch is already running."""
        with self._lock:
            if self._current is not None:
                logger.debug(f"Slot busy with {self._current.origin} fetch, skipping {origin}")
                return None
            self._current = InFlightFetch(origin=origin)
            logger.debug(f"Initiating {origin} fetch")
            return self._current

    def finish(
        self,
        flight: InFlightFetch,
        result: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        """Record the outcome, free the slot, and wake all waiters."""
        flight.result = result
        flight.error = error
        with self._lock:
            if self._current is flight:
                self._current = None
        flight.event.set()

    def wait(self, flight: InFlightFetch) -> Any:
        """
        Block until the flight completes.

        Raises:
            TimeoutError: If the wait exceeds the configured timeout
            Exception: The flight's error, shared by every waiter
        """
        completed = flight.event.wait(timeout=self._timeout)
        if not completed:
            logger.error(f"Timeout waiting for in-flight {flight.origin} fetch")
            raise TimeoutError(f"Waiting for upstream fetch timed out after {self._timeout}s")

        if flight.error is not None:
            raise flight.error
        return flight.result

    @property
    def in_flight(self) -> Optional[InFlightFetch]:
        with self._lock:
            return self._current

    def get_stats(self) -> Dict[str, Any]:
        """Get slot statistics."""
        with self._lock:
            current = self._current
            if current is None:
                return {"in_flight": False}
            return {
                "in_flight": True,
                "origin": current.origin,
                "waiters": current.waiter_count,
                "age_seconds": round(time.time() - current.started_at, 3),
            }
