"""
Shared fixtures: booking payloads, scripted upstream transports, and
SQLite-backed cache stores.
"""
import copy
import threading
import time

import pytest

from app.booking.errors import StoreError
from app.booking.models import BookingRecord
from app.booking.service import BookingService
from app.cache import BookingDataManager, PersistentCacheStore, SQLKeyValueStore
from app.db import init_db, make_engine, make_session_factory


# =============================================================================
# Mock Data
# =============================================================================

def _segment(segment_id, origin="AAA", destination="BBB", tag=""):
    return {
        "id": segment_id,
        "originAndDestinationPair": {
            "destination": {
                "code": destination,
                "displayName": f"{destination} DisplayName{tag}",
                "url": "www.ship.com",
            },
            "destinationCity": f"{destination} City{tag}",
            "origin": {
                "code": origin,
                "displayName": f"{origin} DisplayName{tag}",
                "url": "www.ship.com",
            },
            "originCity": f"{origin} City{tag}",
        },
    }


def build_payload(
    segment_ids=(1, 2),
    reference="ABCDEF",
    expiry_time="1722409261",
    duration=2430,
    tag="",
):
    """Booking payload in upstream wire format."""
    return {
        "shipReference": reference,
        "shipToken": "AAAABBBCCCCDDD",
        "canIssueTicketChecking": False,
        "expiryTime": str(expiry_time),
        "duration": duration,
        "segments": [_segment(i, tag=tag) for i in segment_ids],
    }


@pytest.fixture
def expiry_in():
    """Decimal Unix-seconds string `seconds` from now."""
    def make(seconds):
        return str(int(time.time()) + seconds)
    return make


@pytest.fixture
def payload_factory():
    return build_payload


@pytest.fixture
def record_factory():
    def make(**kwargs):
        return BookingRecord.from_dict(build_payload(**kwargs))
    return make


# =============================================================================
# Upstream
# =============================================================================

class ScriptedTransport:
    """
    Transport that replays a script of payloads and exceptions.

    The last outcome repeats once the script is exhausted. With a gate set,
    every call blocks until the gate opens.
    """

    def __init__(self, outcomes, gate=None):
        self._outcomes = list(outcomes)
        self._lock = threading.Lock()
        self.gate = gate
        self.entered = threading.Event()
        self.calls = 0

    def fetch_payload(self):
        with self._lock:
            index = min(self.calls, len(self._outcomes) - 1)
            self.calls += 1
            outcome = self._outcomes[index]

        self.entered.set()
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "transport gate never opened"

        if isinstance(outcome, BaseException):
            raise outcome
        return copy.deepcopy(outcome)


@pytest.fixture
def transport_factory():
    return ScriptedTransport


@pytest.fixture
def no_sleep():
    """Sleep replacement recording requested delays."""
    delays = []

    def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'booking_cache.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def kv_store(session_factory):
    return SQLKeyValueStore(session_factory)


@pytest.fixture
def store(kv_store):
    return PersistentCacheStore(kv_store)


class BrokenKeyValueStore:
    """Key-value store whose operations fail on demand."""

    def __init__(self, inner=None, fail_get=True, fail_set=True, fail_remove=True, error=StoreError):
        self._inner = inner
        self.error = error
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.fail_remove = fail_remove

    def get(self, key):
        if self.fail_get:
            raise self.error("storage read failed")
        return self._inner.get(key) if self._inner else None

    def set(self, key, value):
        if self.fail_set:
            raise self.error("storage write failed")
        if self._inner:
            self._inner.set(key, value)

    def remove(self, key):
        if self.fail_remove:
            raise self.error("storage remove failed")
        if self._inner:
            self._inner.remove(key)


@pytest.fixture
def broken_kv_factory():
    return BrokenKeyValueStore


# =============================================================================
# Manager
# =============================================================================

@pytest.fixture
def manager_factory(no_sleep):
    managers = []

    def make(store, transport, max_retries=0, **kwargs):
        service = BookingService(transport, max_retries=max_retries, sleep=no_sleep)
        kwargs.setdefault("background_delay_ms", 0)
        manager = BookingDataManager(store, service, sleep=no_sleep, **kwargs)
        managers.append(manager)
        return manager

    yield make

    for manager in managers:
        manager.shutdown(wait=True)
