"""
Persistent cache store for the booking envelope.

Wraps a durable key-value store and keeps one CacheEnvelope under a fixed
key. No in-memory caching happens here; every call touches storage.
"""
import json
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.booking.errors import StoreError
from app.booking.expiry import now_ms
from app.booking.models import BookingRecord
from app.models import CacheRecord

from .core import CacheEnvelope

logger = logging.getLogger("cache.store")

DEFAULT_CACHE_KEY = "booking_data_cache"
DEFAULT_CACHE_TTL_MS = 30 * 60 * 1000


class KeyValueStore(Protocol):
    """
    Interface for the durable key-value collaborator.

    Implementations:
    - SQLKeyValueStore: rows in the cache_entries table via SQLAlchemy
    """

    def get(self, key: str) -> Optional[str]:
        """Stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class SQLKeyValueStore:
    """Key-value store on top of a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Get a session; roll back and wrap database errors."""
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Cache storage failure: {e}") from e
        finally:
            session.close()

    def get(self, key: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(CacheRecord, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        with self._session() as session:
            session.merge(CacheRecord(key=key, value=value))
            session.commit()

    def remove(self, key: str) -> None:
        with self._session() as session:
            session.query(CacheRecord).filter(CacheRecord.key == key).delete()
            session.commit()


class PersistentCacheStore:
    """
    Stores the booking envelope under one fixed key.

    The envelope's expiry is the cache TTL deadline, checked by
    `is_cache_stale`; the record's own domain expiry is not consulted here.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        key: str = DEFAULT_CACHE_KEY,
        default_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
    ):
        self._kv = kv_store
        self.key = key
        self.default_ttl_ms = default_ttl_ms

    def wrap(
        self,
        record: BookingRecord,
        ttl_ms: Optional[int] = None,
        now: Optional[int] = None,
    ) -> CacheEnvelope:
        """Build an envelope for a record, valid for `ttl_ms` (default TTL if omitted)."""
        return CacheEnvelope.create(
            record,
            ttl_ms=ttl_ms if ttl_ms is not None else self.default_ttl_ms,
            now=now if now is not None else now_ms(),
        )

    def save(self, envelope: CacheEnvelope) -> None:
        """
        Persist the envelope, replacing any previous one.

        Raises:
            StoreError: on write failure
        """
        try:
            self._kv.set(self.key, json.dumps(envelope.to_dict()))
        except StoreError:
            logger.error(f"Failed to save cache envelope under {self.key}")
            raise
        except Exception as e:
            logger.error(f"Failed to save cache envelope under {self.key}")
            raise StoreError(f"Cache write failed: {e}") from e
        logger.debug(f"Saved cache envelope under {self.key} (expires {envelope.expiry_time})")

    def load(self) -> Optional[CacheEnvelope]:
        """
        Load the envelope.

        Returns:
            The envelope, or None if nothing is stored

        Raises:
            StoreError: on I/O failure or malformed stored data
        """
        try:
            raw = self._kv.get(self.key)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Cache read failed: {e}") from e

        if raw is None:
            return None

        try:
            return CacheEnvelope.from_dict(json.loads(raw))
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed cache envelope under {self.key}: {e}") from e

    def clear(self) -> None:
        """
        Remove the envelope.

        Raises:
            StoreError: on write failure
        """
        try:
            self._kv.remove(self.key)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Cache clear failed: {e}") from e
        logger.info(f"Cleared cache envelope under {self.key}")

    @staticmethod
    def is_cache_stale(envelope: CacheEnvelope, now: Optional[int] = None) -> bool:
        """True once the envelope's cache TTL has passed."""
        current = now if now is not None else now_ms()
        return current > envelope.expiry_time
