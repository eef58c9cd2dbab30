"""
Expiring key/value stores for password attempt and verification records.

MemoryExpiringStore keeps records in the process, so a restart or a second
instance starts with no lockouts. RedisExpiringStore shares records across
instances and restarts.

Expiry is checked against the caller's clock on every read, and the memory
store drops stale records whenever it is written; nothing runs in the
background.
"""

import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


class ExpiringStore(ABC):
    """Async dict-of-dicts with optional absolute expiry per key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Get a live record, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any], expires_at: Optional[float] = None) -> None:
        """Store a record, optionally expiring at a unix timestamp."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a record if present."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record owned by this store."""


class MemoryExpiringStore(ExpiringStore):
    """Process-local store guarded by a lock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[Dict[str, Any], Optional[float]]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._entries[key]
                return None
            return dict(value)

    async def set(self, key: str, value: Dict[str, Any], expires_at: Optional[float] = None) -> None:
        with self._lock:
            self._purge_locked(self._clock())
            self._entries[key] = (dict(value), expires_at)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop expired records. Returns count removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [
            key for key, (_, expires_at) in self._entries.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisExpiringStore(ExpiringStore):
    """
    Redis-backed store.

    Records are JSON strings under ``<prefix><key>``; Redis drops them at
    ``expires_at`` and reads still compare against the clock so a lagging
    Redis expiry never extends a record.
    """

    def __init__(self, redis, prefix: str, clock: Callable[[], float] = time.time):
        self.redis = redis
        self.prefix = prefix
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.redis.get(self._key(key))
        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except ValueError:
            logger.warning("expiring_store_corrupt_record", key=self._key(key))
            await self.redis.delete(self._key(key))
            return None

        expires_at = record.pop("_expires_at", None)
        if expires_at is not None and expires_at <= self._clock():
            await self.redis.delete(self._key(key))
            return None
        return record

    async def set(self, key: str, value: Dict[str, Any], expires_at: Optional[float] = None) -> None:
        payload = dict(value)
        if expires_at is None:
            await self.redis.set(self._key(key), json.dumps(payload))
            return

        ttl = int(expires_at - self._clock()) + 1
        if ttl <= 0:
            await self.redis.delete(self._key(key))
            return
        payload["_expires_at"] = expires_at
        await self.redis.set(self._key(key), json.dumps(payload), ex=ttl)

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._key(key))

    async def clear(self) -> None:
        keys = [key async for key in self.redis.scan_iter(match=f"{self.prefix}*")]
        if keys:
            await self.redis.delete(*keys)
