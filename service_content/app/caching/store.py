"""
Cache store implementations shared by all pipelines and the invalidator.

Stores are addressed by plain string keys and raise ``StoreUnavailable`` for
any backend failure; interpreting those failures is left to the caller.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StoreUnavailable
from shared.logging import get_logger


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and its bookkeeping."""

    key: str
    value: Any
    inserted_at: float
    ttl: Optional[int] = None

    def to_json(self) -> str:
        return json.dumps({"value": self.value, "inserted_at": self.inserted_at, "ttl": self.ttl})

    @classmethod
    def from_json(cls, key: str, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        if not isinstance(data, dict) or "value" not in data:
            raise ValueError("cache envelope missing value")
        return cls(key=key, value=data["value"], inserted_at=float(data.get("inserted_at") or 0.0), ttl=data.get("ttl"))


class CacheStore(ABC):
    """Key/value store with TTL support."""

    async def connect(self) -> None:
        """Open connections; called once on service startup."""

    async def close(self) -> None:
        """Release connections; called once on service shutdown."""

    async def ping(self) -> bool:
        return True

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheEntry:
        """Store ``value`` under ``key``; ``ttl`` in seconds, None for no expiry."""

    @abstractmethod
    async def delete(self, keys: Iterable[str]) -> int:
        """Delete ``keys`` and return how many existed."""


class RedisCacheStore(CacheStore):
    """Redis-backed store holding JSON envelopes."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        *,
        db: int = 0,
        password: Optional[str] = None,
        operation_timeout: float = 5.0,
        client: Optional[redis.Redis] = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.operation_timeout = operation_timeout
        self.logger = get_logger("content.store")
        self._redis: Optional[redis.Redis] = client

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                socket_connect_timeout=self.operation_timeout,
                socket_timeout=self.operation_timeout,
            )
        return self._redis

    async def _call(self, operation: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.operation_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            raise StoreUnavailable(operation, str(exc) or type(exc).__name__) from exc

    async def connect(self) -> None:
        try:
            await self._call("connect", self._client().ping())
            self.logger.info("Redis cache store connected", host=self.host, port=self.port, db=self.db)
        except StoreUnavailable as exc:
            # Startup continues; the read path degrades to upstream fetches.
            self.logger.warning("Redis cache store unavailable at startup", error=exc.reason)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis cache store closed")

    async def ping(self) -> bool:
        try:
            return bool(await self._call("ping", self._client().ping()))
        except StoreUnavailable:
            return False

    async def get(self, key: str) -> Optional[CacheEntry]:
        raw = await self._call("get", self._client().get(key))
        if raw is None:
            return None
        try:
            # UnicodeDecodeError is a ValueError.
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            return CacheEntry.from_json(key, raw)
        except (TypeError, ValueError):
            self.logger.warning("Discarding undecodable cache entry", key=key)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, inserted_at=time.time(), ttl=ttl)
        await self._call("set", self._client().set(key, entry.to_json(), ex=ttl or None))
        self.logger.debug("Cached value", key=key, ttl=ttl)
        return entry

    async def delete(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        return int(await self._call("delete", self._client().delete(*keys)))


class MemoryCacheStore(CacheStore):
    """Process-local store for development and tests.

    Expired entries are dropped only when their own key is touched again, so
    memory grows with the number of distinct keys ever written. Not meant for
    production traffic; use ``RedisCacheStore`` there.
    """

    def __init__(self):
        self._data: Dict[str, Tuple[CacheEntry, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> Optional[CacheEntry]:
        item = self._data.get(key)
        if item is None:
            return None
        entry, expires_at = item
        if expires_at is not None and expires_at <= time.monotonic():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            return self._live(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, inserted_at=time.time(), ttl=ttl)
        expires_at = time.monotonic() + ttl if ttl else None
        async with self._lock:
            self._data[key] = (entry, expires_at)
        return entry

    async def delete(self, keys: Iterable[str]) -> int:
        deleted = 0
        async with self._lock:
            for key in keys:
                if self._live(key) is not None:
                    deleted += 1
                self._data.pop(key, None)
        return deleted
