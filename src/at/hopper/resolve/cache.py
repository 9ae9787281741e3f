"""
Resolution caches.

Cached values are explicit tagged models: a remembered failure is a value that can be
inspected, not an exception. Two backends implement the same get/put/invalidate
interface:

- MemoryCache: process-local ordered map with per-entry deadlines and approximate LRU
  eviction, guarded by an asyncio lock.
- RedisCache: entries serialized with pydantic and stored in Redis, using key expiry for
  TTLs and a sorted-set index to enforce capacity.

TTLs are chosen per value by an expiry policy, so positive and negative outcomes can
live for different durations in the same cache.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import (
    Annotated,
    Any,
    Callable,
    Final,
    Generic,
    Literal,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from at.hopper.model.discovery import DiscoveryDocument

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_CAPACITY: Final = 1024 * 20

DISCOVERY_NOT_FOUND_TTL: Final = 60 * 10
RESOLUTION_FOUND_TTL: Final = 60 * 30
RESOLUTION_NOT_FOUND_TTL: Final = 60 * 10


class DiscoveryFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["found"] = "found"
    document: DiscoveryDocument


class DiscoveryNotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["not_found"] = "not_found"
    reason: str


DiscoveryCacheEntry = Annotated[
    Union[DiscoveryFound, DiscoveryNotFound], Field(discriminator="status")
]


class ResolutionFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["found"] = "found"
    destination: str


class ResolutionNotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["not_found"] = "not_found"
    reason: str


ResolutionCacheEntry = Annotated[
    Union[ResolutionFound, ResolutionNotFound], Field(discriminator="status")
]

ExpiryPolicy = Callable[[Any], Optional[float]]
"""Returns the lifetime in seconds of a value, or None if it never expires on time."""


class DiscoveryExpiry:
    """Found documents are kept until evicted, failures expire."""

    def __init__(self, not_found_ttl: float = DISCOVERY_NOT_FOUND_TTL) -> None:
        self.not_found_ttl = not_found_ttl

    def __call__(self, value: Any) -> Optional[float]:
        if isinstance(value, DiscoveryFound):
            return None
        return self.not_found_ttl


class ResolutionExpiry:
    def __init__(
        self,
        found_ttl: float = RESOLUTION_FOUND_TTL,
        not_found_ttl: float = RESOLUTION_NOT_FOUND_TTL,
    ) -> None:
        self.found_ttl = found_ttl
        self.not_found_ttl = not_found_ttl

    def __call__(self, value: Any) -> Optional[float]:
        if isinstance(value, ResolutionFound):
            return self.found_ttl
        return self.not_found_ttl


class CacheBackend(ABC, Generic[V]):
    """
    Concurrency safe key/value cache with per-value expiry.

    Callers never take an external lock. Writes replace existing values whole.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[V]:
        """Return the live value for a key, or None if absent or expired."""
        pass

    @abstractmethod
    async def put(self, key: str, value: V) -> None:
        """Store a value, replacing any previous value for the key."""
        pass

    @abstractmethod
    async def invalidate(self, key: str) -> None:
        pass

    @abstractmethod
    async def size(self) -> int:
        """Number of entries currently held, including ones not yet reaped."""
        pass


class MemoryCache(CacheBackend[V]):
    """
    In-process cache with per-entry deadlines and approximate LRU eviction.

    The clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        expire_after: ExpiryPolicy,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.expire_after = expire_after
        self.capacity = capacity
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[V, Optional[float]]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[V]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, deadline = entry
            if deadline is not None and self.clock() >= deadline:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    async def put(self, key: str, value: V) -> None:
        ttl = self.expire_after(value)
        deadline = None if ttl is None else self.clock() + ttl
        async with self._lock:
            self._entries[key] = (value, deadline)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    async def invalidate(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def size(self) -> int:
        async with self._lock:
            return len(self._entries)


def normalize_redis_string(value: Any) -> str:
    """
    Normalize Redis value to string, handling bytes conversion.
    """
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


class RedisCache(CacheBackend[V]):
    """
    Redis backed cache sharing entries between service instances.

    Values are stored under ``{namespace}:{key}`` with a key expiry matching their TTL.
    The sorted set ``{namespace}:index`` scores keys by last access time; when it grows
    past capacity the least recently used keys are dropped. Keys reaped by Redis expiry
    leave their index member behind until the next read or eviction pass.
    """

    def __init__(
        self,
        redis_client: Any,
        namespace: str,
        adapter: TypeAdapter,
        expire_after: ExpiryPolicy,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis_client = redis_client
        self.namespace = namespace
        self.adapter = adapter
        self.expire_after = expire_after
        self.capacity = capacity
        self.clock = clock
        self.index_key = f"{namespace}:index"

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[V]:
        data = await self.redis_client.get(self._key(key))
        if data is None:
            await self.redis_client.zrem(self.index_key, key)
            return None
        await self.redis_client.zadd(self.index_key, {key: self.clock()})
        return self.adapter.validate_json(data)

    async def put(self, key: str, value: V) -> None:
        ttl = self.expire_after(value)
        payload = self.adapter.dump_json(value)
        async with self.redis_client.pipeline(transaction=True) as pipe:
            if ttl is None:
                pipe.set(self._key(key), payload)
            else:
                pipe.set(self._key(key), payload, px=int(ttl * 1000))
            pipe.zadd(self.index_key, {key: self.clock()})
            await pipe.execute()
        await self._evict()

    async def _evict(self) -> None:
        overflow = await self.redis_client.zcard(self.index_key) - self.capacity
        if overflow <= 0:
            return
        evicted = await self.redis_client.zpopmin(self.index_key, overflow)
        if evicted:
            logger.debug("evicting %d entries from %s", len(evicted), self.namespace)
            await self.redis_client.delete(
                *[self._key(normalize_redis_string(member)) for member, _ in evicted]
            )

    async def invalidate(self, key: str) -> None:
        await self.redis_client.delete(self._key(key))
        await self.redis_client.zrem(self.index_key, key)

    async def size(self) -> int:
        return await self.redis_client.zcard(self.index_key)


discovery_entry_adapter: Final = TypeAdapter(DiscoveryCacheEntry)
resolution_entry_adapter: Final = TypeAdapter(ResolutionCacheEntry)


def new_discovery_cache(
    capacity: int = DEFAULT_CAPACITY,
    not_found_ttl: float = DISCOVERY_NOT_FOUND_TTL,
    clock: Callable[[], float] = time.monotonic,
) -> MemoryCache[Any]:
    return MemoryCache(DiscoveryExpiry(not_found_ttl), capacity=capacity, clock=clock)


def new_resolution_cache(
    capacity: int = DEFAULT_CAPACITY,
    found_ttl: float = RESOLUTION_FOUND_TTL,
    not_found_ttl: float = RESOLUTION_NOT_FOUND_TTL,
    clock: Callable[[], float] = time.monotonic,
) -> MemoryCache[Any]:
    return MemoryCache(
        ResolutionExpiry(found_ttl, not_found_ttl), capacity=capacity, clock=clock
    )
