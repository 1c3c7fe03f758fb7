"""Versioned key-value persistence with optimistic concurrency.

Profiles, conversation contexts and application records are each owned
by a single id.  Writers read a record together with its version and
write back with ``expected_version``; if somebody else wrote in between
the write fails with :class:`~src.errors.ConcurrentModification` and the
caller re-reads and retries.  There is no global lock: contention is
scoped to one key.

Two backends implement :class:`VersionedBackend`:

* :class:`RedisVersionedBackend` -- ``redis.asyncio`` hash per key,
  ``WATCH``/``MULTI`` for the compare-and-set.
* :class:`InMemoryVersionedBackend` -- process-local dict with one
  :class:`asyncio.Lock` per key, for development and tests.

:class:`VersionedStore` is the facade the services use; it serialises
pydantic models with *orjson* and stamps the stored version onto the
model's ``version`` field.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections import defaultdict
from typing import Protocol, TypeVar, runtime_checkable

import orjson
import structlog
from pydantic import BaseModel

from src.errors import ConcurrentModification, RecordNotFound

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Backend protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class VersionedBackend(Protocol):
    """Async compare-and-set storage interface."""

    async def get(self, key: str) -> tuple[bytes, int] | None: ...

    async def put(self, key: str, value: bytes, ttl_seconds: int | None = None) -> int: ...

    async def update(
        self, key: str, value: bytes, expected_version: int, ttl_seconds: int | None = None
    ) -> int: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisVersionedBackend:
    """Redis-backed store; each key is a hash of ``data`` and ``version``."""

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str = "redis://localhost:6379/0", *, max_connections: int = 20) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def get(self, key: str) -> tuple[bytes, int] | None:
        raw = await self._redis.hmget(key, "data", "version")
        if raw[0] is None or raw[1] is None:
            return None
        return raw[0], int(raw[1])

    async def put(self, key: str, value: bytes, ttl_seconds: int | None = None) -> int:
        return await self._compare_and_set(key, value, None, ttl_seconds)

    async def update(
        self, key: str, value: bytes, expected_version: int, ttl_seconds: int | None = None
    ) -> int:
        return await self._compare_and_set(key, value, expected_version, ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def _compare_and_set(
        self, key: str, value: bytes, expected: int | None, ttl_seconds: int | None
    ) -> int:
        from redis.exceptions import WatchError

        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                current = await pipe.hget(key, "version")
                actual = int(current) if current is not None else None
                if expected is not None and actual is None:
                    raise RecordNotFound(f"no record under {key}")
                if actual != expected:
                    raise ConcurrentModification(key, expected, actual)

                new_version = (expected or 0) + 1
                pipe.multi()
                pipe.hset(key, mapping={"data": value, "version": new_version})
                if ttl_seconds is not None:
                    pipe.expire(key, ttl_seconds)
                await pipe.execute()
            except WatchError as exc:
                raise ConcurrentModification(key, expected, None) from exc
        return new_version

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.aclose()

    async def ping(self) -> bool:
        """Return *True* if the Redis server is reachable."""
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class _Entry:
    __slots__ = ("expires_at", "value", "version")

    def __init__(self, value: bytes, version: int, ttl_seconds: int | None) -> None:
        self.value = value
        self.version = version
        self.expires_at: float | None = (time.monotonic() + ttl_seconds) if ttl_seconds is not None else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() > self.expires_at


class InMemoryVersionedBackend:
    """Dict-backed store with per-key :class:`asyncio.Lock` serialisation.

    Expired entries are lazily evicted on access.
    """

    __slots__ = ("_data", "_locks")

    def __init__(self) -> None:
        self._data: dict[str, _Entry] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _live(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is not None and entry.expired:
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> tuple[bytes, int] | None:
        async with self._locks[key]:
            entry = self._live(key)
            return (entry.value, entry.version) if entry is not None else None

    async def put(self, key: str, value: bytes, ttl_seconds: int | None = None) -> int:
        async with self._locks[key]:
            entry = self._live(key)
            if entry is not None:
                raise ConcurrentModification(key, None, entry.version)
            self._data[key] = _Entry(value, 1, ttl_seconds)
            return 1

    async def update(
        self, key: str, value: bytes, expected_version: int, ttl_seconds: int | None = None
    ) -> int:
        async with self._locks[key]:
            entry = self._live(key)
            if entry is None:
                raise RecordNotFound(f"no record under {key}")
            if entry.version != expected_version:
                raise ConcurrentModification(key, expected_version, entry.version)
            new_version = expected_version + 1
            self._data[key] = _Entry(value, new_version, ttl_seconds)
            return new_version

    async def delete(self, key: str) -> None:
        async with self._locks[key]:
            self._data.pop(key, None)

    @property
    def size(self) -> int:
        """Number of (possibly expired) entries."""
        return len(self._data)


# ---------------------------------------------------------------------------
# VersionedStore  --  public API
# ---------------------------------------------------------------------------


class VersionedStore:
    """Model-aware facade over a :class:`VersionedBackend`.

    Parameters
    ----------
    backend:
        Storage backend.  Defaults to a fresh in-memory backend.
    namespace:
        Prefix prepended to every key (e.g. ``"application:"``).
    """

    __slots__ = ("_backend", "_namespace")

    def __init__(self, backend: VersionedBackend | None = None, *, namespace: str = "") -> None:
        self._backend: VersionedBackend = backend or InMemoryVersionedBackend()
        self._namespace = namespace

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}{key}" if self._namespace else key

    @staticmethod
    def _encode(model: BaseModel) -> bytes:
        return orjson.dumps(model.model_dump(mode="json", exclude={"version"}))

    async def get(self, key: str, model_cls: type[ModelT]) -> ModelT | None:
        """Load the model stored under *key*, or ``None``."""
        found = await self._backend.get(self._make_key(key))
        if found is None:
            return None
        raw, version = found
        data = orjson.loads(raw)
        data["version"] = version
        return model_cls.model_validate(data)

    async def require(self, key: str, model_cls: type[ModelT]) -> ModelT:
        model = await self.get(key, model_cls)
        if model is None:
            raise RecordNotFound(f"{model_cls.__name__} {key} not found")
        return model

    async def create(self, key: str, model: ModelT, ttl_seconds: int | None = None) -> ModelT:
        """Store a new model; fails with ``ConcurrentModification`` if *key* exists."""
        version = await self._backend.put(self._make_key(key), self._encode(model), ttl_seconds)
        logger.debug("store.created", key=self._make_key(key), version=version)
        return model.model_copy(update={"version": version})

    async def save(self, key: str, model: ModelT, ttl_seconds: int | None = None) -> ModelT:
        """Write *model* back, expecting the stored version to equal ``model.version``."""
        expected = getattr(model, "version", 0)
        version = await self._backend.update(
            self._make_key(key), self._encode(model), expected, ttl_seconds
        )
        logger.debug("store.updated", key=self._make_key(key), version=version)
        return model.model_copy(update={"version": version})

    async def delete(self, key: str) -> None:
        await self._backend.delete(self._make_key(key))

    def scoped(self, namespace: str) -> VersionedStore:
        """Return a store sharing this backend under an extra key prefix."""
        return VersionedStore(self._backend, namespace=f"{self._namespace}{namespace}")

    async def close(self) -> None:
        close = getattr(self._backend, "close", None)
        if close is not None:
            with contextlib.suppress(Exception):
                await close()

    # -- Convenience constructors ----------------------------------------------

    @staticmethod
    async def connect(redis_url: str | None, *, namespace: str = "") -> VersionedStore:
        """Pick Redis when *redis_url* is set and reachable, else in-memory.

        Example::

            store = await VersionedStore.connect(settings.redis_url, namespace="yojana:")
        """
        if redis_url:
            backend = RedisVersionedBackend(url=redis_url)
            if await backend.ping():
                logger.info("store.redis_connected")
                return VersionedStore(backend, namespace=namespace)
            logger.warning("store.redis_unavailable_using_inmemory", redis_url=redis_url)
            await backend.close()
        return VersionedStore(InMemoryVersionedBackend(), namespace=namespace)
