"""Key/value persistence for queued and pending score submissions.

Values are JSON-compatible structures. ``MemoryStore`` keeps them in-process;
``RedisStore`` serializes them to a Redis instance so queued results survive
a restart of the scoring service.
"""

from __future__ import annotations

import copy
import json
import logging
from asyncio import Lock
from typing import Any, Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """A simple in-memory store with async-safe access."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._store: dict[str, Any] = {}

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            if key not in self._store:
                return None
            return copy.deepcopy(self._store[key])

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._store[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()


class RedisStore:
    def __init__(self, client: "redis.Redis", *, prefix: str = "scorer:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisStore":
        return cls(redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(self._key(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable value stored under %s", key)
            return None

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(self._key(key), json.dumps(value))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._key(key))


def create_store(redis_url: str | None) -> KeyValueStore:
    if not redis_url:
        logger.info("REDIS_URL not provided; submissions are kept in memory.")
        return MemoryStore()
    logger.info("Persisting submissions to Redis")
    return RedisStore.from_url(redis_url)
