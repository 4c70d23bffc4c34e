"""Redis implementation of the draft repository."""

from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as redis

from .repository import KeyValueDraftStore


class RedisDraftStore(KeyValueDraftStore):
    """Persist drafts as Redis strings keyed by ``wf:draft:{flow_id}``."""

    def __init__(self, url: str = "redis://localhost:6379/0", ttl: Optional[int] = None) -> None:
        self.url = url
        self.ttl = ttl
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def _load(self, key: str) -> str | None:
        client = await self._client()
        return await client.get(key)

    async def _save(self, key: str, value: str) -> None:
        client = await self._client()
        await client.set(key, value, ex=self.ttl)

    async def _delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(key)
