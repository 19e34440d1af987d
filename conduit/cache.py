"""
Redis cache-aside for responses that are identical for every caller.

Only the tag list qualifies.  Article, profile and comment views depend on
who is asking (``favorited``, ``following``) and always come from the
database.

Redis is optional: when it is unreachable at startup, or an operation
fails later, reads behave as misses and writes are dropped, so requests
still succeed from the database alone.
"""
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis

from conduit.config import settings

logger = logging.getLogger(__name__)

TAGS_KEY = "tags:all"


class CacheManager:
    def __init__(self, url: str | None = None) -> None:
        self.url = url or settings.REDIS_URL
        self._redis: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        client = redis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except (redis.RedisError, OSError) as exc:
            logger.warning("Redis unreachable at %s, caching disabled: %s", self.url, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", self.url)

    async def disconnect(self) -> None:
        client, self._redis = self._redis, None
        if client is not None:
            await client.aclose()

    async def get(self, key: str) -> Any | None:
        """Decoded value under *key*, or None on a miss or when Redis fails."""
        if not self.enabled:
            return None
        try:
            raw = await self._redis.get(key)
        except redis.RedisError as exc:
            logger.debug("cache get failed for %r: %s", key, exc)
            return None
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        if not self.enabled:
            return
        try:
            await self._redis.set(key, json.dumps(value), ex=ttl)
        except redis.RedisError as exc:
            logger.debug("cache set failed for %r: %s", key, exc)

    async def delete(self, key: str) -> None:
        if not self.enabled:
            return
        try:
            await self._redis.delete(key)
        except redis.RedisError as exc:
            logger.debug("cache delete failed for %r: %s", key, exc)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]], ttl: int | None = None) -> Any:
        """Return the cached value for *key*, calling *loader* and storing its result on a miss."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        await self.set(key, value, ttl=ttl)
        return value

    async def invalidate_tags(self) -> None:
        """Called after an article (and therefore possibly a tag) appears or disappears."""
        await self.delete(TAGS_KEY)


cache = CacheManager()
