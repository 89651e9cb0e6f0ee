"""Read-through cache over a pluggable backend"""
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar
from pydantic import TypeAdapter

from carecoord import config
from carecoord.cache.backend import CacheBackend, InMemoryTTLCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """
    Cache-aside helper.

    Values are stored as JSON produced by a pydantic TypeAdapter, so any
    backend holding strings (in-memory, Redis) works. Backend errors are
    logged and degrade to authoritative reads.
    """

    def __init__(self, backend: CacheBackend, enabled: bool = True):
        self.backend = backend
        self.enabled = enabled

    async def get(self, key: str, adapter: TypeAdapter) -> Optional[T]:
        if not self.enabled:
            return None
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        if raw is None:
            return None
        return adapter.validate_json(raw)

    async def set(self, key: str, value: T, ttl_seconds: int, adapter: TypeAdapter) -> None:
        if not self.enabled:
            return
        try:
            await self.backend.set(key, adapter.dump_json(value).decode(), ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_seconds: int,
        adapter: TypeAdapter,
    ) -> T:
        cached = await self.get(key, adapter)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cached

        logger.debug(f"Cache miss: {key}")
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl_seconds, adapter)
        return value

    async def invalidate(self, keys: Iterable[str] = (), patterns: Iterable[str] = ()) -> None:
        """Delete exact keys, then sweep glob patterns"""
        if not self.enabled:
            return
        keys = list(keys)
        patterns = list(patterns)
        try:
            if keys:
                await self.backend.delete(keys)
            for pattern in patterns:
                await self.backend.delete_pattern(pattern)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {keys} {patterns}: {e}")
            return
        logger.debug(f"Cache invalidated: {', '.join(keys)} {' '.join(patterns)}")


cache_service = CacheService(InMemoryTTLCache(), enabled=config.CACHE_ENABLED)


def get_cache() -> CacheService:
    """Dependency returning the process-wide cache"""
    return cache_service
