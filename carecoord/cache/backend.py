"""Cache backends"""
import asyncio
import fnmatch
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Tuple


class CacheBackend(ABC):
    """Async key/value store with per-key TTL and glob-pattern deletes"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def delete(self, keys: Iterable[str]) -> int:
        ...

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        ...


class InMemoryTTLCache(CacheBackend):
    """
    Process-local backend. Entries expire lazily on read and on sweep.
    """

    def __init__(self, clock=time.monotonic):
        self._store: Dict[str, Tuple[float, str]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._store[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._store[key] = (self._clock() + ttl_seconds, value)

    async def delete(self, keys: Iterable[str]) -> int:
        deleted = 0
        async with self._lock:
            for key in keys:
                if self._store.pop(key, None) is not None:
                    deleted += 1
        return deleted

    async def delete_pattern(self, pattern: str) -> int:
        async with self._lock:
            matching = [key for key in self._store if fnmatch.fnmatchcase(key, pattern)]
            for key in matching:
                del self._store[key]
        return len(matching)

    def __len__(self) -> int:
        return len(self._store)
