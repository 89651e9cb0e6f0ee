import pytest
from datetime import date
from fnmatch import fnmatchcase
from uuid import uuid4
from typing import List
from unittest.mock import AsyncMock
from pydantic import TypeAdapter

from carecoord.cache import keys
from carecoord.cache.backend import InMemoryTTLCache
from carecoord.cache.service import CacheService

INTS = TypeAdapter(List[int])


class ManualClock:
    def __init__(self):
        self.value = 1000.0

    def __call__(self):
        return self.value


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = ManualClock()
    backend = InMemoryTTLCache(clock=clock)
    await backend.set("k", "v", 60)

    clock.value += 59
    assert await backend.get("k") == "v"
    clock.value += 1
    assert await backend.get("k") is None
    assert len(backend) == 0


@pytest.mark.asyncio
async def test_pattern_delete_only_touches_matches():
    backend = InMemoryTTLCache()
    await backend.set("recipient:shifts:r1:2024-03-15", "a", 60)
    await backend.set("recipient:shifts:r1:2024-03-16", "b", 60)
    await backend.set("recipient:shifts:r2:2024-03-15", "c", 60)

    deleted = await backend.delete_pattern("recipient:shifts:r1:*")

    assert deleted == 2
    assert await backend.get("recipient:shifts:r2:2024-03-15") == "c"


@pytest.mark.asyncio
async def test_get_or_set_reads_through_once():
    cache = CacheService(InMemoryTTLCache())
    factory = AsyncMock(return_value=[1, 2, 3])

    first = await cache.get_or_set("numbers", factory, 60, INTS)
    second = await cache.get_or_set("numbers", factory, 60, INTS)

    assert first == second == [1, 2, 3]
    factory.assert_awaited_once()


@pytest.mark.asyncio
async def test_none_is_not_cached():
    cache = CacheService(InMemoryTTLCache())
    factory = AsyncMock(return_value=None)

    await cache.get_or_set("missing", factory, 60, INTS)
    await cache.get_or_set("missing", factory, 60, INTS)

    assert factory.await_count == 2


@pytest.mark.asyncio
async def test_invalidate_keys_and_patterns():
    cache = CacheService(InMemoryTTLCache())
    await cache.set("shift:1", [1], 60, INTS)
    await cache.set("recipient:schedule:r1:2024-03-15", [2], 60, INTS)
    await cache.set("recipient:schedule:r1:2024-03-16", [3], 60, INTS)

    await cache.invalidate(["shift:1"], patterns=["recipient:schedule:r1:*"])

    assert len(cache.backend) == 0


@pytest.mark.asyncio
async def test_backend_failure_degrades_to_source():
    backend = AsyncMock()
    backend.get.side_effect = ConnectionError("redis down")
    backend.set.side_effect = ConnectionError("redis down")
    backend.delete.side_effect = ConnectionError("redis down")
    cache = CacheService(backend)

    value = await cache.get_or_set("numbers", AsyncMock(return_value=[7]), 60, INTS)
    await cache.invalidate(["numbers"])

    assert value == [7]


@pytest.mark.asyncio
async def test_disabled_cache_always_reads_source():
    cache = CacheService(InMemoryTTLCache(), enabled=False)
    factory = AsyncMock(return_value=[1])

    await cache.get_or_set("numbers", factory, 60, INTS)
    await cache.get_or_set("numbers", factory, 60, INTS)

    assert factory.await_count == 2


def test_day_keys_fall_under_recipient_pattern():
    rid = uuid4()
    assert fnmatchcase(keys.shifts_day(rid, date(2024, 3, 15)), keys.shifts_day_pattern(rid))
    assert fnmatchcase(keys.shifts_upcoming(rid, 7), keys.shifts_upcoming_pattern(rid))
    assert fnmatchcase(keys.medication_schedule(rid, date(2024, 3, 15)), keys.medication_schedule_pattern(rid))
