"""
test_library_cache.py — TTL behaviour of LibrarySnapshotCache and its use by
OperationsLibrary (invalidation on writes).

A FakeClock (see conftest.py) drives expiry; no real time passes.
"""

import asyncio

from panelops.models.operations import OperationCategory
from panelops.services.library_cache import LibrarySnapshot, LibrarySnapshotCache
from panelops.services.operations_library import OperationsLibrary


def _loader(calls, organization_id="org-a"):
    async def load():
        calls.append(organization_id)
        return LibrarySnapshot(organization_id=organization_id)
    return load


class TestSnapshotCache:

    def test_second_read_is_served_from_cache(self, clock):
        cache = LibrarySnapshotCache(ttl_seconds=300, clock=clock)
        calls = []
        first = asyncio.run(cache.get_or_load("org-a", _loader(calls)))
        clock.advance(299)
        second = asyncio.run(cache.get_or_load("org-a", _loader(calls)))
        assert first is second
        assert calls == ["org-a"]

    def test_expired_snapshot_is_reloaded(self, clock):
        cache = LibrarySnapshotCache(ttl_seconds=300, clock=clock)
        calls = []
        asyncio.run(cache.get_or_load("org-a", _loader(calls)))
        clock.advance(300)
        assert cache.get("org-a") is None
        asyncio.run(cache.get_or_load("org-a", _loader(calls)))
        assert len(calls) == 2

    def test_expired_snapshot_is_dropped(self, clock):
        cache = LibrarySnapshotCache(ttl_seconds=300, clock=clock)
        cache.put("org-a", LibrarySnapshot("org-a"), clock())
        clock.advance(300)
        assert cache.get("org-a") is None
        # Turning the clock back cannot revive a dropped snapshot
        clock.now -= 300
        assert cache.get("org-a") is None

    def test_organizations_are_cached_separately(self, clock):
        cache = LibrarySnapshotCache(clock=clock)
        calls = []
        asyncio.run(cache.get_or_load("org-a", _loader(calls, "org-a")))
        asyncio.run(cache.get_or_load("org-b", _loader(calls, "org-b")))
        asyncio.run(cache.get_or_load(None, _loader(calls, None)))
        assert calls == ["org-a", "org-b", None]
        assert cache.get(None).organization_id is None

    def test_invalidate_one_organization(self, clock):
        cache = LibrarySnapshotCache(clock=clock)
        cache.put("org-a", LibrarySnapshot("org-a"), clock())
        cache.put("org-b", LibrarySnapshot("org-b"), clock())
        cache.invalidate("org-a")
        assert cache.get("org-a") is None
        assert cache.get("org-b") is not None

    def test_invalidate_all(self, clock):
        cache = LibrarySnapshotCache(clock=clock)
        cache.put("org-a", LibrarySnapshot("org-a"), clock())
        cache.put(None, LibrarySnapshot(None), clock())
        cache.invalidate()
        assert cache.get("org-a") is None
        assert cache.get(None) is None


class TestLibraryInvalidation:

    def test_create_invalidates_the_organization_snapshot(self, store, clock, groove_entry):
        library = OperationsLibrary(store, LibrarySnapshotCache(ttl_seconds=300, clock=clock))
        asyncio.run(library.seed_system_defaults())

        async def scenario():
            before = await library.list_entries(OperationCategory.GROOVE, "org-a")
            await library.create("org-a", groove_entry("MY-5-10", 5, 10))
            after = await library.list_entries(OperationCategory.GROOVE, "org-a")
            return before, after

        before, after = asyncio.run(scenario())
        assert len(after) == len(before) + 1
        assert after[0].code == "MY-5-10"

    def test_direct_store_write_visible_only_after_ttl(self, store, clock, groove_entry):
        """Writes that bypass the library are picked up once the snapshot expires."""
        library = OperationsLibrary(store, LibrarySnapshotCache(ttl_seconds=300, clock=clock))
        entry = groove_entry("RAW-4-9", 4, 9).model_copy(update={"organization_id": "org-a"})

        async def scenario():
            first = await library.list_entries(OperationCategory.GROOVE, "org-a")
            await store.insert_entry(entry)
            stale = await library.list_entries(OperationCategory.GROOVE, "org-a")
            clock.advance(301)
            fresh = await library.list_entries(OperationCategory.GROOVE, "org-a")
            return first, stale, fresh

        first, stale, fresh = asyncio.run(scenario())
        assert first == [] and stale == []
        assert [e.code for e in fresh] == ["RAW-4-9"]
