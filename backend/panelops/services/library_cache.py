"""
Per-organization library snapshot cache.

A snapshot is the merged, precedence-ordered view of active organization and
system entries that the matcher searches. The cache is a read optimization
only: concurrent refreshes for one organization may both run and the last
writer wins.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from panelops.config import CACHE_TTL_SECONDS
from panelops.models.library import LibraryEntry
from panelops.models.operations import OperationCategory

logger = logging.getLogger("panelops-cache")

_SYSTEM_KEY = "__system__"


@dataclass(frozen=True)
class LibrarySnapshot:
    organization_id: Optional[str]
    # Per category: organization entries first, then unshadowed system entries
    entries: dict[OperationCategory, tuple[LibraryEntry, ...]] = field(default_factory=dict)

    def entries_for(self, category: OperationCategory) -> tuple[LibraryEntry, ...]:
        return self.entries.get(OperationCategory(category), ())

    def find_by_code(self, category: OperationCategory, code: str) -> Optional[LibraryEntry]:
        wanted = code.strip().upper()
        for entry in self.entries_for(category):
            if entry.code.upper() == wanted:
                return entry
        return None

    def get(self, entry_id: int) -> Optional[LibraryEntry]:
        for entries in self.entries.values():
            for entry in entries:
                if entry.id == entry_id:
                    return entry
        return None


class LibrarySnapshotCache:
    """
    TTL cache of LibrarySnapshot keyed by organization id.

    Usage:
        cache = LibrarySnapshotCache(ttl_seconds=300, clock=fake_clock)
        snapshot = await cache.get_or_load(org_id, loader)
    """

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key → (loaded_at, snapshot)
        self._snapshots: dict[str, tuple[float, LibrarySnapshot]] = {}

    @staticmethod
    def _key(organization_id: Optional[str]) -> str:
        return organization_id or _SYSTEM_KEY

    def get(self, organization_id: Optional[str]) -> Optional[LibrarySnapshot]:
        key = self._key(organization_id)
        cached = self._snapshots.get(key)
        if cached is None:
            return None
        loaded_at, snapshot = cached
        if self._clock() - loaded_at >= self.ttl_seconds:
            self._snapshots.pop(key, None)
            return None
        return snapshot

    def put(self, organization_id: Optional[str], snapshot: LibrarySnapshot, loaded_at: float) -> None:
        self._snapshots[self._key(organization_id)] = (loaded_at, snapshot)

    async def get_or_load(
        self,
        organization_id: Optional[str],
        loader: Callable[[], Awaitable[LibrarySnapshot]],
    ) -> LibrarySnapshot:
        snapshot = self.get(organization_id)
        if snapshot is not None:
            return snapshot
        loaded_at = self._clock()
        snapshot = await loader()
        self.put(organization_id, snapshot, loaded_at)
        logger.debug(f"Library snapshot loaded for {self._key(organization_id)}")
        return snapshot

    def invalidate(self, organization_id: Optional[str] = None) -> None:
        """Drop one organization's snapshot, or every snapshot when called without one."""
        if organization_id is None:
            self._snapshots.clear()
        else:
            self._snapshots.pop(self._key(organization_id), None)
