"""
LearningWriter — the single writer applying pipeline learning events.

Events from many concurrent resolutions funnel through one lock (inline
mode) or one single-concurrency Celery queue, so alias learning never
amplifies into concurrent writes for the same key. Within a batch, alias
events for the same key collapse to the last one.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from panelops.models.resolution import AliasLearned, UsageRecorded
from panelops.services.dialect_resolver import DialectResolver
from panelops.services.operations_library import OperationsLibrary

logger = logging.getLogger("panelops-learning")


class LearningWriter:

    def __init__(self, dialects: DialectResolver, library: OperationsLibrary):
        self._dialects = dialects
        self._library = library
        self._lock = asyncio.Lock()

    async def apply(self, events: Iterable) -> int:
        """Apply events in order; returns how many changed stored state."""
        aliases: dict[tuple, AliasLearned] = {}
        usages: list[UsageRecorded] = []
        for event in events:
            if isinstance(event, AliasLearned):
                aliases[(event.organization_id, event.category, event.external)] = event
            elif isinstance(event, UsageRecorded):
                usages.append(event)

        applied = 0
        async with self._lock:
            for event in aliases.values():
                await self._dialects.add_alias(event.organization_id, event.category, event.external, event.canonical)
                applied += 1
            for event in usages:
                if await self._library.increment_usage(event.entry_id):
                    applied += 1
        if applied:
            logger.info(f"Applied {applied} learning events")
        return applied
