"""
In-process OperationsStore.

Used by the test suite and by dev mode when no DATABASE_URL is configured.
A ``threading.Lock`` guards every read-modify-write so counters stay exact
even when several event loops or threads share one store.
"""
from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from typing import Optional

from panelops.db.store import OperationsStore
from panelops.models.library import DialectConfig, LibraryEntry, OperationTypeDef
from panelops.models.operations import OperationCategory


class InMemoryOperationsStore(OperationsStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._entries: dict[int, LibraryEntry] = {}
        self._types: dict[int, OperationTypeDef] = {}
        self._dialects: dict[str, DialectConfig] = {}

    # ── Library entries ────────────────────────────────────────────────────────

    async def list_entries(self, organization_id, category=None, include_inactive=False):
        with self._lock:
            rows = [
                entry for entry in self._entries.values()
                if entry.organization_id == organization_id
                and (category is None or entry.category == category)
                and (include_inactive or entry.is_active)
            ]
            return [entry.model_copy(deep=True) for entry in sorted(rows, key=lambda e: e.id)]

    async def get_entry(self, entry_id):
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    async def insert_entry(self, entry):
        with self._lock:
            stored = entry.model_copy(
                update={"id": next(self._ids), "created_at": datetime.now(timezone.utc)},
                deep=True,
            )
            self._entries[stored.id] = stored
            return stored.model_copy(deep=True)

    async def replace_entry(self, entry):
        with self._lock:
            current = self._entries.get(entry.id)
            # usage_count is only ever changed by increment_usage
            usage = current.usage_count if current is not None else entry.usage_count
            stored = entry.model_copy(update={"usage_count": usage}, deep=True)
            self._entries[entry.id] = stored
            return stored.model_copy(deep=True)

    async def delete_entry(self, entry_id):
        with self._lock:
            return self._entries.pop(entry_id, None) is not None

    async def increment_usage(self, entry_id):
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.organization_id is None:
                return False
            self._entries[entry_id] = entry.model_copy(update={"usage_count": entry.usage_count + 1})
            return True

    # ── Operation types ────────────────────────────────────────────────────────

    async def list_types(self, organization_id, category=None):
        with self._lock:
            rows = [
                t for t in self._types.values()
                if t.organization_id == organization_id and (category is None or t.category == category)
            ]
            return [t.model_copy() for t in sorted(rows, key=lambda t: t.id)]

    async def get_type(self, type_id):
        with self._lock:
            type_def = self._types.get(type_id)
            return type_def.model_copy() if type_def else None

    async def insert_type(self, type_def):
        with self._lock:
            stored = type_def.model_copy(
                update={"id": next(self._ids), "created_at": datetime.now(timezone.utc)},
            )
            self._types[stored.id] = stored
            return stored.model_copy()

    async def replace_type(self, type_def):
        with self._lock:
            self._types[type_def.id] = type_def.model_copy()
            return type_def

    async def delete_type(self, type_id):
        with self._lock:
            return self._types.pop(type_id, None) is not None

    # ── Dialects ───────────────────────────────────────────────────────────────

    async def get_dialect(self, organization_id):
        with self._lock:
            config = self._dialects.get(organization_id)
            return config.model_copy(deep=True) if config else None

    async def save_dialect_flags(self, config):
        with self._lock:
            current = self._dialects.get(config.organization_id)
            aliases = current.aliases if current else DialectConfig().aliases
            self._dialects[config.organization_id] = DialectConfig(
                organization_id=config.organization_id,
                aliases=aliases,
                use_ai_fallback=config.use_ai_fallback,
                auto_learn=config.auto_learn,
            )

    async def upsert_alias(self, organization_id, category, external, canonical):
        with self._lock:
            config = self._dialects.get(organization_id)
            if config is None:
                config = DialectConfig(organization_id=organization_id)
                self._dialects[organization_id] = config
            config.aliases.setdefault(OperationCategory(category), {})[external] = canonical

    async def delete_alias(self, organization_id, category, external):
        with self._lock:
            config = self._dialects.get(organization_id)
            if config is None:
                return False
            return config.aliases.get(OperationCategory(category), {}).pop(external, None) is not None
