"""
Operations Library — per-organization edgeband profiles, hole patterns,
groove profiles and routing profiles layered over read-only system defaults.
Edgeband profiles are organization-only; the edge-code parser covers the
shared vocabulary.

Read precedence (list / find_by_code):
  1. active organization-scoped entries
  2. active system entries whose code the organization has not overridden
Writes (create / update / delete) touch organization-scoped records only;
any attempt against a system record raises ImmutableDefaultError.

Operation Types follow the same scoping and shadowing rules.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from panelops.db.store import OperationsStore
from panelops.errors import DuplicateCodeError, EntryNotFound, ImmutableDefaultError, InvalidNotationShape
from panelops.models.library import LibraryEntry, OperationTypeDef
from panelops.models.operations import LIBRARY_CATEGORIES, OperationCategory
from panelops.services.defaults import system_library_entries, system_operation_types
from panelops.services.library_cache import LibrarySnapshot, LibrarySnapshotCache

logger = logging.getLogger("panelops-library")

# Entry fields that live on the LibraryEntry itself; everything else belongs to the operation
_ENTRY_FIELDS = frozenset({"kind", "description", "is_active"})
_TYPE_FIELDS = frozenset({"code", "name", "description", "display_order", "is_active"})


def _library_category(category) -> OperationCategory:
    category = OperationCategory(category)
    if category not in LIBRARY_CATEGORIES:
        raise InvalidNotationShape(f"'{category.value}' operations have no library")
    return category


def _require_org(organization_id: Optional[str], what: str) -> str:
    if not organization_id:
        raise ImmutableDefaultError(f"System {what} are read-only")
    return organization_id


def merge_scopes(own: Iterable, system: Iterable) -> list:
    """Active organization records first, then active system records not shadowed by code."""
    own_active = [item for item in own if item.is_active]
    shadowed = {item.code.upper() for item in own_active}
    return own_active + [
        item for item in system if item.is_active and item.code.upper() not in shadowed
    ]


class OperationsLibrary:

    def __init__(self, store: OperationsStore, cache: Optional[LibrarySnapshotCache] = None):
        self._store = store
        self._cache = cache or LibrarySnapshotCache()

    @property
    def cache(self) -> LibrarySnapshotCache:
        return self._cache

    # ── Reads ──────────────────────────────────────────────────────────────────

    async def snapshot(self, organization_id: Optional[str]) -> LibrarySnapshot:
        return await self._cache.get_or_load(organization_id, lambda: self._load_snapshot(organization_id))

    async def _load_snapshot(self, organization_id: Optional[str]) -> LibrarySnapshot:
        system = await self._store.list_entries(None)
        own = await self._store.list_entries(organization_id) if organization_id else []
        entries = {
            category: tuple(merge_scopes(
                [e for e in own if e.category == category],
                [e for e in system if e.category == category],
            ))
            for category in LIBRARY_CATEGORIES
        }
        return LibrarySnapshot(organization_id=organization_id, entries=entries)

    async def list_entries(
        self,
        category: OperationCategory,
        organization_id: Optional[str],
        kind: Optional[str] = None,
    ) -> list[LibraryEntry]:
        snapshot = await self.snapshot(organization_id)
        entries = snapshot.entries_for(_library_category(category))
        if kind:
            entries = tuple(e for e in entries if e.kind == kind)
        return list(entries)

    async def find_by_code(
        self,
        category: OperationCategory,
        organization_id: Optional[str],
        code: str,
    ) -> Optional[LibraryEntry]:
        snapshot = await self.snapshot(organization_id)
        return snapshot.find_by_code(_library_category(category), code)

    async def get_entry(self, organization_id: Optional[str], entry_id: int) -> LibraryEntry:
        """Entry visible to the organization (its own or a system entry), active or not."""
        entry = await self._store.get_entry(entry_id)
        if entry is None or (entry.organization_id is not None and entry.organization_id != organization_id):
            raise EntryNotFound(f"Library entry {entry_id} not found")
        return entry

    # ── Writes ─────────────────────────────────────────────────────────────────

    async def create(self, organization_id: Optional[str], entry: LibraryEntry) -> LibraryEntry:
        organization_id = _require_org(organization_id, "library entries")
        category = _library_category(entry.category)
        code = entry.code.strip().upper()
        if not code:
            raise InvalidNotationShape("Library entry code must not be empty")
        await self._ensure_unique_code(organization_id, category, code)

        new_entry = entry.model_copy(update={
            "id": None,
            "organization_id": organization_id,
            "usage_count": 0,
            "operation": entry.operation.model_copy(update={"code": code}),
        })
        created = await self._store.insert_entry(new_entry)
        self._cache.invalidate(organization_id)
        logger.info(
            f"Created {category.value} entry {code}",
            extra={"organization_id": organization_id, "category": category.value},
        )
        return created

    async def update(self, organization_id: Optional[str], entry_id: int, changes: dict[str, Any]) -> LibraryEntry:
        current = await self._owned_entry(organization_id, entry_id)
        data = current.model_dump()
        for key, value in changes.items():
            if key in _ENTRY_FIELDS:
                data[key] = value
            elif key not in ("id", "organization_id", "usage_count", "category", "created_at", "operation"):
                data["operation"][key] = value
        if isinstance(data["operation"].get("code"), str):
            data["operation"]["code"] = data["operation"]["code"].strip().upper()
        try:
            updated = LibraryEntry.model_validate(data)
        except ValidationError as exc:
            raise InvalidNotationShape(str(exc)) from exc

        if updated.code != current.code:
            await self._ensure_unique_code(current.organization_id, current.category, updated.code)
        stored = await self._store.replace_entry(updated)
        self._cache.invalidate(current.organization_id)
        return stored

    async def delete(self, organization_id: Optional[str], entry_id: int) -> None:
        entry = await self._owned_entry(organization_id, entry_id)
        await self._store.delete_entry(entry.id)
        self._cache.invalidate(entry.organization_id)

    async def increment_usage(self, entry_id: int) -> bool:
        """
        Atomically count one use of an organization entry.

        System entries are shared defaults and are never mutated: the call is
        a no-op returning False. The cached snapshot is left as is; usage
        counts are not part of matching.
        """
        return await self._store.increment_usage(entry_id)

    async def _owned_entry(self, organization_id: Optional[str], entry_id: int) -> LibraryEntry:
        entry = await self.get_entry(organization_id, entry_id)
        if entry.is_system:
            raise ImmutableDefaultError(f"System entry {entry.code} cannot be modified")
        return entry

    async def _ensure_unique_code(self, organization_id: str, category: OperationCategory, code: str) -> None:
        existing = await self._store.list_entries(organization_id, category, include_inactive=True)
        if any(e.code.upper() == code for e in existing):
            raise DuplicateCodeError(f"{category.value} entry {code} already exists")

    # ── Operation types ────────────────────────────────────────────────────────

    async def list_types(self, category: OperationCategory, organization_id: Optional[str]) -> list[OperationTypeDef]:
        category = OperationCategory(category)
        own = await self._store.list_types(organization_id, category) if organization_id else []
        system = await self._store.list_types(None, category)
        merged = merge_scopes(own, system)
        return sorted(merged, key=lambda t: (t.display_order, t.code))

    async def find_type(
        self,
        category: OperationCategory,
        organization_id: Optional[str],
        code: str,
    ) -> Optional[OperationTypeDef]:
        wanted = code.strip().lower()
        for type_def in await self.list_types(category, organization_id):
            if type_def.code.lower() == wanted:
                return type_def
        return None

    async def create_type(self, organization_id: Optional[str], type_def: OperationTypeDef) -> OperationTypeDef:
        organization_id = _require_org(organization_id, "operation types")
        code = type_def.code.strip().lower()
        existing = await self._store.list_types(organization_id, type_def.category)
        if any(t.code.lower() == code for t in existing):
            raise DuplicateCodeError(f"{OperationCategory(type_def.category).value} type {code} already exists")
        return await self._store.insert_type(
            type_def.model_copy(update={"id": None, "organization_id": organization_id, "code": code})
        )

    async def update_type(self, organization_id: Optional[str], type_id: int, changes: dict[str, Any]) -> OperationTypeDef:
        current = await self._owned_type(organization_id, type_id)
        data = current.model_dump()
        data.update({k: v for k, v in changes.items() if k in _TYPE_FIELDS})
        try:
            updated = OperationTypeDef.model_validate(data)
        except ValidationError as exc:
            raise InvalidNotationShape(str(exc)) from exc
        updated.code = updated.code.strip().lower()
        if updated.code != current.code:
            existing = await self._store.list_types(current.organization_id, current.category)
            if any(t.code.lower() == updated.code for t in existing):
                raise DuplicateCodeError(f"{current.category.value} type {updated.code} already exists")
        return await self._store.replace_type(updated)

    async def delete_type(self, organization_id: Optional[str], type_id: int) -> None:
        type_def = await self._owned_type(organization_id, type_id)
        await self._store.delete_type(type_def.id)

    async def _owned_type(self, organization_id: Optional[str], type_id: int) -> OperationTypeDef:
        type_def = await self._store.get_type(type_id)
        if type_def is None or (type_def.organization_id is not None and type_def.organization_id != organization_id):
            raise EntryNotFound(f"Operation type {type_id} not found")
        if type_def.is_system:
            raise ImmutableDefaultError(f"System type {type_def.code} cannot be modified")
        return type_def

    # ── System defaults ────────────────────────────────────────────────────────

    async def seed_system_defaults(self) -> int:
        """Insert missing system types and entries. Safe to run on every startup."""
        inserted = 0
        existing_types = {(t.category, t.code) for t in await self._store.list_types(None)}
        for type_def in system_operation_types():
            if (type_def.category, type_def.code) not in existing_types:
                await self._store.insert_type(type_def)
                inserted += 1

        existing_entries = {
            (e.category, e.code) for e in await self._store.list_entries(None, include_inactive=True)
        }
        for entry in system_library_entries():
            if (entry.category, entry.code) not in existing_entries:
                await self._store.insert_entry(entry)
                inserted += 1

        if inserted:
            self._cache.invalidate()
            logger.info(f"Seeded {inserted} system library records")
        return inserted
