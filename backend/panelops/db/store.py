"""
OperationsStore — persistence contract the resolution engine talks to.

Scope is expressed by ``organization_id``: ``None`` selects system-scope
records, a string selects that organization's own records. Stores do not
merge scopes or enforce immutability; the Operations Library does that.

Mutations that must stay atomic under concurrency:
  - increment_usage: single atomic counter bump
  - upsert_alias / delete_alias: single-row replace per alias key
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from panelops.models.library import DialectConfig, LibraryEntry, OperationTypeDef
from panelops.models.operations import OperationCategory


class OperationsStore(ABC):

    # ── Library entries ────────────────────────────────────────────────────────

    @abstractmethod
    async def list_entries(
        self,
        organization_id: Optional[str],
        category: Optional[OperationCategory] = None,
        include_inactive: bool = False,
    ) -> list[LibraryEntry]:
        """Entries of exactly one scope, in creation order."""

    @abstractmethod
    async def get_entry(self, entry_id: int) -> Optional[LibraryEntry]:
        ...

    @abstractmethod
    async def insert_entry(self, entry: LibraryEntry) -> LibraryEntry:
        """Persist a new entry and return it with its id assigned."""

    @abstractmethod
    async def replace_entry(self, entry: LibraryEntry) -> LibraryEntry:
        ...

    @abstractmethod
    async def delete_entry(self, entry_id: int) -> bool:
        ...

    @abstractmethod
    async def increment_usage(self, entry_id: int) -> bool:
        """
        Atomically add one to an organization-scoped entry's usage counter.

        Returns False (and changes nothing) for unknown or system entries.
        """

    # ── Operation types ────────────────────────────────────────────────────────

    @abstractmethod
    async def list_types(
        self,
        organization_id: Optional[str],
        category: Optional[OperationCategory] = None,
    ) -> list[OperationTypeDef]:
        ...

    @abstractmethod
    async def get_type(self, type_id: int) -> Optional[OperationTypeDef]:
        ...

    @abstractmethod
    async def insert_type(self, type_def: OperationTypeDef) -> OperationTypeDef:
        ...

    @abstractmethod
    async def replace_type(self, type_def: OperationTypeDef) -> OperationTypeDef:
        ...

    @abstractmethod
    async def delete_type(self, type_id: int) -> bool:
        ...

    # ── Dialects ───────────────────────────────────────────────────────────────

    @abstractmethod
    async def get_dialect(self, organization_id: str) -> Optional[DialectConfig]:
        """Stored config with its alias maps, or None if never created."""

    @abstractmethod
    async def save_dialect_flags(self, config: DialectConfig) -> None:
        """Create or replace the organization's flags. Aliases are untouched."""

    @abstractmethod
    async def upsert_alias(
        self,
        organization_id: str,
        category: OperationCategory,
        external: str,
        canonical: str,
    ) -> None:
        """Insert or overwrite one alias; creates the dialect with default flags if absent."""

    @abstractmethod
    async def delete_alias(self, organization_id: str, category: OperationCategory, external: str) -> bool:
        ...
