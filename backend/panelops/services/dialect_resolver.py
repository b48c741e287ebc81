"""
Dialect Resolver — per-organization notation aliases with a system layer.

Lookup order for a normalized notation:
  1. the organization's alias map for the category
  2. the system default alias map
An unknown organization simply has no aliases of its own.

The resolver never learns on its own initiative: add_alias / remove_alias are
the only alias mutations, called explicitly by API users or by the
LearningWriter applying pipeline learning events.
"""
from __future__ import annotations

import logging
from typing import Optional

from panelops.db.store import OperationsStore
from panelops.errors import ImmutableDefaultError, InvalidNotationShape
from panelops.models.library import DialectConfig
from panelops.models.operations import OperationCategory
from panelops.services.defaults import NO_VALUES, SYSTEM_ALIASES, YES_VALUES
from panelops.services.shortcode_parser import normalize_notation, parse_edge_code

logger = logging.getLogger("panelops-dialect")


class DialectResolver:

    def __init__(self, store: OperationsStore, system_aliases: Optional[dict] = None):
        self._store = store
        self._system_aliases = SYSTEM_ALIASES if system_aliases is None else system_aliases

    # ── Reads ──────────────────────────────────────────────────────────────────

    async def get_config(self, organization_id: Optional[str]) -> DialectConfig:
        """Stored config, or a transient default one. Never writes."""
        if organization_id:
            stored = await self._store.get_dialect(organization_id)
            if stored is not None:
                return stored
        return DialectConfig(organization_id=organization_id)

    async def get_or_create_config(self, organization_id: str) -> DialectConfig:
        """Config for the dialect settings surface; persists defaults on first access."""
        self._require_org(organization_id)
        stored = await self._store.get_dialect(organization_id)
        if stored is not None:
            return stored
        config = DialectConfig(organization_id=organization_id)
        await self._store.save_dialect_flags(config)
        logger.info("Dialect created with defaults", extra={"organization_id": organization_id})
        return config

    def lookup(self, config: DialectConfig, category: OperationCategory, notation: str) -> Optional[str]:
        """Alias target for ``notation`` in an already loaded config, org map first."""
        key = normalize_notation(notation)
        if not key:
            return None
        category = OperationCategory(category)
        canonical = config.aliases_for(category).get(key)
        if canonical is not None:
            return canonical
        return self._system_aliases.get(category, {}).get(key)

    async def resolve(self, organization_id: Optional[str], category: OperationCategory, raw_notation: str) -> Optional[str]:
        config = await self.get_config(organization_id)
        return self.lookup(config, category, raw_notation)

    def system_aliases(self, category: OperationCategory) -> dict[str, str]:
        return dict(self._system_aliases.get(OperationCategory(category), {}))

    # ── Mutations ──────────────────────────────────────────────────────────────

    async def add_alias(
        self,
        organization_id: str,
        category: OperationCategory,
        external: str,
        canonical: str,
    ) -> tuple[str, str]:
        """Map ``external`` to ``canonical``, overwriting any existing mapping."""
        self._require_org(organization_id)
        category = OperationCategory(category)
        external_key = normalize_notation(external)
        canonical_code = normalize_notation(canonical)
        if not external_key:
            raise InvalidNotationShape("Alias notation must not be empty")
        if not canonical_code:
            raise InvalidNotationShape("Alias target must not be empty")
        if category == OperationCategory.EDGEBAND and parse_edge_code(canonical_code) is None:
            raise InvalidNotationShape(f"'{canonical_code}' is not an edge code")

        await self._store.upsert_alias(organization_id, category, external_key, canonical_code)
        logger.info(
            f"Alias {external_key} → {canonical_code}",
            extra={"organization_id": organization_id, "category": category.value},
        )
        return external_key, canonical_code

    async def remove_alias(self, organization_id: str, category: OperationCategory, external: str) -> bool:
        """Drop an alias. Absent keys are not an error."""
        self._require_org(organization_id)
        key = normalize_notation(external)
        if not key:
            return False
        return await self._store.delete_alias(organization_id, OperationCategory(category), key)

    async def update_flags(
        self,
        organization_id: str,
        use_ai_fallback: Optional[bool] = None,
        auto_learn: Optional[bool] = None,
    ) -> DialectConfig:
        config = await self.get_or_create_config(organization_id)
        if use_ai_fallback is not None:
            config.use_ai_fallback = use_ai_fallback
        if auto_learn is not None:
            config.auto_learn = auto_learn
        await self._store.save_dialect_flags(config)
        return config

    @staticmethod
    def _require_org(organization_id: Optional[str]) -> None:
        if not organization_id:
            raise ImmutableDefaultError("The system dialect is read-only")

    # ── Flag cells ─────────────────────────────────────────────────────────────

    @staticmethod
    def is_yes_value(value) -> bool:
        """Spreadsheet cell meaning "apply this operation" (X, Y, YES, 1...)."""
        if isinstance(value, bool):
            return value
        return normalize_notation(str(value)) in YES_VALUES

    @staticmethod
    def is_no_value(value) -> bool:
        if value is None:
            return True
        if isinstance(value, bool):
            return not value
        return normalize_notation(str(value)) in NO_VALUES
