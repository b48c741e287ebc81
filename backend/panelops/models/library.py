"""
Library and dialect records as seen by the engine.

Scope rule shared by every record here: ``organization_id is None`` means a
system default, shared read-only by all organizations.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from panelops.config import DEFAULT_AUTO_LEARN, DEFAULT_USE_AI_FALLBACK
from panelops.models.operations import LibraryOperation, OperationCategory


class OperationTypeDef(BaseModel):
    """Dropdown-level classification within a category (hinge, back_panel, pocket...)."""
    id: Optional[int] = None
    organization_id: Optional[str] = None
    category: OperationCategory
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    display_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_system(self) -> bool:
        return self.organization_id is None


class LibraryEntry(BaseModel):
    """
    Edgeband profile, hole pattern, groove profile or routing profile.

    ``kind`` is the purpose/kind classifier used by keyword inference
    (hinge, back_panel, cutout, ...). Code and name live on the operation.
    """
    id: Optional[int] = None
    organization_id: Optional[str] = None
    kind: str = "custom"
    description: Optional[str] = None
    is_active: bool = True
    usage_count: int = Field(default=0, ge=0)
    operation: LibraryOperation
    created_at: Optional[datetime] = None

    @property
    def code(self) -> str:
        return self.operation.code

    @property
    def name(self) -> str:
        return self.operation.name

    @property
    def category(self) -> OperationCategory:
        return OperationCategory(self.operation.category)

    @property
    def is_system(self) -> bool:
        return self.organization_id is None


def _empty_alias_maps() -> dict[OperationCategory, dict[str, str]]:
    return {category: {} for category in OperationCategory}


class DialectConfig(BaseModel):
    """Per-organization alias maps (external notation → canonical code) and flags."""
    organization_id: Optional[str] = None
    aliases: dict[OperationCategory, dict[str, str]] = Field(default_factory=_empty_alias_maps)
    use_ai_fallback: bool = DEFAULT_USE_AI_FALLBACK
    auto_learn: bool = DEFAULT_AUTO_LEARN

    def aliases_for(self, category: OperationCategory) -> dict[str, str]:
        return self.aliases.get(OperationCategory(category), {})
