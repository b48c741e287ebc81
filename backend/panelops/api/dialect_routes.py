"""Dialect routes — per-organization notation aliases and resolution flags."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from panelops.api.deps import get_dialects, get_organization_id, http_error
from panelops.errors import OperationsError
from panelops.models.operations import OperationCategory
from panelops.services.dialect_resolver import DialectResolver

router = APIRouter(prefix="/api/v1/dialect", tags=["Notation Dialect"])
logger = logging.getLogger("panelops-api")


class DialectSettingsUpdate(BaseModel):
    use_ai_fallback: Optional[bool] = None
    auto_learn: Optional[bool] = None


class AliasUpsert(BaseModel):
    external: str = Field(min_length=1, max_length=255)
    canonical: str = Field(min_length=1, max_length=255)


def _config_response(config, dialects: DialectResolver) -> dict:
    return {
        "organization_id": config.organization_id,
        "use_ai_fallback": config.use_ai_fallback,
        "auto_learn": config.auto_learn,
        "aliases": {category.value: dict(config.aliases_for(category)) for category in OperationCategory},
        "system_aliases": {category.value: dialects.system_aliases(category) for category in OperationCategory},
    }


@router.get("")
async def get_dialect(
    organization_id: str = Depends(get_organization_id),
    dialects: DialectResolver = Depends(get_dialects),
):
    try:
        config = await dialects.get_or_create_config(organization_id)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _config_response(config, dialects)


@router.put("/settings")
async def update_dialect_settings(
    body: DialectSettingsUpdate,
    organization_id: str = Depends(get_organization_id),
    dialects: DialectResolver = Depends(get_dialects),
):
    try:
        config = await dialects.update_flags(
            organization_id, use_ai_fallback=body.use_ai_fallback, auto_learn=body.auto_learn,
        )
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _config_response(config, dialects)


@router.put("/aliases/{category}")
async def put_alias(
    category: OperationCategory,
    body: AliasUpsert,
    organization_id: str = Depends(get_organization_id),
    dialects: DialectResolver = Depends(get_dialects),
):
    try:
        external, canonical = await dialects.add_alias(organization_id, category, body.external, body.canonical)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"category": category.value, "external": external, "canonical": canonical}


@router.delete("/aliases/{category}/{external}")
async def delete_alias(
    category: OperationCategory,
    external: str,
    organization_id: str = Depends(get_organization_id),
    dialects: DialectResolver = Depends(get_dialects),
):
    try:
        removed = await dialects.remove_alias(organization_id, category, external)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"removed": removed}


@router.get("/resolve")
async def resolve_alias(
    category: OperationCategory,
    notation: str,
    organization_id: str = Depends(get_organization_id),
    dialects: DialectResolver = Depends(get_dialects),
):
    """Alias lookup only (organization map, then system defaults)."""
    try:
        canonical = await dialects.resolve(organization_id, category, notation)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"notation": notation, "canonical": canonical}
