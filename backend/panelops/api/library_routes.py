"""Library routes — edgeband profiles, hole patterns, groove profiles and routing profiles per organization."""
import logging
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from panelops.api.deps import get_library, get_organization_id, http_error
from panelops.errors import OperationsError
from panelops.models.library import LibraryEntry
from panelops.models.operations import DrillingOperation, EdgebandOperation, OperationCategory
from panelops.services.operation_adapter import adapt_operation
from panelops.services.operations_library import OperationsLibrary

router = APIRouter(prefix="/api/v1/library", tags=["Operations Library"])
logger = logging.getLogger("panelops-api")

LIBRARY_PATHS: dict[str, OperationCategory] = {
    "edgeband-profiles": OperationCategory.EDGEBAND,
    "hole-patterns": OperationCategory.DRILLING,
    "groove-profiles": OperationCategory.GROOVE,
    "routing-profiles": OperationCategory.CNC,
}


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class LibraryEntryCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    kind: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    # Operation body in any accepted producer shape for the category
    operation: dict[str, Any]


class LibraryEntryUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    kind: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None
    # snake_case operation fields to change (width_mm, holes, params...)
    operation: Optional[dict[str, Any]] = None


def _category(library: str) -> OperationCategory:
    category = LIBRARY_PATHS.get(library)
    if category is None:
        raise HTTPException(status_code=404, detail=f"Unknown library '{library}'")
    return category


def _entry_response(entry: LibraryEntry) -> dict:
    data = entry.model_dump(mode="json")
    data.update(code=entry.code, name=entry.name, category=entry.category.value, is_system=entry.is_system)
    return data


def _entry_from_request(category: OperationCategory, body: LibraryEntryCreate) -> LibraryEntry:
    operation = adapt_operation(category, {**body.operation, "code": body.code, "name": body.name})
    if operation is None:
        raise HTTPException(status_code=422, detail=f"Operation body is not a valid {category.value} operation")

    if isinstance(operation, DrillingOperation):
        if body.kind and not operation.pattern_kind:
            operation = operation.model_copy(update={"pattern_kind": body.kind})
        kind = body.kind or operation.pattern_kind or "custom"
    elif isinstance(operation, EdgebandOperation):
        # The profile keeps its own code; the edge set only describes the sides it bands
        operation = operation.model_copy(update={"code": body.code, "name": body.name})
        kind = body.kind or "edgeband"
    elif category == OperationCategory.CNC:
        kind = body.kind or operation.op_type
    else:
        kind = body.kind or "custom"
    return LibraryEntry(kind=kind, description=body.description, is_active=body.is_active, operation=operation)


# ─── Routes ──────────────────────────────────────────────────────────────────

@router.get("/{library}")
async def list_entries(
    library: str,
    kind: Optional[str] = None,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    """Active organization entries, then system defaults the organization has not overridden."""
    try:
        entries = await operations.list_entries(_category(library), organization_id, kind=kind)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"entries": [_entry_response(e) for e in entries], "total": len(entries)}


@router.get("/{library}/by-code/{code}")
async def find_by_code(
    library: str,
    code: str,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        entry = await operations.find_by_code(_category(library), organization_id, code)
    except OperationsError as exc:
        raise http_error(exc) from exc
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No entry with code {code}")
    return _entry_response(entry)


@router.post("/{library}", status_code=201)
async def create_entry(
    library: str,
    body: LibraryEntryCreate,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    category = _category(library)
    try:
        entry = await operations.create(organization_id, _entry_from_request(category, body))
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _entry_response(entry)


@router.put("/{library}/{entry_id}")
async def update_entry(
    library: str,
    entry_id: int,
    body: LibraryEntryUpdate,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    _category(library)
    changes = body.model_dump(exclude_unset=True, exclude={"operation"})
    changes.update(body.operation or {})
    try:
        entry = await operations.update(organization_id, entry_id, changes)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _entry_response(entry)


@router.delete("/{library}/{entry_id}")
async def delete_entry(
    library: str,
    entry_id: int,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    _category(library)
    try:
        await operations.delete(organization_id, entry_id)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"deleted": entry_id}


@router.post("/{library}/{entry_id}/usage")
async def record_usage(
    library: str,
    entry_id: int,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    """Count one use of an entry. System entries are never counted."""
    _category(library)
    try:
        await operations.get_entry(organization_id, entry_id)
        counted = await operations.increment_usage(entry_id)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"entry_id": entry_id, "counted": counted}
