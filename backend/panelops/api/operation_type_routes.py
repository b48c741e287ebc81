"""Operation type routes — dropdown classifications per category."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from panelops.api.deps import get_library, get_organization_id, http_error
from panelops.errors import OperationsError
from panelops.models.library import OperationTypeDef
from panelops.models.operations import OperationCategory
from panelops.services.operations_library import OperationsLibrary

router = APIRouter(prefix="/api/v1/operation-types", tags=["Operation Types"])
logger = logging.getLogger("panelops-api")


class OperationTypeCreate(BaseModel):
    category: OperationCategory
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    display_order: int = 0


class OperationTypeUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


def _type_response(type_def: OperationTypeDef) -> dict:
    data = type_def.model_dump(mode="json")
    data["is_system"] = type_def.is_system
    return data


@router.get("")
async def list_types(
    category: OperationCategory,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        types = await operations.list_types(category, organization_id)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"types": [_type_response(t) for t in types]}


@router.get("/{category}/{code}")
async def find_type(
    category: OperationCategory,
    code: str,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        type_def = await operations.find_type(category, organization_id, code)
    except OperationsError as exc:
        raise http_error(exc) from exc
    if type_def is None:
        raise HTTPException(status_code=404, detail=f"No {category.value} type {code}")
    return _type_response(type_def)


@router.post("", status_code=201)
async def create_type(
    body: OperationTypeCreate,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        type_def = await operations.create_type(organization_id, OperationTypeDef(**body.model_dump()))
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _type_response(type_def)


@router.put("/{type_id}")
async def update_type(
    type_id: int,
    body: OperationTypeUpdate,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        type_def = await operations.update_type(organization_id, type_id, body.model_dump(exclude_unset=True))
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _type_response(type_def)


@router.delete("/{type_id}")
async def delete_type(
    type_id: int,
    organization_id: str = Depends(get_organization_id),
    operations: OperationsLibrary = Depends(get_library),
):
    try:
        await operations.delete_type(organization_id, type_id)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return {"deleted": type_id}
