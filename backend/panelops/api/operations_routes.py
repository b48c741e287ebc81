"""Resolution routes — raw notation in, canonical operations out."""
import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from panelops.api.deps import (
    dispatch_learning,
    get_learning_writer,
    get_organization_id,
    get_pipeline,
    http_error,
)
from panelops.errors import OperationsError
from panelops.models.operations import OperationCategory
from panelops.models.resolution import PartNotation, ResolutionOutcome, ResolvedOperation
from panelops.services.learning_writer import LearningWriter
from panelops.services.resolution_pipeline import ResolutionPipeline

router = APIRouter(prefix="/api/v1/operations", tags=["Operations Resolution"])
logger = logging.getLogger("panelops-api")


class ResolveRequest(BaseModel):
    category: OperationCategory
    notation: str = Field(max_length=255)


def _resolved_response(result) -> dict:
    data = result.model_dump(mode="json")
    if isinstance(result, ResolvedOperation):
        data["requires_review"] = result.requires_review
    return data


def _outcome_response(outcome: ResolutionOutcome, learning: str) -> dict:
    return {
        "result": _resolved_response(outcome.result),
        "learning_events": [e.model_dump(mode="json") for e in outcome.learning_events],
        "learning": learning,
    }


@router.post("/resolve")
async def resolve_operation(
    body: ResolveRequest,
    organization_id: str = Depends(get_organization_id),
    pipeline: ResolutionPipeline = Depends(get_pipeline),
    writer: LearningWriter = Depends(get_learning_writer),
):
    """Resolve one notation for one operation category."""
    try:
        outcome = await pipeline.resolve_operation(organization_id, body.category, body.notation)
        learning = await dispatch_learning(outcome.learning_events, writer)
    except OperationsError as exc:
        raise http_error(exc) from exc
    return _outcome_response(outcome, learning)


@router.post("/resolve-part")
async def resolve_part(
    body: PartNotation,
    organization_id: str = Depends(get_organization_id),
    pipeline: ResolutionPipeline = Depends(get_pipeline),
    writer: LearningWriter = Depends(get_learning_writer),
):
    """Resolve every notation attached to one part (bulk import row)."""
    try:
        resolution = await pipeline.resolve_part(organization_id, body)
        learning = await dispatch_learning(resolution.learning_events, writer)
    except OperationsError as exc:
        raise http_error(exc) from exc

    return {
        "part_id": resolution.part_id,
        "fully_resolved": resolution.fully_resolved,
        "edging": _resolved_response(resolution.edging) if resolution.edging else None,
        "grooves": [_resolved_response(r) for r in resolution.grooves],
        "holes": [_resolved_response(r) for r in resolution.holes],
        "cnc": [_resolved_response(r) for r in resolution.cnc],
        "unresolved": [u.model_dump(mode="json") for u in resolution.unresolved],
        "learning": learning,
    }
