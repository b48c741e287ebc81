"""
Resolution results and learning events.

The pipeline never writes: it returns a ``ResolutionOutcome`` carrying the
result plus the learning events a single writer should apply.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from panelops.config import REVIEW_CONFIDENCE_THRESHOLD
from panelops.models.operations import CanonicalOperation, OperationCategory


class ResolutionSource(str, Enum):
    ALIAS = "alias"
    PARSER = "parser"
    LIBRARY = "library"
    AI = "ai"


class ResolvedOperation(BaseModel):
    status: Literal["resolved"] = "resolved"
    category: OperationCategory
    raw_notation: str
    canonical_code: str
    source: ResolutionSource
    # Library strategy (code / name / keyword / dimensions / tolerance / kind)
    strategy: Optional[str] = None
    operation: CanonicalOperation
    library_entry_id: Optional[int] = None
    confidence: float = Field(ge=0.0, le=1.0)
    verified: bool = True
    overrides: dict[str, float] = Field(default_factory=dict)

    @property
    def requires_review(self) -> bool:
        return not self.verified or self.confidence < REVIEW_CONFIDENCE_THRESHOLD


class Unresolved(BaseModel):
    """Nothing matched. Carries the raw notation for manual resolution."""
    status: Literal["unresolved"] = "unresolved"
    category: OperationCategory
    raw_notation: str
    # Whatever the parser could extract (kind, width...), never a fabricated default
    partial: Optional[dict[str, Any]] = None
    reason: str = "no_match"


ResolutionResult = Annotated[Union[ResolvedOperation, Unresolved], Field(discriminator="status")]


# ── Learning events ────────────────────────────────────────────────────────────

class AliasLearned(BaseModel):
    kind: Literal["alias"] = "alias"
    organization_id: str
    category: OperationCategory
    external: str
    canonical: str


class UsageRecorded(BaseModel):
    kind: Literal["usage"] = "usage"
    entry_id: int


LearningEvent = Annotated[Union[AliasLearned, UsageRecorded], Field(discriminator="kind")]
LEARNING_EVENTS: TypeAdapter = TypeAdapter(list[LearningEvent])


class ResolutionOutcome(BaseModel):
    result: ResolutionResult
    learning_events: list[LearningEvent] = Field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return isinstance(self.result, ResolvedOperation)


# ── Part-level resolution (bulk import) ────────────────────────────────────────

class PartNotation(BaseModel):
    """All raw notations attached to one cut part."""
    part_id: Optional[str] = None
    edge: Optional[str] = None
    grooves: list[str] = Field(default_factory=list)
    holes: list[str] = Field(default_factory=list)
    cnc: list[str] = Field(default_factory=list)


class PartResolution(BaseModel):
    part_id: Optional[str] = None
    edging: Optional[ResolvedOperation] = None
    grooves: list[ResolvedOperation] = Field(default_factory=list)
    holes: list[ResolvedOperation] = Field(default_factory=list)
    cnc: list[ResolvedOperation] = Field(default_factory=list)
    unresolved: list[Unresolved] = Field(default_factory=list)
    learning_events: list[LearningEvent] = Field(default_factory=list)

    @property
    def fully_resolved(self) -> bool:
        return not self.unresolved
