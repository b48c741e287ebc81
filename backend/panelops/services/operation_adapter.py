"""
Producer adapter — normalizes operation payloads arriving from different
producers (API clients, UI forms, the AI interpreter) into canonical variants.

Every accepted producer shape is one explicit pydantic model with
``extra="forbid"``; a payload either validates against exactly one known
shape or is rejected. Business code only ever sees canonical operations.

    op = adapt_operation(OperationCategory.GROOVE, {"widthMm": 4, "depthMm": 10, "offsetFromEdgeMm": 10})
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from panelops.models.operations import (
    EDGE_ORDER,
    CncOperation,
    DrillingOperation,
    EdgebandOperation,
    EdgeSide,
    GrooveOperation,
    HoleDefinition,
    OperationCategory,
    RefCorner,
)
from panelops.services.defaults import EDGE_CODE_NAMES
from panelops.services.shortcode_parser import edges_to_code, normalize_notation, parse_edge_code

logger = logging.getLogger("panelops-adapter")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=False)

    code: Optional[str] = None
    name: Optional[str] = None
    # Producers sometimes attach these; they carry no operation data
    confidence: Optional[float] = None
    notes: Optional[str] = None

    def _code(self, fallback: str) -> str:
        return normalize_notation(self.code) or normalize_notation(fallback)


def edgeband_operation(edges, thickness_mm=None, material_id=None, name=None) -> EdgebandOperation:
    edges = frozenset(EdgeSide(side) for side in edges)
    code = edges_to_code(edges)
    return EdgebandOperation(
        code=code,
        name=name or EDGE_CODE_NAMES.get(code, f"Edges {code}"),
        edges=edges,
        thickness_mm=thickness_mm,
        material_id=material_id,
    )


# ── Edge banding shapes ────────────────────────────────────────────────────────

class EdgeListPayload(_Payload):
    """API / AI shape: {"edges": ["L1", "W1"]}"""
    edges: list[EdgeSide]
    thickness_mm: Optional[float] = Field(default=None, gt=0)
    material_id: Optional[str] = None

    def to_operation(self, fallback_code: str) -> EdgebandOperation:
        return edgeband_operation(self.edges, self.thickness_mm, self.material_id, self.name)


class EdgeFlagsPayload(_Payload):
    """UI form shape: one apply flag per side."""
    L1: bool
    L2: bool
    W1: bool
    W2: bool

    def to_operation(self, fallback_code: str) -> EdgebandOperation:
        return edgeband_operation([side for side in EDGE_ORDER if getattr(self, side.value)], name=self.name)


class EdgeCodePayload(_Payload):
    """Bare code shape: {"code": "2L"}"""
    code: str

    def to_operation(self, fallback_code: str) -> Optional[EdgebandOperation]:
        edges = parse_edge_code(self.code)
        return edgeband_operation(edges, name=self.name) if edges is not None else None


# ── Groove shapes ──────────────────────────────────────────────────────────────

class GroovePayload(_Payload):
    """snake_case API / AI shape."""
    width_mm: float
    depth_mm: float
    offset_mm: float
    edge: Optional[EdgeSide] = None

    def to_operation(self, fallback_code: str) -> GrooveOperation:
        code = self._code(fallback_code)
        return GrooveOperation(
            code=code,
            name=self.name or f"Groove {self.width_mm:g}x{self.depth_mm:g}",
            width_mm=self.width_mm,
            depth_mm=self.depth_mm,
            offset_mm=self.offset_mm,
            edge=self.edge,
        )


class GrooveCamelPayload(_Payload):
    """camelCase UI shape."""
    width_mm: float = Field(alias="widthMm")
    depth_mm: float = Field(alias="depthMm")
    offset_mm: float = Field(alias="offsetFromEdgeMm")
    edge: Optional[EdgeSide] = None
    type_id: Optional[int] = Field(default=None, alias="typeId")

    def to_operation(self, fallback_code: str) -> GrooveOperation:
        return GrooveOperation(
            code=self._code(fallback_code),
            name=self.name or f"Groove {self.width_mm:g}x{self.depth_mm:g}",
            width_mm=self.width_mm,
            depth_mm=self.depth_mm,
            offset_mm=self.offset_mm,
            edge=self.edge,
            type_id=self.type_id,
        )


# ── Drilling shapes ────────────────────────────────────────────────────────────

class HolePatternPayload(_Payload):
    """snake_case API / AI shape."""
    kind: Optional[str] = None
    holes: list[HoleDefinition]
    ref_edge: Optional[EdgeSide] = None
    ref_corner: Optional[RefCorner] = None
    hardware_brand: Optional[str] = None
    hardware_model: Optional[str] = None

    def to_operation(self, fallback_code: str) -> DrillingOperation:
        return DrillingOperation(
            code=self._code(fallback_code),
            name=self.name or f"{(self.kind or 'custom').replace('_', ' ').title()} pattern",
            pattern_kind=self.kind,
            holes=tuple(self.holes),
            ref_edge=self.ref_edge,
            ref_corner=self.ref_corner,
            hardware_brand=self.hardware_brand,
            hardware_model=self.hardware_model,
        )


class CamelHole(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float
    dia_mm: float = Field(alias="diaMm", gt=0)
    depth_mm: Optional[float] = Field(default=None, alias="depthMm", gt=0)
    through: bool = False


class HolePatternCamelPayload(_Payload):
    """camelCase UI shape."""
    kind: Optional[str] = None
    holes: list[CamelHole]
    ref_edge: Optional[EdgeSide] = Field(default=None, alias="refEdge")
    ref_corner: Optional[RefCorner] = Field(default=None, alias="refCorner")
    hardware_brand: Optional[str] = Field(default=None, alias="hardwareBrand")
    hardware_model: Optional[str] = Field(default=None, alias="hardwareModel")

    def to_operation(self, fallback_code: str) -> DrillingOperation:
        holes = tuple(
            HoleDefinition(x_mm=h.x, y_mm=h.y, dia_mm=h.dia_mm, depth_mm=h.depth_mm, through=h.through)
            for h in self.holes
        )
        return DrillingOperation(
            code=self._code(fallback_code),
            name=self.name or f"{(self.kind or 'custom').replace('_', ' ').title()} pattern",
            pattern_kind=self.kind,
            holes=holes,
            ref_edge=self.ref_edge,
            ref_corner=self.ref_corner,
            hardware_brand=self.hardware_brand,
            hardware_model=self.hardware_model,
        )


# ── CNC shapes ─────────────────────────────────────────────────────────────────

class CncPayload(_Payload):
    """snake_case API / AI shape."""
    op_type: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_operation(self, fallback_code: str) -> CncOperation:
        return CncOperation(
            code=self._code(fallback_code),
            name=self.name or self.op_type.title(),
            op_type=self.op_type,
            params=self.params,
        )


class CncTypedPayload(_Payload):
    """UI shape using ``type`` for the operation type."""
    type: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_operation(self, fallback_code: str) -> CncOperation:
        return CncOperation(
            code=self._code(fallback_code),
            name=self.name or self.type.title(),
            op_type=self.type,
            params=self.params,
        )


PRODUCER_SHAPES: dict[OperationCategory, tuple[type[_Payload], ...]] = {
    OperationCategory.EDGEBAND: (EdgeListPayload, EdgeFlagsPayload, EdgeCodePayload),
    OperationCategory.GROOVE: (GroovePayload, GrooveCamelPayload),
    OperationCategory.DRILLING: (HolePatternPayload, HolePatternCamelPayload),
    OperationCategory.CNC: (CncPayload, CncTypedPayload),
}


def adapt_operation(category: OperationCategory, payload: Any, fallback_code: str = ""):
    """
    Canonical operation for ``payload``, or None when no producer shape accepts it
    or the resulting operation is invalid (e.g. a non-positive width).
    """
    if not isinstance(payload, dict):
        return None
    for shape in PRODUCER_SHAPES[OperationCategory(category)]:
        try:
            parsed = shape.model_validate(payload)
        except ValidationError:
            continue
        try:
            return parsed.to_operation(fallback_code)
        except ValidationError as exc:
            logger.debug(f"{shape.__name__} payload rejected: {exc}")
            return None
    return None
