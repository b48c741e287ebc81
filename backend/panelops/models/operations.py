"""
Canonical Operation Model — the shared vocabulary of the resolution engine.

Edge sides, operation categories and one tagged pydantic variant per
operation category. Everything downstream (optimizer exports, library
entries, API responses) speaks these shapes and never raw notation.

Variants are discriminated by their ``category`` literal, so a stored or
transported dict round-trips through ``CANONICAL_OPERATION``:

    op = CANONICAL_OPERATION.validate_python({"category": "groove", ...})
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_serializer, field_validator


class EdgeSide(str, Enum):
    """The four edges of a rectangular panel: two length edges, two width edges."""
    L1 = "L1"
    L2 = "L2"
    W1 = "W1"
    W2 = "W2"


EDGE_ORDER: tuple[EdgeSide, ...] = (EdgeSide.L1, EdgeSide.L2, EdgeSide.W1, EdgeSide.W2)
ALL_EDGES: frozenset[EdgeSide] = frozenset(EDGE_ORDER)
LONG_EDGES: frozenset[EdgeSide] = frozenset({EdgeSide.L1, EdgeSide.L2})
WIDTH_EDGES: frozenset[EdgeSide] = frozenset({EdgeSide.W1, EdgeSide.W2})


class OperationCategory(str, Enum):
    EDGEBAND = "edgeband"
    GROOVE = "groove"
    DRILLING = "drilling"
    CNC = "cnc"


# Categories backed by a reusable library
LIBRARY_CATEGORIES: tuple[OperationCategory, ...] = (
    OperationCategory.EDGEBAND,
    OperationCategory.GROOVE,
    OperationCategory.DRILLING,
    OperationCategory.CNC,
)


class RefCorner(str, Enum):
    TL = "TL"
    TR = "TR"
    BL = "BL"
    BR = "BR"


HOLE_PATTERN_KINDS: tuple[str, ...] = (
    "hinge", "shelf_pins", "handle", "knob", "drawer_slide",
    "cam_lock", "dowel", "system32", "custom",
)

GROOVE_PURPOSES: tuple[str, ...] = (
    "back_panel", "drawer_bottom", "divider", "light_profile", "glass_panel", "custom",
)

CNC_OP_TYPES: tuple[str, ...] = (
    "pocket", "cutout", "chamfer", "radius", "rebate", "contour", "text", "custom",
)


class HoleDefinition(BaseModel):
    """One hole, positioned from the pattern's reference edge/corner."""
    model_config = ConfigDict(frozen=True)

    x_mm: float
    y_mm: float
    dia_mm: float = Field(gt=0)
    depth_mm: Optional[float] = Field(default=None, gt=0)
    through: bool = False


class EdgebandOperation(BaseModel):
    category: Literal["edgeband"] = "edgeband"
    code: str
    name: str
    # Empty set means "no banding"
    edges: frozenset[EdgeSide] = frozenset()
    material_id: Optional[str] = None
    thickness_mm: Optional[float] = Field(default=None, gt=0)

    @field_serializer("edges")
    def _serialize_edges(self, edges: frozenset[EdgeSide]) -> list[str]:
        return [side.value for side in EDGE_ORDER if side in edges]


class GrooveOperation(BaseModel):
    category: Literal["groove"] = "groove"
    code: str
    name: str
    width_mm: float = Field(gt=0)
    depth_mm: float = Field(gt=0)
    offset_mm: float = Field(gt=0)
    edge: Optional[EdgeSide] = None
    type_id: Optional[int] = None


class DrillingOperation(BaseModel):
    category: Literal["drilling"] = "drilling"
    code: str
    name: str
    pattern_kind: Optional[str] = None
    holes: tuple[HoleDefinition, ...] = ()
    ref_edge: Optional[EdgeSide] = None
    ref_corner: Optional[RefCorner] = None
    hardware_brand: Optional[str] = None
    hardware_model: Optional[str] = None


class CncOperation(BaseModel):
    category: Literal["cnc"] = "cnc"
    code: str
    name: str
    op_type: str
    # Shape depends on op_type, e.g. pocket: shape/diameter/depth
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("op_type")
    @classmethod
    def _known_op_type(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in CNC_OP_TYPES:
            raise ValueError(f"unknown CNC operation type '{value}'")
        return value


CanonicalOperation = Annotated[
    Union[EdgebandOperation, GrooveOperation, DrillingOperation, CncOperation],
    Field(discriminator="category"),
]

# Operations that can be stored as library entries
LibraryOperation = Annotated[
    Union[EdgebandOperation, GrooveOperation, DrillingOperation, CncOperation],
    Field(discriminator="category"),
]

CANONICAL_OPERATION: TypeAdapter = TypeAdapter(CanonicalOperation)
LIBRARY_OPERATION: TypeAdapter = TypeAdapter(LibraryOperation)
