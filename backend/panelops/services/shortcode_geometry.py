"""
Numbers a hole or CNC shortcode carries, checked against library entries.

A kind-level library match (``H4`` → first hinge pattern) is only an answer
when the entry agrees with every number in the notation: hinge count and
offset, handle centers, shelf-pin spacing, the CNC value or cutout purpose.
``fits`` checks that agreement. When no entry fits, ``build_operation``
derives the operation from the numbers alone, for the shortcodes whose
numbers fully determine the geometry. Shelf-pin rows depend on the part
height, so a shelf-pin notation no entry fits is left unresolved.
"""
from __future__ import annotations

from typing import Optional

from panelops.models.library import LibraryEntry
from panelops.models.operations import CncOperation, DrillingOperation, EdgeSide, RefCorner
from panelops.services.defaults import (
    CHAMFER_ANGLE_DEG,
    HINGE_OFFSET_MM,
    HINGE_PITCH_MM,
    POCKET_DEPTH_MM,
    hinge_cup,
    through_hole,
)
from panelops.services.shortcode_parser import CncShortcode, HoleShortcode, parse_hole_code

# CNC parameter the number in RAD-10, PKT-50, CHAM-3 or RBT-18 sets
CNC_PRIMARY_PARAM: dict[str, str] = {
    "radius": "radius_mm",
    "chamfer": "width_mm",
    "rebate": "width_mm",
    "pocket": "diameter_mm",
}

_CNC_INLINE_PARAMS: dict[str, dict] = {
    "pocket": {"shape": "circle", "depth_mm": POCKET_DEPTH_MM, "through": False},
    "radius": {"corners": "all"},
    "chamfer": {"angle_deg": CHAMFER_ANGLE_DEG},
}

_SLACK = 1e-6


def _same(value, expected: float) -> bool:
    try:
        return abs(float(value) - expected) <= _SLACK
    except (TypeError, ValueError):
        return False


def carries_numbers(parsed) -> bool:
    """True when the parse holds values a matched library entry has to agree with."""
    if isinstance(parsed, HoleShortcode):
        return any(
            value is not None
            for value in (parsed.count, parsed.offset_mm, parsed.centers_mm, parsed.spacing_mm)
        )
    if isinstance(parsed, CncShortcode):
        return parsed.value_mm is not None or (parsed.op_type == "cutout" and bool(parsed.purpose))
    return False


def fits(parsed, entry: LibraryEntry) -> bool:
    """Whether ``entry`` is of the parsed kind and honours every number the parse carries."""
    operation = entry.operation
    if isinstance(parsed, HoleShortcode):
        if not isinstance(operation, DrillingOperation) or entry.kind != parsed.kind:
            return False
        holes = operation.holes
        if parsed.count is not None and len(holes) != parsed.count:
            return False
        if parsed.offset_mm is not None and not (holes and _same(abs(holes[0].x_mm), parsed.offset_mm)):
            return False
        if parsed.centers_mm is not None and not (
            len(holes) == 2 and _same(abs(holes[1].x_mm - holes[0].x_mm), parsed.centers_mm)
        ):
            return False
        if parsed.spacing_mm is not None:
            # Shelf-pin columns carry their pitch in the code only (SP-32)
            coded = parse_hole_code(entry.code)
            if coded is None or not _same(coded.spacing_mm, parsed.spacing_mm):
                return False
        return True

    if isinstance(parsed, CncShortcode):
        if not isinstance(operation, CncOperation) or operation.op_type != parsed.op_type:
            return False
        if parsed.value_mm is not None:
            param = CNC_PRIMARY_PARAM.get(parsed.op_type)
            if param is None or not _same(operation.params.get(param), parsed.value_mm):
                return False
        if (
            parsed.op_type == "cutout"
            and parsed.purpose
            and str(operation.params.get("purpose", "")).lower() != parsed.purpose
        ):
            return False
        return True

    return True


def build_operation(parsed, code: str, template: Optional[LibraryEntry] = None):
    """
    Operation built from the shortcode's own numbers, or None when they do
    not determine the geometry. ``template`` (an entry of the same kind)
    supplies hole diameter and depth when given.
    """
    if isinstance(parsed, HoleShortcode):
        template_holes = ()
        if template is not None and isinstance(template.operation, DrillingOperation):
            template_holes = template.operation.holes

        if parsed.kind == "hinge" and parsed.count:
            cup = template_holes[0] if template_holes else hinge_cup(HINGE_OFFSET_MM)
            offset = parsed.offset_mm or HINGE_OFFSET_MM
            holes = tuple(
                cup.model_copy(update={"x_mm": offset + i * HINGE_PITCH_MM}) for i in range(parsed.count)
            )
            return DrillingOperation(
                code=code,
                name=f"{parsed.count} Hinges @ {offset:g}mm",
                pattern_kind="hinge",
                holes=holes,
                ref_edge=EdgeSide.L1,
                ref_corner=RefCorner.TL,
            )

        if parsed.kind == "handle" and parsed.centers_mm:
            hole = template_holes[0] if template_holes else through_hole(0)
            return DrillingOperation(
                code=code,
                name=f"Handle {parsed.centers_mm:g}mm Centers",
                pattern_kind="handle",
                holes=(hole.model_copy(update={"x_mm": 0.0}), hole.model_copy(update={"x_mm": parsed.centers_mm})),
                ref_edge=EdgeSide.L1,
            )
        return None

    if isinstance(parsed, CncShortcode):
        if parsed.value_mm is not None:
            param = CNC_PRIMARY_PARAM.get(parsed.op_type)
            if param is None:
                return None
            params = {**_CNC_INLINE_PARAMS.get(parsed.op_type, {}), param: parsed.value_mm}
            name = f"{parsed.op_type.title()} {parsed.value_mm:g}mm"
        elif parsed.purpose and parsed.op_type == "cutout":
            params = {"purpose": parsed.purpose, "through": True}
            name = f"Cutout ({parsed.purpose.replace('_', ' ')})"
        else:
            return None
        return CncOperation(code=code, name=name, op_type=parsed.op_type, params=params)

    return None
