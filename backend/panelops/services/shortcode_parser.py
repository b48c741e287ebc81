"""
Shortcode Parsers — deterministic string → struct interpretation of panel
operation notation, one parser per operation category.

Parsers never consult the library and never raise for unrecognized input:
``None`` is the "no match" answer. Only the edge parser yields a fully
specified operation; groove, hole and CNC parsers return partial results the
Library Matcher completes with geometry.

Notation examples:
    edge      2L2W  ALL  L1  2LW  NONE  L1+W2
    groove    G4-10  GL-6-10  G-ALL-4-10  4x10
    hole      H2  H3-100  HD-CC128  SP-32  S32  KNOB  CAM
    cnc       CUTOUT-SINK  RADIUS-25  PKT-50  CHAM-3  RBT-10

Any code may carry ``@`` parameter overrides: ``GL-4-10@d8``, ``H2@dia35``,
``RADIUS-25@12``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from panelops.models.operations import (
    ALL_EDGES,
    EDGE_ORDER,
    LONG_EDGES,
    WIDTH_EDGES,
    EdgeSide,
    OperationCategory,
)

_NUMBER = r"\d+(?:\.\d+)?"


def normalize_notation(raw: Optional[str]) -> str:
    """Trim, collapse internal whitespace and uppercase."""
    if not raw:
        return ""
    return " ".join(str(raw).split()).upper()


# ── Parser results ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GrooveShortcode:
    width_mm: float
    offset_mm: float
    # None when the notation carries no edge token; the caller fills it in
    edges: Optional[frozenset[EdgeSide]] = None

    def as_hint(self) -> dict:
        hint: dict = {"width_mm": self.width_mm, "offset_mm": self.offset_mm}
        if self.edges is not None:
            hint["edges"] = [side.value for side in EDGE_ORDER if side in self.edges]
        return hint


@dataclass(frozen=True)
class HoleShortcode:
    kind: str
    count: Optional[int] = None
    offset_mm: Optional[float] = None
    centers_mm: Optional[float] = None
    spacing_mm: Optional[float] = None

    def as_hint(self) -> dict:
        hint = {"kind": self.kind}
        for key in ("count", "offset_mm", "centers_mm", "spacing_mm"):
            value = getattr(self, key)
            if value is not None:
                hint[key] = value
        return hint


@dataclass(frozen=True)
class CncShortcode:
    op_type: str
    value_mm: Optional[float] = None
    purpose: Optional[str] = None

    def as_hint(self) -> dict:
        hint: dict = {"op_type": self.op_type}
        if self.value_mm is not None:
            hint["value_mm"] = self.value_mm
        if self.purpose:
            hint["purpose"] = self.purpose
        return hint


ShortcodeResult = Union[frozenset, GrooveShortcode, HoleShortcode, CncShortcode]


# ── Edge banding ───────────────────────────────────────────────────────────────

_L1, _L2, _W1, _W2 = EDGE_ORDER
_THREE_LONG_FIRST = frozenset({_L1, _L2, _W1})
_THREE_WIDTH_FIRST = frozenset({_L1, _W1, _W2})

_EDGE_VOCABULARY: dict[str, frozenset[EdgeSide]] = {
    "ALL": ALL_EDGES,
    "2L2W": ALL_EDGES,
    "4": ALL_EDGES,
    "2L": LONG_EDGES,
    "2W": WIDTH_EDGES,
    "L1": frozenset({_L1}),
    "L2": frozenset({_L2}),
    "W1": frozenset({_W1}),
    "W2": frozenset({_W2}),
    "2LW": _THREE_LONG_FIRST,
    "LLW": _THREE_LONG_FIRST,
    "2L1W": _THREE_LONG_FIRST,
    "L2W": _THREE_WIDTH_FIRST,
    "LWW": _THREE_WIDTH_FIRST,
    "NONE": frozenset(),
    "0": frozenset(),
}

_EDGE_CODES: dict[frozenset[EdgeSide], str] = {
    ALL_EDGES: "2L2W",
    LONG_EDGES: "2L",
    WIDTH_EDGES: "2W",
    _THREE_LONG_FIRST: "2LW",
    _THREE_WIDTH_FIRST: "L2W",
    frozenset(): "NONE",
}


def parse_edge_code(notation: str) -> Optional[frozenset[EdgeSide]]:
    """Edge code → set of banded sides. An empty set is a valid "no banding"."""
    code = normalize_notation(notation)
    if not code:
        return None
    if code in _EDGE_VOCABULARY:
        return _EDGE_VOCABULARY[code]
    # Generic fallback: union of whatever side codes appear
    found = frozenset(side for side in EDGE_ORDER if side.value in code)
    return found or None


def edges_to_code(edges) -> str:
    """Canonical spelling of an edge set."""
    edges = frozenset(EdgeSide(side) for side in edges)
    if edges in _EDGE_CODES:
        return _EDGE_CODES[edges]
    return "+".join(side.value for side in EDGE_ORDER if side in edges)


# ── Grooves ────────────────────────────────────────────────────────────────────

_GROOVE_CODE = re.compile(
    rf"^G(?:-?(ALL|L1|L2|W1|W2|L|W))?-?({_NUMBER})[-X×]({_NUMBER})$"
)
_GROOVE_DIMS = re.compile(rf"^({_NUMBER}) ?[-X×] ?({_NUMBER})(?:MM)?$")

_GROOVE_EDGE_TOKENS: dict[str, Optional[frozenset[EdgeSide]]] = {
    "L": LONG_EDGES,
    "W": WIDTH_EDGES,
    "ALL": None,
}


def parse_groove_code(notation: str) -> Optional[GrooveShortcode]:
    """``G[edge]-width-offset`` or ``widthxoffset`` → width/offset and optional edges."""
    code = normalize_notation(notation)
    match = _GROOVE_CODE.match(code)
    if match:
        token, width, offset = match.groups()
    else:
        match = _GROOVE_DIMS.match(code)
        if not match:
            return None
        token = None
        width, offset = match.groups()

    width_mm, offset_mm = float(width), float(offset)
    if width_mm <= 0 or offset_mm <= 0:
        return None

    if token is None:
        edges = None
    elif token in _GROOVE_EDGE_TOKENS:
        edges = _GROOVE_EDGE_TOKENS[token]
    else:
        edges = frozenset({EdgeSide(token)})
    return GrooveShortcode(width_mm=width_mm, offset_mm=offset_mm, edges=edges)


# ── Holes ──────────────────────────────────────────────────────────────────────

_HINGE_CODE = re.compile(rf"^H(\d+)(?:[-_]({_NUMBER}))?$")
_HANDLE_CODE = re.compile(rf"^HD[-_]?(?:CC)?[-_]?({_NUMBER})$")
_SHELF_CODE = re.compile(r"^(?:SP|S(?=32))[-_]?(\d+)?$")
_KNOB_CODE = re.compile(r"^(?:KN|KNOB)(?:[-_ ].*)?$")

# Literal keywords, checked in order once the structured forms fail
_HOLE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("HINGE", "hinge"),
    ("SHELF", "shelf_pins"),
    ("CAM", "cam_lock"),
    ("KNOB", "knob"),
)


def parse_hole_code(notation: str) -> Optional[HoleShortcode]:
    """Hole notation → pattern kind plus any numbers it carries. Never geometry."""
    code = normalize_notation(notation)
    if not code:
        return None

    match = _HINGE_CODE.match(code)
    if match:
        count = int(match.group(1))
        if count <= 0:
            return None
        offset = float(match.group(2)) if match.group(2) else None
        return HoleShortcode(kind="hinge", count=count, offset_mm=offset)

    match = _HANDLE_CODE.match(code)
    if match:
        centers = float(match.group(1))
        return HoleShortcode(kind="handle", centers_mm=centers) if centers > 0 else None

    match = _SHELF_CODE.match(code)
    if match:
        spacing = float(match.group(1)) if match.group(1) else None
        return HoleShortcode(kind="shelf_pins", spacing_mm=spacing or None)

    if _KNOB_CODE.match(code):
        return HoleShortcode(kind="knob")

    for keyword, kind in _HOLE_KEYWORDS:
        if keyword in code:
            return HoleShortcode(kind=kind)
    return None


# ── CNC ────────────────────────────────────────────────────────────────────────

_CNC_PREFIXES: dict[str, str] = {
    "CUTOUT": "cutout",
    "RADIUS": "radius",
    "RAD": "radius",
    "POCKET": "pocket",
    "PKT": "pocket",
    "CHAMFER": "chamfer",
    "CHAM": "chamfer",
    "REBATE": "rebate",
    "RBT": "rebate",
}
_CNC_CODE = re.compile(
    r"^(CUTOUT|RADIUS|RAD|POCKET|PKT|CHAMFER|CHAM|REBATE|RBT)"
    rf"(?:[-_ ]+(.+)|({_NUMBER}))?$"
)
_CNC_SHORT_RADIUS = re.compile(rf"^R({_NUMBER})$")
_CNC_VALUE = re.compile(rf"^({_NUMBER})(?:MM)?$")


def parse_cnc_code(notation: str) -> Optional[CncShortcode]:
    """Keyword-prefixed CNC code → operation type plus captured number or purpose."""
    code = normalize_notation(notation)
    match = _CNC_SHORT_RADIUS.match(code)
    if match:
        value = float(match.group(1))
        return CncShortcode(op_type="radius", value_mm=value) if value > 0 else None

    match = _CNC_CODE.match(code)
    if not match:
        return None
    prefix, rest, number = match.groups()
    op_type = _CNC_PREFIXES[prefix]
    if number is not None:
        value = float(number)
        return CncShortcode(op_type=op_type, value_mm=value) if value > 0 else None
    if not rest:
        return CncShortcode(op_type=op_type)

    value_match = _CNC_VALUE.match(rest)
    if value_match:
        value = float(value_match.group(1))
        return CncShortcode(op_type=op_type, value_mm=value) if value > 0 else None
    return CncShortcode(op_type=op_type, purpose=rest.lower().replace(" ", "_"))


_PARSERS = {
    OperationCategory.EDGEBAND: parse_edge_code,
    OperationCategory.GROOVE: parse_groove_code,
    OperationCategory.DRILLING: parse_hole_code,
    OperationCategory.CNC: parse_cnc_code,
}


def parse_shortcode(category: OperationCategory, notation: str) -> Optional[ShortcodeResult]:
    """Dispatch to the parser for ``category``."""
    return _PARSERS[OperationCategory(category)](notation)


# ── @ parameter overrides ──────────────────────────────────────────────────────

_OVERRIDE_BARE = re.compile(rf"^({_NUMBER})$")
_OVERRIDE_NAMED = re.compile(rf"([A-Z]+)({_NUMBER})")

_OVERRIDE_KEYS: dict[str, str] = {
    "D": "depth", "DEPTH": "depth",
    "W": "width", "WIDTH": "width",
    "O": "offset", "OFF": "offset", "OFFSET": "offset",
    "DIA": "diameter", "DIAMETER": "diameter",
    "CC": "centers", "CENTERS": "centers",
    "C": "count", "COUNT": "count",
    "T": "thickness", "THICKNESS": "thickness",
    "R": "radius", "RADIUS": "radius",
}


def split_overrides(raw: Optional[str]) -> tuple[str, dict[str, float]]:
    """
    Split ``CODE@overrides`` into the base code and positive numeric overrides.

    ``GL-4-10@d6w5`` → ("GL-4-10", {"depth": 6.0, "width": 5.0})
    ``2L2W@10``      → ("2L2W", {"value": 10.0})
    Unknown or non-positive override tokens are dropped.
    """
    text = raw or ""
    if "@" not in text:
        return text, {}
    base, _, tail = text.partition("@")
    tail = normalize_notation(tail).replace(" ", "")

    overrides: dict[str, float] = {}
    bare = _OVERRIDE_BARE.match(tail)
    if bare:
        value = float(bare.group(1))
        if value > 0:
            overrides["value"] = value
        return base, overrides

    for prefix, number in _OVERRIDE_NAMED.findall(tail):
        key = _OVERRIDE_KEYS.get(prefix)
        value = float(number)
        if key and value > 0:
            overrides[key] = value
    return base, overrides
