"""
Library Matcher — finds the library entry a notation (or a groove's numeric
dimensions) refers to.

Precedence, first success wins (edgeband profiles stop after step 1):
  1. code       exact, case-insensitive code equality
  2. name       normalized input contains the entry name or vice versa
  3. keyword    fixed keyword → kind table per category, first entry of that kind
  4. dimensions groove only: exact width/depth, else nearest within ±0.5 mm
  5. embedded   string carrying ``WxD`` dimensions retries step 4

Tolerance tie-break: smallest worst-axis deviation, then organization
entries before system entries, then creation order. Two entries equally far
from the input on the worst axis are a tie only if the deviation is within
tolerance, e.g. {5, 10} against (4, 10) and (6, 10) is 1.0 mm from both and
matches nothing.

The matcher is pure: it searches a LibrarySnapshot and never touches storage.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Union

from panelops.config import GROOVE_TOLERANCE_MM, NAME_MATCH_MIN_LENGTH
from panelops.errors import InvalidNotationShape
from panelops.models.library import LibraryEntry
from panelops.models.operations import OperationCategory
from panelops.services.library_cache import LibrarySnapshot
from panelops.services.shortcode_parser import normalize_notation

_FLOAT_SLACK = 1e-9


@dataclass(frozen=True)
class GrooveDimensions:
    width_mm: float
    depth_mm: float

    def __post_init__(self):
        if self.width_mm <= 0 or self.depth_mm <= 0:
            raise InvalidNotationShape(
                f"Groove dimensions must be positive, got {self.width_mm}x{self.depth_mm}"
            )


@dataclass(frozen=True)
class LibraryMatch:
    entry: LibraryEntry
    # code | name | keyword | kind | dimensions | tolerance
    strategy: str


MatchInput = Union[str, GrooveDimensions]


# ── Keyword inference tables (order matters: first hit wins) ──────────────────

_KEYWORD_TABLES: dict[OperationCategory, tuple[tuple[re.Pattern, str], ...]] = {
    OperationCategory.DRILLING: (
        (re.compile(r"^H\d+"), "hinge"),
        (re.compile(r"SP|SHELF|32"), "shelf_pins"),
        (re.compile(r"HD|HANDLE"), "handle"),
        (re.compile(r"KN|KNOB"), "knob"),
        (re.compile(r"CAM"), "cam_lock"),
        (re.compile(r"SLIDE|DRAWER"), "drawer_slide"),
        (re.compile(r"DOWEL"), "dowel"),
    ),
    OperationCategory.GROOVE: (
        (re.compile(r"BACK"), "back_panel"),
        (re.compile(r"DRAWER|BOTTOM"), "drawer_bottom"),
        (re.compile(r"LIGHT|LED"), "light_profile"),
        (re.compile(r"GLASS"), "glass_panel"),
    ),
    OperationCategory.CNC: (
        (re.compile(r"CUTOUT|SINK|HOB"), "cutout"),
        (re.compile(r"RADIUS|ROUND"), "radius"),
        (re.compile(r"POCKET"), "pocket"),
        (re.compile(r"CHAMFER"), "chamfer"),
        (re.compile(r"REBATE"), "rebate"),
    ),
}

_NUMBER = r"\d+(?:\.\d+)?"
# Trailing pair first so "GL1-4-10" reads as 4x10, not 1x4
_TRAILING_DIMS = re.compile(rf"({_NUMBER})[X×-]({_NUMBER})$")
_EMBEDDED_DIMS = re.compile(rf"({_NUMBER})[X×-]({_NUMBER})")


def infer_kind(category: OperationCategory, notation: str) -> Optional[str]:
    """Kind/purpose implied by keywords in the notation, if any."""
    text = normalize_notation(notation)
    for pattern, kind in _KEYWORD_TABLES.get(OperationCategory(category), ()):
        if pattern.search(text):
            return kind
    return None


def extract_dimensions(notation: str) -> Optional[GrooveDimensions]:
    """Embedded ``WxD`` / ``W-D`` pair, or None if absent or not positive."""
    text = normalize_notation(notation).replace(" ", "")
    match = _TRAILING_DIMS.search(text) or _EMBEDDED_DIMS.search(text)
    if not match:
        return None
    width, depth = float(match.group(1)), float(match.group(2))
    if width <= 0 or depth <= 0:
        return None
    return GrooveDimensions(width, depth)


class LibraryMatcher:
    """
    Usage:
        matcher = LibraryMatcher(await library.snapshot(org_id))
        entry = matcher.match(OperationCategory.GROOVE, "G-ALL-4-10")
    """

    def __init__(self, snapshot: LibrarySnapshot, tolerance_mm: float = GROOVE_TOLERANCE_MM):
        self._snapshot = snapshot
        self._tolerance = tolerance_mm

    def match(self, category: OperationCategory, query: MatchInput) -> Optional[LibraryEntry]:
        found = self.find(category, query)
        return found.entry if found else None

    def find(self, category: OperationCategory, query: MatchInput) -> Optional[LibraryMatch]:
        category = OperationCategory(category)
        if isinstance(query, GrooveDimensions):
            return self._by_dimensions(category, query)

        text = normalize_notation(query)
        if not text:
            return None
        entries = self._snapshot.entries_for(category)

        for entry in entries:
            if entry.code.upper() == text:
                return LibraryMatch(entry, "code")
        # Edge sets are read by the parser; only an exact code names an edgeband profile
        if category == OperationCategory.EDGEBAND:
            return None

        if len(text) >= NAME_MATCH_MIN_LENGTH:
            for entry in entries:
                name = normalize_notation(entry.name)
                if len(name) >= NAME_MATCH_MIN_LENGTH and (name in text or text in name):
                    return LibraryMatch(entry, "name")

        kind = infer_kind(category, text)
        if kind:
            found = self.find_kind(category, kind)
            if found:
                return LibraryMatch(found.entry, "keyword")

        dimensions = extract_dimensions(text) if category == OperationCategory.GROOVE else None
        if dimensions:
            return self._by_dimensions(category, dimensions)
        return None

    def find_kind(
        self,
        category: OperationCategory,
        kind: str,
        accept: Optional[Callable[[LibraryEntry], bool]] = None,
    ) -> Optional[LibraryMatch]:
        """First active entry of ``kind`` in precedence order, restricted to those ``accept`` allows."""
        for entry in self._snapshot.entries_for(category):
            if entry.kind == kind and (accept is None or accept(entry)):
                return LibraryMatch(entry, "kind")
        return None

    def _by_dimensions(self, category: OperationCategory, dims: GrooveDimensions) -> Optional[LibraryMatch]:
        if category != OperationCategory.GROOVE:
            return None
        best: Optional[tuple[float, int, int, LibraryEntry]] = None
        for position, entry in enumerate(self._snapshot.entries_for(category)):
            operation = entry.operation
            if operation.width_mm == dims.width_mm and operation.depth_mm == dims.depth_mm:
                return LibraryMatch(entry, "dimensions")
            deviation = max(abs(operation.width_mm - dims.width_mm), abs(operation.depth_mm - dims.depth_mm))
            if deviation > self._tolerance + _FLOAT_SLACK:
                continue
            # Snapshot order is already org-before-system, then creation order
            candidate = (round(deviation, 9), 0 if entry.organization_id else 1, position, entry)
            if best is None or candidate[:3] < best[:3]:
                best = candidate
        return LibraryMatch(best[3], "tolerance") if best else None
