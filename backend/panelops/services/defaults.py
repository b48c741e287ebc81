"""
System defaults — operation types, library entries and dialect aliases shared
read-only by every organization.

Seeded with ``organization_id = None``; organizations shadow any of these by
creating an entry or type with the same code in their own scope.
"""
from __future__ import annotations

from panelops.models.library import LibraryEntry, OperationTypeDef
from panelops.models.operations import (
    CncOperation,
    DrillingOperation,
    GrooveOperation,
    HoleDefinition,
    OperationCategory,
)

_G = OperationCategory.GROOVE
_D = OperationCategory.DRILLING
_C = OperationCategory.CNC
_E = OperationCategory.EDGEBAND


# ── Operation types (dropdown options) ─────────────────────────────────────────

_TYPE_ROWS: list[tuple[OperationCategory, str, str, str]] = [
    (_G, "back_panel", "Back Panel", "Groove for back panel insertion"),
    (_G, "drawer_bottom", "Drawer Bottom", "Groove for drawer bottom panel"),
    (_G, "divider", "Divider", "Groove for shelf or divider"),
    (_G, "light_channel", "Light Channel", "Groove for LED strip"),
    (_G, "glass_panel", "Glass Panel", "Groove for glass insert"),
    (_G, "custom", "Custom", "Custom groove"),
    (_D, "hinge", "Hinge Boring", "Cup hinge boring (35mm)"),
    (_D, "shelf_pins", "Shelf Pins", "Shelf support pin holes"),
    (_D, "handle", "Handle", "Handle mounting holes"),
    (_D, "knob", "Knob", "Knob mounting hole"),
    (_D, "drawer_slide", "Drawer Slide", "Drawer runner mounting holes"),
    (_D, "cam_lock", "Cam Lock", "Cam lock fitting holes"),
    (_D, "dowel", "Dowel", "Dowel holes for joinery"),
    (_D, "system32", "System 32", "32mm system holes"),
    (_D, "custom", "Custom", "Custom drilling pattern"),
    (_C, "pocket", "Pocket", "Pocket routing"),
    (_C, "cutout", "Cutout", "Through cutout (sink, hob...)"),
    (_C, "chamfer", "Chamfer", "Edge chamfer"),
    (_C, "radius", "Corner Radius", "Rounded corners"),
    (_C, "rebate", "Rebate", "Edge rebate"),
    (_C, "contour", "Contour", "Custom contour path"),
    (_C, "text", "Text Engraving", "Text or logo engraving"),
    (_C, "custom", "Custom", "Custom CNC program"),
]


def system_operation_types() -> list[OperationTypeDef]:
    types = []
    order: dict[OperationCategory, int] = {}
    for category, code, name, description in _TYPE_ROWS:
        order[category] = order.get(category, 0) + 1
        types.append(OperationTypeDef(
            category=category,
            code=code,
            name=name,
            description=description,
            display_order=order[category],
        ))
    return types


# ── Edge code display names ────────────────────────────────────────────────────

EDGE_CODE_NAMES: dict[str, str] = {
    "2L2W": "All Edges",
    "2L": "Both Long Edges",
    "2W": "Both Width Edges",
    "L1": "Long 1",
    "L2": "Long 2",
    "W1": "Width 1",
    "W2": "Width 2",
    "2LW": "2 Long + 1 Width",
    "L2W": "1 Long + 2 Width",
    "NONE": "No Edgebanding",
}


# ── Library entries ────────────────────────────────────────────────────────────

# Geometry a bare hinge, pocket or chamfer shortcode implies (H3, PKT-50, CHAM-3)
HINGE_OFFSET_MM: float = 110.0
HINGE_PITCH_MM: float = 352.0
POCKET_DEPTH_MM: float = 10.0
CHAMFER_ANGLE_DEG: float = 45.0


def hinge_cup(x: float) -> HoleDefinition:
    return HoleDefinition(x_mm=x, y_mm=21.5, dia_mm=35, depth_mm=13)


def through_hole(x: float, y: float = 0.0) -> HoleDefinition:
    return HoleDefinition(x_mm=x, y_mm=y, dia_mm=5, through=True)


def _groove(code, name, kind, width, depth, offset, edge=None, description=None) -> LibraryEntry:
    return LibraryEntry(
        kind=kind,
        description=description,
        operation=GrooveOperation(
            code=code, name=name, width_mm=width, depth_mm=depth, offset_mm=offset, edge=edge,
        ),
    )


def _pattern(code, name, kind, holes, description=None, **extra) -> LibraryEntry:
    return LibraryEntry(
        kind=kind,
        description=description,
        operation=DrillingOperation(code=code, name=name, pattern_kind=kind, holes=tuple(holes), **extra),
    )


def _routing(code, name, op_type, params, description=None) -> LibraryEntry:
    return LibraryEntry(
        kind=op_type,
        description=description,
        operation=CncOperation(code=code, name=name, op_type=op_type, params=params),
    )


def system_library_entries() -> list[LibraryEntry]:
    """Seed order is creation order, which decides matcher tie-breaks."""
    return [
        # Groove profiles
        _groove("GL-4-10", "Back Panel 4mm", "back_panel", 4, 10, 10, "L1",
                "4mm groove at 10mm offset for back panel"),
        _groove("GL-6-10", "Back Panel 6mm", "back_panel", 6, 10, 10, "L1",
                "6mm groove at 10mm offset for back panel"),
        _groove("GW-4-10", "Drawer Bottom 4mm (Width)", "drawer_bottom", 4, 10, 10, "W1",
                "4mm groove on width edges for drawer bottom"),
        _groove("DRAWER-4X8", "Drawer Bottom Groove", "drawer_bottom", 4, 8, 12, None,
                "Standard 4mm groove for drawer bottoms at 12mm from edge"),
        _groove("LIGHT-18X12", "Light Profile Groove", "light_profile", 18, 12, 30, None,
                "Wide groove for LED light profiles"),
        _groove("GLASS-4X12", "Glass Panel Groove", "glass_panel", 4, 12, 15, None,
                "Standard groove for 4mm glass panels"),
        # Hole patterns
        _pattern("H2-110", "2 Hinges @ 110mm", "hinge", [hinge_cup(110), hinge_cup(-110)],
                 "2 hinge boring cups at 110mm from the ends",
                 ref_edge="L1", ref_corner="TL", hardware_brand="Blum"),
        _pattern("H3-100", "3 Hinges @ 100mm", "hinge", [hinge_cup(100), hinge_cup(0), hinge_cup(-100)],
                 "3 hinge boring cups for tall doors",
                 ref_edge="L1", ref_corner="TL", hardware_brand="Blum"),
        _pattern("SP-32", "System 32 Shelf Pins", "shelf_pins", [],
                 "32mm shelf pin column, rows expanded from part height", ref_edge="L1"),
        _pattern("HD-CC96", "Handle 96mm Centers", "handle", [through_hole(0), through_hole(96)],
                 "Two holes with 96mm center-to-center spacing", ref_edge="L1"),
        _pattern("HD-CC128", "Handle 128mm Centers", "handle", [through_hole(0), through_hole(128)],
                 "Two holes with 128mm center-to-center spacing", ref_edge="L1"),
        _pattern("KN-CTR", "Knob Center", "knob", [through_hole(0)], "Single centered hole for knob"),
        _pattern("CAM-STD", "Standard Cam Lock", "cam_lock",
                 [HoleDefinition(x_mm=37, y_mm=0, dia_mm=8, depth_mm=25),
                  HoleDefinition(x_mm=37, y_mm=34, dia_mm=15, depth_mm=13)],
                 "Cam lock with 8mm dowel and 15mm cam hole", ref_edge="W1"),
        # Routing profiles
        _routing("CUTOUT-SINK", "Sink Cutout", "cutout",
                 {"shape": "rect", "purpose": "sink", "corner_radius_mm": 25, "through": True},
                 "Rectangular cutout for undermount sink"),
        _routing("CUTOUT-HOB", "Hob Cutout", "cutout",
                 {"shape": "rect", "purpose": "hob", "corner_radius_mm": 10, "through": True},
                 "Rectangular cutout for cooktop/hob"),
        _routing("RADIUS-25", "Corner Radius 25mm", "radius", {"radius_mm": 25, "corners": "all"},
                 "Standard 25mm radius on corners"),
        _routing("RADIUS-10", "Corner Radius 10mm", "radius", {"radius_mm": 10, "corners": "all"},
                 "Small 10mm radius on corners"),
        _routing("POCKET-HINGE", "Hinge Pocket", "pocket",
                 {"depth_mm": 2, "width_mm": 48, "height_mm": 12, "through": False},
                 "Pocket for concealed hinge mounting plate"),
        _routing("CHAMFER-45-3", "45° Chamfer 3mm", "chamfer", {"angle_deg": 45, "width_mm": 3},
                 "3mm 45-degree chamfer"),
        _routing("REBATE-18X10", "Rebate 18×10", "rebate", {"width_mm": 18, "depth_mm": 10},
                 "18mm wide × 10mm deep rebate for back panels"),
    ]


# ── Dialect ────────────────────────────────────────────────────────────────────

SYSTEM_ALIASES: dict[OperationCategory, dict[str, str]] = {
    _E: {
        "4S": "2L2W",
        "4SIDES": "2L2W",
        "FULL": "2L2W",
        "COMPLETE": "2L2W",
        "XXXX": "2L2W",
        "2L2W1": "2L2W",
        "LONG": "2L",
        "LONGS": "2L",
        "LL": "2L",
        "SHORT": "2W",
        "SHORTS": "2W",
        "WW": "2W",
        "WIDTH": "2W",
        "LW": "L2W",
        "WL": "L2W",
    },
    _G: {
        "BACK": "GL-4-10",
        "BACKPANEL": "GL-4-10",
        "BACK PANEL": "GL-4-10",
        "BP": "GL-4-10",
        "4MM": "GL-4-10",
        "BOTTOM": "DRAWER-4X8",
        "BTM": "DRAWER-4X8",
    },
    _D: {
        "HINGE": "H2-110",
        "HINGES": "H2-110",
        "SHELF": "SP-32",
        "PINS": "SP-32",
        "HANDLE": "HD-CC96",
        "PULL": "HD-CC128",
        "KNOB": "KN-CTR",
    },
    _C: {
        "SINK": "CUTOUT-SINK",
        "HOB": "CUTOUT-HOB",
        "COOKTOP": "CUTOUT-HOB",
    },
}

# Spreadsheet flag cells meaning "apply" / "do not apply"
YES_VALUES: frozenset[str] = frozenset({"X", "Y", "YES", "1", "TRUE", "✓"})
NO_VALUES: frozenset[str] = frozenset({"", "N", "NO", "0", "FALSE", "-"})
