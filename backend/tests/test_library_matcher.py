"""
test_library_matcher.py — Unit tests for LibraryMatcher.

Tests cover:
  - precedence: code → name → keyword → dimensions → embedded dimensions
  - groove tolerance matching and its tie-breaks (worst axis, org first, creation order)
  - keyword inference tables and embedded dimension extraction
  - invalid input: non-positive dimensions
  - edgeband profiles: exact code only

Matchers are built over hand-made LibrarySnapshots or the seeded system
library; no storage is touched during matching.
"""

import asyncio
import pytest

from panelops.errors import InvalidNotationShape
from panelops.models.library import LibraryEntry
from panelops.models.operations import ALL_EDGES, EdgebandOperation, GrooveOperation, OperationCategory
from panelops.services.library_cache import LibrarySnapshot
from panelops.services.library_matcher import (
    GrooveDimensions,
    LibraryMatcher,
    extract_dimensions,
    infer_kind,
)

G = OperationCategory.GROOVE
D = OperationCategory.DRILLING
C = OperationCategory.CNC


def _groove(entry_id, code, width, depth, organization_id=None):
    return LibraryEntry(
        id=entry_id,
        organization_id=organization_id,
        kind="custom",
        operation=GrooveOperation(code=code, name=f"Profile {code}", width_mm=width, depth_mm=depth, offset_mm=10),
    )


def _snapshot(*entries):
    return LibrarySnapshot(organization_id="org-a", entries={G: tuple(entries)})


@pytest.fixture
def system_matcher(library):
    """Matcher over the seeded system defaults only."""
    return LibraryMatcher(asyncio.run(library.snapshot(None)))


# ===========================================================================
# Class 1: Precedence
# ===========================================================================

class TestMatchPrecedence:

    def test_exact_code_case_insensitive(self, system_matcher):
        found = system_matcher.find(G, "gl-6-10")
        assert found.entry.code == "GL-6-10"
        assert found.strategy == "code"

    def test_name_containment(self, system_matcher):
        found = system_matcher.find(G, "back panel 6mm")
        assert found.entry.code == "GL-6-10"
        assert found.strategy == "name"

    def test_short_input_skips_name_containment(self, system_matcher):
        """'BA' is inside 'BACK PANEL 4MM' but is too short to count as a name hit."""
        assert system_matcher.match(G, "BA") is None

    def test_keyword_picks_first_entry_of_kind(self, system_matcher):
        found = system_matcher.find(G, "BACK GROOVE")
        assert found.entry.code == "GL-4-10"
        assert found.strategy == "keyword"

    def test_keyword_for_drilling_and_cnc(self, system_matcher):
        assert system_matcher.match(D, "PULL HANDLE").code == "HD-CC96"
        assert system_matcher.match(C, "ROUNDED CORNERS").code == "RADIUS-25"

    def test_embedded_dimensions_exact(self, system_matcher):
        found = system_matcher.find(G, "NUT 6X10")
        assert found.entry.code == "GL-6-10"
        assert found.strategy == "dimensions"

    def test_trailing_pair_wins_over_leading_digits(self, system_matcher):
        """G-ALL-4-10 and GL1-4-10 both read as 4x10."""
        assert system_matcher.match(G, "G-ALL-4-10").code == "GL-4-10"
        assert system_matcher.match(G, "GL1-4-10").code == "GL-4-10"

    def test_find_kind(self, system_matcher):
        found = system_matcher.find_kind(D, "hinge")
        assert found.entry.code == "H2-110"
        assert found.strategy == "kind"
        assert system_matcher.find_kind(D, "dowel") is None

    def test_edgeband_without_profiles_never_matches(self, system_matcher):
        assert system_matcher.match(OperationCategory.EDGEBAND, "2L2W") is None

    def test_edgeband_profile_by_exact_code_only(self):
        profile = LibraryEntry(
            id=1,
            organization_id="org-a",
            kind="edgeband",
            operation=EdgebandOperation(code="ABS-WHITE", name="White ABS", edges=ALL_EDGES),
        )
        matcher = LibraryMatcher(LibrarySnapshot("org-a", {OperationCategory.EDGEBAND: (profile,)}))
        assert matcher.find(OperationCategory.EDGEBAND, "abs-white").strategy == "code"
        assert matcher.match(OperationCategory.EDGEBAND, "WHITE ABS") is None

    def test_find_kind_with_accept(self, system_matcher):
        found = system_matcher.find_kind(D, "hinge", accept=lambda entry: len(entry.operation.holes) == 3)
        assert found.entry.code == "H3-100"
        assert system_matcher.find_kind(D, "hinge", accept=lambda entry: False) is None

    def test_blank_input(self, system_matcher):
        assert system_matcher.match(G, "   ") is None


# ===========================================================================
# Class 2: Groove dimensions and tolerance
# ===========================================================================

class TestGrooveDimensions:

    def test_within_tolerance_matches_nearest(self, system_matcher):
        found = system_matcher.find(G, GrooveDimensions(4.4, 10))
        assert found.entry.code == "GL-4-10"
        assert found.strategy == "tolerance"

    def test_exact_dimensions(self, system_matcher):
        found = system_matcher.find(G, GrooveDimensions(18, 12))
        assert found.entry.code == "LIGHT-18X12"
        assert found.strategy == "dimensions"

    def test_equidistant_outside_tolerance_is_no_match(self):
        """{5, 10} is 1.0 mm from both (4, 10) and (6, 10): beyond ±0.5, nothing matches."""
        matcher = LibraryMatcher(_snapshot(_groove(1, "A", 4, 10, "org-a"), _groove(2, "B", 6, 10, "org-a")))
        assert matcher.match(G, GrooveDimensions(5, 10)) is None

    def test_tie_within_tolerance_goes_to_first_created(self):
        matcher = LibraryMatcher(_snapshot(_groove(1, "A", 4, 10, "org-a"), _groove(2, "B", 5, 10, "org-a")))
        assert matcher.match(G, GrooveDimensions(4.5, 10)).code == "A"

    def test_smaller_worst_axis_deviation_wins(self):
        matcher = LibraryMatcher(_snapshot(
            _groove(1, "A", 4.4, 10.4, "org-a"),   # worst axis 0.4
            _groove(2, "B", 4.3, 10.0, "org-a"),   # worst axis 0.3
        ))
        assert matcher.match(G, GrooveDimensions(4, 10)).code == "B"

    def test_org_entry_beats_system_on_equal_deviation(self):
        matcher = LibraryMatcher(_snapshot(
            _groove(1, "SYS", 4.2, 10, None),
            _groove(9, "MINE", 3.8, 10, "org-a"),
        ))
        assert matcher.match(G, GrooveDimensions(4, 10)).code == "MINE"

    def test_dimensions_only_apply_to_grooves(self, system_matcher):
        assert system_matcher.match(C, GrooveDimensions(4, 10)) is None

    @pytest.mark.parametrize("width, depth", [(0, 10), (4, 0), (-1, 10)])
    def test_non_positive_dimensions_rejected(self, width, depth):
        with pytest.raises(InvalidNotationShape):
            GrooveDimensions(width, depth)


# ===========================================================================
# Class 3: Helpers
# ===========================================================================

class TestHelpers:

    @pytest.mark.parametrize("category, notation, kind", [
        (D, "H2-CUSTOM", "hinge"),
        (D, "SHELF PIN", "shelf_pins"),
        (D, "PULL HANDLE", "handle"),
        (D, "CAM FITTING", "cam_lock"),
        (G, "LED STRIP", "light_profile"),
        (G, "GLASS INSERT", "glass_panel"),
        (C, "HOB", "cutout"),
        (C, "CHAMFER EDGE", "chamfer"),
    ])
    def test_infer_kind(self, category, notation, kind):
        assert infer_kind(category, notation) == kind

    def test_infer_kind_unknown(self):
        assert infer_kind(G, "WHATEVER") is None
        assert infer_kind(OperationCategory.EDGEBAND, "BACK") is None

    def test_extract_dimensions(self):
        assert extract_dimensions("groove 4 x 10") == GrooveDimensions(4.0, 10.0)
        assert extract_dimensions("G-0-10") is None
        assert extract_dimensions("BACK") is None
