"""
test_operations_library.py — Scoping rules of the OperationsLibrary.

Tests cover:
  - system defaults seeding (idempotent, read-only)
  - organization entries shadowing system entries by code
  - create / update / delete restricted to organization scope, edgeband profiles included
  - duplicate codes, inactive entries, cross-organization isolation
  - usage counting (org entries only; concurrent increments are exact)
  - operation types: shadowing, ordering, immutability

Backed by the in-memory store.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from panelops.errors import DuplicateCodeError, EntryNotFound, ImmutableDefaultError, InvalidNotationShape
from panelops.models.library import OperationTypeDef
from panelops.models.operations import ALL_EDGES, OperationCategory

E = OperationCategory.EDGEBAND
G = OperationCategory.GROOVE
D = OperationCategory.DRILLING


def _run(coro):
    return asyncio.run(coro)


# ===========================================================================
# Class 1: Seeding and reads
# ===========================================================================

class TestSystemDefaults:

    def test_seeding_is_idempotent(self, library):
        assert _run(library.seed_system_defaults()) == 0

    def test_system_entries_visible_to_any_organization(self, library):
        codes = [e.code for e in _run(library.list_entries(G, "org-a"))]
        assert codes[:2] == ["GL-4-10", "GL-6-10"]
        assert all(e.is_system for e in _run(library.list_entries(G, "org-b")))

    def test_filter_by_kind(self, library):
        hinges = _run(library.list_entries(D, "org-a", kind="hinge"))
        assert [e.code for e in hinges] == ["H2-110", "H3-100"]

    def test_edgeband_has_no_system_profiles(self, library):
        assert _run(library.list_entries(E, "org-a")) == []

    def test_find_by_code_is_case_insensitive(self, library):
        assert _run(library.find_by_code(D, "org-a", "hd-cc128")).name == "Handle 128mm Centers"
        assert _run(library.find_by_code(D, "org-a", "NOPE")) is None


# ===========================================================================
# Class 2: Organization scope
# ===========================================================================

class TestOrganizationEntries:

    def test_org_entry_shadows_system_entry(self, library, groove_entry):
        _run(library.create("org-a", groove_entry("GL-4-10", 4, 12, name="Our back panel")))
        mine = _run(library.find_by_code(G, "org-a", "GL-4-10"))
        assert mine.organization_id == "org-a"
        assert mine.operation.depth_mm == 12
        codes = [e.code for e in _run(library.list_entries(G, "org-a"))]
        assert codes.count("GL-4-10") == 1
        # Other organizations still see the system entry
        assert _run(library.find_by_code(G, "org-b", "GL-4-10")).is_system

    def test_edgeband_profile_lifecycle(self, library, edgeband_entry):
        created = _run(library.create("org-a", edgeband_entry("abs-white", material_id="ABS-WHITE")))
        assert created.code == "ABS-WHITE"
        assert created.kind == "edgeband"
        assert [e.code for e in _run(library.list_entries(E, "org-a"))] == ["ABS-WHITE"]
        assert _run(library.list_entries(E, "org-b")) == []

        updated = _run(library.update("org-a", created.id, {"thickness_mm": 2.0}))
        assert updated.operation.thickness_mm == 2.0
        assert updated.operation.edges == ALL_EDGES
        assert updated.operation.material_id == "ABS-WHITE"

        with pytest.raises(DuplicateCodeError):
            _run(library.create("org-a", edgeband_entry("ABS-WHITE")))

    def test_create_uppercases_code_and_resets_usage(self, library, groove_entry):
        entry = groove_entry("my-5-10", 5, 10).model_copy(update={"usage_count": 42})
        created = _run(library.create("org-a", entry))
        assert created.code == "MY-5-10"
        assert created.usage_count == 0
        assert created.id is not None

    def test_duplicate_code_rejected(self, library, groove_entry):
        _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        with pytest.raises(DuplicateCodeError):
            _run(library.create("org-a", groove_entry("my-5-10", 6, 10)))
        # Same code in another organization is fine
        _run(library.create("org-b", groove_entry("MY-5-10", 5, 10)))

    def test_system_scope_is_immutable(self, library, groove_entry):
        with pytest.raises(ImmutableDefaultError):
            _run(library.create(None, groove_entry("X-1-1", 1, 1)))
        system_entry = _run(library.find_by_code(G, "org-a", "GL-4-10"))
        with pytest.raises(ImmutableDefaultError):
            _run(library.update("org-a", system_entry.id, {"name": "Hijacked"}))
        with pytest.raises(ImmutableDefaultError):
            _run(library.delete("org-a", system_entry.id))

    def test_update_entry_and_operation_fields(self, library, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        updated = _run(library.update("org-a", created.id, {"depth_mm": 8, "description": "shallow", "code": "my-5-8"}))
        assert updated.operation.depth_mm == 8
        assert updated.description == "shallow"
        assert updated.code == "MY-5-8"
        assert _run(library.find_by_code(G, "org-a", "MY-5-8")).operation.depth_mm == 8

    def test_update_rejects_invalid_geometry(self, library, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        with pytest.raises(InvalidNotationShape):
            _run(library.update("org-a", created.id, {"width_mm": 0}))

    def test_other_organizations_entries_are_invisible(self, library, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        with pytest.raises(EntryNotFound):
            _run(library.get_entry("org-b", created.id))
        with pytest.raises(EntryNotFound):
            _run(library.update("org-b", created.id, {"name": "Mine now"}))

    def test_inactive_entry_is_hidden_and_does_not_shadow(self, library, groove_entry):
        created = _run(library.create("org-a", groove_entry("GL-4-10", 4, 12)))
        _run(library.update("org-a", created.id, {"is_active": False}))
        found = _run(library.find_by_code(G, "org-a", "GL-4-10"))
        assert found.is_system
        # Still reachable by id for editing
        assert _run(library.get_entry("org-a", created.id)).is_active is False

    def test_delete(self, library, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        _run(library.delete("org-a", created.id))
        assert _run(library.find_by_code(G, "org-a", "MY-5-10")) is None
        with pytest.raises(EntryNotFound):
            _run(library.delete("org-a", created.id))


# ===========================================================================
# Class 3: Usage counting
# ===========================================================================

class TestIncrementUsage:

    def test_org_entry_counted(self, library, store, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        assert _run(library.increment_usage(created.id)) is True
        assert _run(store.get_entry(created.id)).usage_count == 1

    def test_system_entry_is_never_mutated(self, library, store):
        system_entry = _run(library.find_by_code(G, "org-a", "GL-4-10"))
        assert _run(library.increment_usage(system_entry.id)) is False
        assert _run(store.get_entry(system_entry.id)).usage_count == 0

    def test_unknown_entry(self, library):
        assert _run(library.increment_usage(999_999)) is False

    def test_concurrent_increments_are_exact(self, library, store, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        n = 200
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: _run(library.increment_usage(created.id)), range(n)))
        assert all(results)
        assert _run(store.get_entry(created.id)).usage_count == n

    def test_stale_write_keeps_stored_usage_count(self, library, store, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        _run(library.increment_usage(created.id))
        _run(library.increment_usage(created.id))
        # Written back from the copy taken before the increments
        stored = _run(store.replace_entry(created.model_copy(update={"kind": "drawer_bottom"})))
        assert stored.usage_count == 2
        assert stored.kind == "drawer_bottom"
        assert _run(store.get_entry(created.id)).usage_count == 2

    def test_update_never_touches_usage_count(self, library, store, groove_entry):
        created = _run(library.create("org-a", groove_entry("MY-5-10", 5, 10)))
        _run(library.increment_usage(created.id))
        _run(library.update("org-a", created.id, {"usage_count": 0, "name": "Renamed"}))
        assert _run(store.get_entry(created.id)).usage_count == 1


# ===========================================================================
# Class 4: Operation types
# ===========================================================================

class TestOperationTypes:

    def test_system_types_ordered_by_display_order(self, library):
        codes = [t.code for t in _run(library.list_types(G, "org-a"))]
        assert codes[0] == "back_panel"
        assert "custom" in codes

    def test_org_type_shadows_system_type(self, library):
        _run(library.create_type("org-a", OperationTypeDef(
            category=G, code="Back_Panel", name="Rückwand", display_order=0,
        )))
        back = _run(library.find_type(G, "org-a", "BACK_PANEL"))
        assert back.name == "Rückwand"
        assert back.organization_id == "org-a"
        assert _run(library.find_type(G, "org-b", "back_panel")).is_system
        assert [t.code for t in _run(library.list_types(G, "org-a"))].count("back_panel") == 1

    def test_duplicate_type_code(self, library):
        _run(library.create_type("org-a", OperationTypeDef(category=D, code="euro_hinge", name="Euro hinge")))
        with pytest.raises(DuplicateCodeError):
            _run(library.create_type("org-a", OperationTypeDef(category=D, code="EURO_HINGE", name="Again")))

    def test_system_types_are_immutable(self, library):
        system_type = _run(library.find_type(D, "org-a", "hinge"))
        with pytest.raises(ImmutableDefaultError):
            _run(library.update_type("org-a", system_type.id, {"name": "Changed"}))
        with pytest.raises(ImmutableDefaultError):
            _run(library.delete_type("org-a", system_type.id))
        with pytest.raises(ImmutableDefaultError):
            _run(library.create_type(None, OperationTypeDef(category=D, code="x", name="X")))

    def test_update_and_delete_org_type(self, library):
        created = _run(library.create_type("org-a", OperationTypeDef(category=D, code="euro_hinge", name="Euro hinge")))
        updated = _run(library.update_type("org-a", created.id, {"name": "Euro Hinge", "is_active": False}))
        assert updated.name == "Euro Hinge"
        assert _run(library.find_type(D, "org-a", "euro_hinge")) is None
        _run(library.delete_type("org-a", created.id))
        with pytest.raises(EntryNotFound):
            _run(library.delete_type("org-a", created.id))
