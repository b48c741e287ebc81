"""
conftest.py — Shared pytest fixtures for the panelops backend test suite.

Every fixture here is backed by the in-memory store; tests that need the
SQLAlchemy store build their own aiosqlite engine (see test_sql_store.py).
Async services are driven with ``asyncio.run`` inside each test.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``panelops.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import asyncio
import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any panelops imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

# Keep litellm from spawning a background network fetch of its model cost map
# at import time (it can deadlock test collection when offline).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")


# ---------------------------------------------------------------------------
# Store / library / dialect fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    """Empty in-memory store (no system defaults)."""
    from panelops.db.memory_store import InMemoryOperationsStore
    return InMemoryOperationsStore()


@pytest.fixture
def library(store):
    """
    OperationsLibrary over ``store`` with the system defaults seeded.

    Seed order: GL-4-10, GL-6-10, GW-4-10, DRAWER-4X8, LIGHT-18X12,
    GLASS-4X12, H2-110, H3-100, SP-32, HD-CC96, HD-CC128, KN-CTR, CAM-STD,
    CUTOUT-SINK, CUTOUT-HOB, RADIUS-25, RADIUS-10, POCKET-HINGE,
    CHAMFER-45-3, REBATE-18X10.
    """
    from panelops.services.operations_library import OperationsLibrary
    lib = OperationsLibrary(store)
    asyncio.run(lib.seed_system_defaults())
    return lib


@pytest.fixture
def dialects(store):
    """DialectResolver with the system default alias maps."""
    from panelops.services.dialect_resolver import DialectResolver
    return DialectResolver(store)


@pytest.fixture
def pipeline(library, dialects):
    """ResolutionPipeline without an AI interpreter."""
    from panelops.services.resolution_pipeline import ResolutionPipeline
    return ResolutionPipeline(library, dialects)


@pytest.fixture
def writer(library, dialects):
    """LearningWriter applying events to the same store."""
    from panelops.services.learning_writer import LearningWriter
    return LearningWriter(dialects, library)


# ---------------------------------------------------------------------------
# Shared sample data
# ---------------------------------------------------------------------------

@pytest.fixture
def groove_entry():
    """Factory for organization groove profiles: groove_entry("MY-4-10", 4, 10)."""
    from panelops.models.library import LibraryEntry
    from panelops.models.operations import GrooveOperation

    def _make(code, width, depth, offset=10.0, name=None, kind="back_panel"):
        return LibraryEntry(
            kind=kind,
            operation=GrooveOperation(
                code=code,
                name=name or f"Groove {code}",
                width_mm=width,
                depth_mm=depth,
                offset_mm=offset,
            ),
        )
    return _make


@pytest.fixture
def edgeband_entry():
    """Factory for organization edgeband profiles: edgeband_entry("ABS-WHITE", ["L1", "L2"])."""
    from panelops.models.library import LibraryEntry
    from panelops.models.operations import EdgebandOperation

    def _make(code, edges=("L1", "L2", "W1", "W2"), thickness=1.0, material_id=None, name=None):
        return LibraryEntry(
            kind="edgeband",
            operation=EdgebandOperation(
                code=code,
                name=name or f"Edgeband {code}",
                edges=frozenset(edges),
                thickness_mm=thickness,
                material_id=material_id,
            ),
        )
    return _make


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
