"""
test_sql_store.py — SqlAlchemyOperationsStore against a temporary SQLite file
(aiosqlite driver).

Each test runs one scenario inside a single event loop: the async engine is
created, tables are built with init_db(engine), and the engine is disposed
at the end.
"""

import asyncio

import pytest

from panelops.db import build_engine, init_db
from panelops.db.sql_store import SqlAlchemyOperationsStore
from panelops.errors import StorageFailure
from panelops.models.operations import OperationCategory
from panelops.services.dialect_resolver import DialectResolver
from panelops.services.learning_writer import LearningWriter
from panelops.services.operations_library import OperationsLibrary
from panelops.services.resolution_pipeline import ResolutionPipeline

G = OperationCategory.GROOVE
E = OperationCategory.EDGEBAND
ORG = "org-a"


@pytest.fixture
def run_with_store(tmp_path):
    """run_with_store(scenario) → awaits scenario(store) on a fresh SQLite database."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'operations.db'}"

    def _run(scenario):
        async def main():
            engine = build_engine(url)
            try:
                await init_db(engine)
                return await scenario(SqlAlchemyOperationsStore(engine))
            finally:
                await engine.dispose()
        return asyncio.run(main())
    return _run


class TestLibraryEntries:

    def test_seed_and_list(self, run_with_store):
        async def scenario(store):
            library = OperationsLibrary(store)
            first = await library.seed_system_defaults()
            second = await library.seed_system_defaults()
            grooves = await library.list_entries(G, ORG)
            return first, second, grooves

        first, second, grooves = run_with_store(scenario)
        assert first > 0
        assert second == 0
        assert [e.code for e in grooves][:3] == ["GL-4-10", "GL-6-10", "GW-4-10"]
        assert grooves[0].operation.width_mm == 4

    def test_create_shadow_update_delete(self, run_with_store, groove_entry):
        async def scenario(store):
            library = OperationsLibrary(store)
            await library.seed_system_defaults()
            created = await library.create(ORG, groove_entry("GL-4-10", 4, 12))
            shadowed = await library.find_by_code(G, ORG, "GL-4-10")
            updated = await library.update(ORG, created.id, {"depth_mm": 9})
            await library.delete(ORG, created.id)
            after_delete = await library.find_by_code(G, ORG, "GL-4-10")
            return created, shadowed, updated, after_delete

        created, shadowed, updated, after_delete = run_with_store(scenario)
        assert shadowed.id == created.id
        assert updated.operation.depth_mm == 9
        assert after_delete.is_system

    def test_duplicate_insert_is_a_storage_failure(self, run_with_store, groove_entry):
        entry = groove_entry("MY-5-10", 5, 10).model_copy(update={"organization_id": ORG})

        async def scenario(store):
            await store.insert_entry(entry)
            await store.insert_entry(entry)

        with pytest.raises(StorageFailure):
            run_with_store(scenario)


class TestIncrementUsage:

    def test_concurrent_increments_are_exact(self, run_with_store, groove_entry):
        n = 20

        async def scenario(store):
            library = OperationsLibrary(store)
            created = await library.create(ORG, groove_entry("MY-5-10", 5, 10))
            results = await asyncio.gather(*(library.increment_usage(created.id) for _ in range(n)))
            return results, (await store.get_entry(created.id)).usage_count

        results, count = run_with_store(scenario)
        assert all(results)
        assert count == n

    def test_update_keeps_usage_count(self, run_with_store, groove_entry):
        async def scenario(store):
            library = OperationsLibrary(store)
            created = await library.create(ORG, groove_entry("MY-5-10", 5, 10))
            await library.increment_usage(created.id)
            await library.increment_usage(created.id)
            # Written back from the copy taken before the increments
            stored = await store.replace_entry(created.model_copy(update={"kind": "drawer_bottom"}))
            return stored.kind, stored.usage_count

        assert run_with_store(scenario) == ("drawer_bottom", 2)

    def test_system_entries_not_counted(self, run_with_store):
        async def scenario(store):
            library = OperationsLibrary(store)
            await library.seed_system_defaults()
            system_entry = await library.find_by_code(G, ORG, "GL-4-10")
            counted = await library.increment_usage(system_entry.id)
            return counted, (await store.get_entry(system_entry.id)).usage_count

        assert run_with_store(scenario) == (False, 0)


class TestDialects:

    def test_alias_upsert_overwrites(self, run_with_store):
        async def scenario(store):
            dialects = DialectResolver(store)
            await dialects.add_alias(ORG, G, "BACK4", "GL-4-10")
            await dialects.add_alias(ORG, G, "back4", "GL-6-10")
            return await dialects.get_config(ORG)

        config = run_with_store(scenario)
        assert config.aliases_for(G) == {"BACK4": "GL-6-10"}

    def test_flags_and_aliases_are_independent(self, run_with_store):
        async def scenario(store):
            dialects = DialectResolver(store)
            unknown = await store.get_dialect("nobody")
            await dialects.add_alias(ORG, E, "ALLEDGE", "2L2W")
            await dialects.update_flags(ORG, use_ai_fallback=False)
            config = await dialects.get_config(ORG)
            removed = await dialects.remove_alias(ORG, E, "ALLEDGE")
            return unknown, config, removed, await dialects.get_config(ORG)

        unknown, config, removed, after = run_with_store(scenario)
        assert unknown is None
        assert config.use_ai_fallback is False
        assert config.auto_learn is True
        assert config.aliases_for(E) == {"ALLEDGE": "2L2W"}
        assert removed is True
        assert after.aliases_for(E) == {}
        assert after.use_ai_fallback is False


class TestPipelineOverSql:

    def test_learning_round_trip(self, run_with_store):
        async def scenario(store):
            library = OperationsLibrary(store)
            dialects = DialectResolver(store)
            await library.seed_system_defaults()
            pipeline = ResolutionPipeline(library, dialects)
            writer = LearningWriter(dialects, library)

            first = await pipeline.resolve_operation(ORG, G, "G-ALL-4-10")
            await writer.apply(first.learning_events)
            second = await pipeline.resolve_operation(ORG, G, "G-ALL-4-10")
            return first, second

        first, second = run_with_store(scenario)
        assert first.result.canonical_code == "GL-4-10"
        assert first.result.source.value == "library"
        assert second.result.source.value == "alias"
