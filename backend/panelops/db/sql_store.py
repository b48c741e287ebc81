"""
SQLAlchemy-backed OperationsStore (asyncpg in production, aiosqlite in tests).

Every public call runs in its own session and transaction. Driver and
SQL errors leave this module as StorageFailure; the engine above never
catches them.
"""
from __future__ import annotations

import functools
import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from panelops.db import session_factory
from panelops.db.store import OperationsStore
from panelops.errors import StorageFailure
from panelops.models.library import DialectConfig, LibraryEntry, OperationTypeDef
from panelops.models.operations import LIBRARY_OPERATION, OperationCategory
from panelops.models.orm_models import (
    DialectAlias,
    LibraryEntryRecord,
    OperationTypeRecord,
    ServiceDialect,
)

logger = logging.getLogger("panelops-db")


def _storage_call(method):
    """Re-raise SQLAlchemy errors as StorageFailure."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error(f"Store operation {method.__name__} failed: {exc}")
            raise StorageFailure(f"{method.__name__} failed: {exc}") from exc
    return wrapper


def _entry_from_record(record: LibraryEntryRecord) -> LibraryEntry:
    return LibraryEntry(
        id=record.id,
        organization_id=record.organization_id,
        kind=record.kind,
        description=record.description,
        is_active=record.is_active,
        usage_count=record.usage_count,
        operation=LIBRARY_OPERATION.validate_python(record.operation),
        created_at=record.created_at,
    )


def _apply_entry(record: LibraryEntryRecord, entry: LibraryEntry) -> None:
    record.organization_id = entry.organization_id
    record.category = entry.category.value
    record.code = entry.code
    record.name = entry.name
    record.kind = entry.kind
    record.description = entry.description
    record.operation = entry.operation.model_dump(mode="json")
    record.is_active = entry.is_active


def _type_from_record(record: OperationTypeRecord) -> OperationTypeDef:
    return OperationTypeDef(
        id=record.id,
        organization_id=record.organization_id,
        category=OperationCategory(record.category),
        code=record.code,
        name=record.name,
        description=record.description,
        display_order=record.display_order,
        is_active=record.is_active,
        created_at=record.created_at,
    )


def _apply_type(record: OperationTypeRecord, type_def: OperationTypeDef) -> None:
    record.organization_id = type_def.organization_id
    record.category = OperationCategory(type_def.category).value
    record.code = type_def.code
    record.name = type_def.name
    record.description = type_def.description
    record.display_order = type_def.display_order
    record.is_active = type_def.is_active


def _scope_filter(column, organization_id: Optional[str]):
    return column.is_(None) if organization_id is None else column == organization_id


class SqlAlchemyOperationsStore(OperationsStore):

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._sessions = session_factory(engine)

    def _insert(self):
        """Dialect-specific INSERT supporting ON CONFLICT."""
        if self._engine.dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif self._engine.dialect.name == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise StorageFailure(f"Unsupported database dialect: {self._engine.dialect.name}")
        return insert

    # ── Library entries ────────────────────────────────────────────────────────

    @_storage_call
    async def list_entries(self, organization_id, category=None, include_inactive=False):
        stmt = select(LibraryEntryRecord).where(
            _scope_filter(LibraryEntryRecord.organization_id, organization_id)
        )
        if category is not None:
            stmt = stmt.where(LibraryEntryRecord.category == OperationCategory(category).value)
        if not include_inactive:
            stmt = stmt.where(LibraryEntryRecord.is_active.is_(True))
        async with self._sessions() as session:
            result = await session.execute(stmt.order_by(LibraryEntryRecord.id))
            return [_entry_from_record(r) for r in result.scalars().all()]

    @_storage_call
    async def get_entry(self, entry_id):
        async with self._sessions() as session:
            record = await session.get(LibraryEntryRecord, entry_id)
            return _entry_from_record(record) if record else None

    @_storage_call
    async def insert_entry(self, entry):
        async with self._sessions() as session:
            record = LibraryEntryRecord(usage_count=entry.usage_count)
            _apply_entry(record, entry)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return _entry_from_record(record)

    @_storage_call
    async def replace_entry(self, entry):
        async with self._sessions() as session:
            record = await session.get(LibraryEntryRecord, entry.id)
            if record is None:
                raise StorageFailure(f"library entry {entry.id} vanished during update")
            # usage_count is only ever changed by increment_usage
            _apply_entry(record, entry)
            await session.commit()
            await session.refresh(record)
            return _entry_from_record(record)

    @_storage_call
    async def delete_entry(self, entry_id):
        async with self._sessions() as session:
            result = await session.execute(
                delete(LibraryEntryRecord).where(LibraryEntryRecord.id == entry_id)
            )
            await session.commit()
            return result.rowcount > 0

    @_storage_call
    async def increment_usage(self, entry_id):
        stmt = (
            update(LibraryEntryRecord)
            .where(
                LibraryEntryRecord.id == entry_id,
                LibraryEntryRecord.organization_id.is_not(None),
            )
            .values(usage_count=LibraryEntryRecord.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0

    # ── Operation types ────────────────────────────────────────────────────────

    @_storage_call
    async def list_types(self, organization_id, category=None):
        stmt = select(OperationTypeRecord).where(
            _scope_filter(OperationTypeRecord.organization_id, organization_id)
        )
        if category is not None:
            stmt = stmt.where(OperationTypeRecord.category == OperationCategory(category).value)
        async with self._sessions() as session:
            result = await session.execute(stmt.order_by(OperationTypeRecord.id))
            return [_type_from_record(r) for r in result.scalars().all()]

    @_storage_call
    async def get_type(self, type_id):
        async with self._sessions() as session:
            record = await session.get(OperationTypeRecord, type_id)
            return _type_from_record(record) if record else None

    @_storage_call
    async def insert_type(self, type_def):
        async with self._sessions() as session:
            record = OperationTypeRecord()
            _apply_type(record, type_def)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return _type_from_record(record)

    @_storage_call
    async def replace_type(self, type_def):
        async with self._sessions() as session:
            record = await session.get(OperationTypeRecord, type_def.id)
            if record is None:
                raise StorageFailure(f"operation type {type_def.id} vanished during update")
            _apply_type(record, type_def)
            await session.commit()
            await session.refresh(record)
            return _type_from_record(record)

    @_storage_call
    async def delete_type(self, type_id):
        async with self._sessions() as session:
            result = await session.execute(
                delete(OperationTypeRecord).where(OperationTypeRecord.id == type_id)
            )
            await session.commit()
            return result.rowcount > 0

    # ── Dialects ───────────────────────────────────────────────────────────────

    @_storage_call
    async def get_dialect(self, organization_id):
        async with self._sessions() as session:
            flags = await session.get(ServiceDialect, organization_id)
            result = await session.execute(
                select(DialectAlias)
                .where(DialectAlias.organization_id == organization_id)
                .order_by(DialectAlias.id)
            )
            rows = result.scalars().all()
        if flags is None and not rows:
            return None

        config = DialectConfig(organization_id=organization_id)
        if flags is not None:
            config.use_ai_fallback = flags.use_ai_fallback
            config.auto_learn = flags.auto_learn
        for row in rows:
            config.aliases.setdefault(OperationCategory(row.category), {})[row.external_code] = row.canonical_code
        return config

    @_storage_call
    async def save_dialect_flags(self, config):
        insert = self._insert()
        stmt = insert(ServiceDialect).values(
            organization_id=config.organization_id,
            use_ai_fallback=config.use_ai_fallback,
            auto_learn=config.auto_learn,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ServiceDialect.organization_id],
            set_={
                "use_ai_fallback": stmt.excluded.use_ai_fallback,
                "auto_learn": stmt.excluded.auto_learn,
            },
        )
        async with self._sessions() as session:
            await session.execute(stmt)
            await session.commit()

    @_storage_call
    async def upsert_alias(self, organization_id, category, external, canonical):
        insert = self._insert()
        defaults = DialectConfig(organization_id=organization_id)
        ensure_dialect = insert(ServiceDialect).values(
            organization_id=organization_id,
            use_ai_fallback=defaults.use_ai_fallback,
            auto_learn=defaults.auto_learn,
        ).on_conflict_do_nothing(index_elements=[ServiceDialect.organization_id])

        alias = insert(DialectAlias).values(
            organization_id=organization_id,
            category=OperationCategory(category).value,
            external_code=external,
            canonical_code=canonical,
        )
        alias = alias.on_conflict_do_update(
            index_elements=[DialectAlias.organization_id, DialectAlias.category, DialectAlias.external_code],
            set_={"canonical_code": alias.excluded.canonical_code},
        )
        async with self._sessions() as session:
            await session.execute(ensure_dialect)
            await session.execute(alias)
            await session.commit()

    @_storage_call
    async def delete_alias(self, organization_id, category, external):
        async with self._sessions() as session:
            result = await session.execute(
                delete(DialectAlias).where(
                    DialectAlias.organization_id == organization_id,
                    DialectAlias.category == OperationCategory(category).value,
                    DialectAlias.external_code == external,
                )
            )
            await session.commit()
            return result.rowcount > 0
