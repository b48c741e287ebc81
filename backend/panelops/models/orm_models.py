"""ORM Models for the operations library and notation dialects — SQLAlchemy 2.0"""
from datetime import datetime
from typing import Any, Optional
from sqlalchemy import (
    JSON, String, Text, Boolean, Integer, DateTime, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from panelops.db import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


# ── OPERATION TYPES ───────────────────────────────────────────────────────────
class OperationTypeRecord(Base):
    __tablename__ = "operation_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # NULL = system type
    organization_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (
        UniqueConstraint("organization_id", "category", "code", name="uq_operation_type_code"),
    )


# ── LIBRARY (hole patterns / groove profiles / routing profiles) ──────────────
class LibraryEntryRecord(Base):
    __tablename__ = "library_entries"
    # Autoincrement id doubles as creation order for matcher tie-breaks
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[Optional[str]] = mapped_column(String(64))
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), default="custom")
    description: Mapped[Optional[str]] = mapped_column(Text)
    # Full canonical operation body (GrooveOperation / DrillingOperation / CncOperation)
    operation: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())
    __table_args__ = (
        UniqueConstraint("organization_id", "category", "code", name="uq_library_entry_code"),
        Index("ix_library_entries_scope", "organization_id", "category"),
    )


# ── DIALECTS ──────────────────────────────────────────────────────────────────
class ServiceDialect(Base):
    __tablename__ = "service_dialects"
    organization_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    use_ai_fallback: Mapped[bool] = mapped_column(Boolean, default=True)
    auto_learn: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class DialectAlias(Base):
    __tablename__ = "dialect_aliases"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    external_code: Mapped[str] = mapped_column(String(255), nullable=False)
    canonical_code: Mapped[str] = mapped_column(String(255), nullable=False)
    __table_args__ = (
        UniqueConstraint("organization_id", "category", "external_code", name="uq_dialect_alias"),
    )
