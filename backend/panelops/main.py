"""
panelops Resolution API
FastAPI service resolving panel operation notation (edge banding, grooves,
hole patterns, CNC routing) against per-organization dialects and libraries.
"""
import os
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from panelops import __version__
from panelops.config import AI_INTERPRETER_ENABLED
from panelops.db import DATABASE_URL, get_engine, init_db
from panelops.db.memory_store import InMemoryOperationsStore
from panelops.db.sql_store import SqlAlchemyOperationsStore
from panelops.db.store import OperationsStore
from panelops.services.ai_interpreter import LLMOperationInterpreter, OperationInterpreter
from panelops.services.dialect_resolver import DialectResolver
from panelops.services.learning_writer import LearningWriter
from panelops.services.library_cache import LibrarySnapshotCache
from panelops.services.logging_config import setup_logging
from panelops.services.middleware import RequestTimingMiddleware
from panelops.services.operations_library import OperationsLibrary
from panelops.services.resolution_pipeline import ResolutionPipeline

load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("panelops-api")

_PROCESS_START = time.monotonic()


def create_app(
    store: Optional[OperationsStore] = None,
    interpreter: Optional[OperationInterpreter] = None,
    cache: Optional[LibrarySnapshotCache] = None,
) -> FastAPI:
    """
    Build the API. Tests pass an in-memory store; production leaves ``store``
    unset and gets the SQL store for DATABASE_URL (or an in-memory store in
    dev mode when no database is configured).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active_store = store
        if active_store is None:
            if DATABASE_URL:
                await init_db()
                active_store = SqlAlchemyOperationsStore(get_engine())
            else:
                logger.warning("DATABASE_URL not set — using in-memory store (dev mode)")
                active_store = InMemoryOperationsStore()

        library = OperationsLibrary(active_store, cache or LibrarySnapshotCache())
        dialects = DialectResolver(active_store)
        seeded = await library.seed_system_defaults()
        logger.info(f"System defaults ready ({seeded} new records)")

        active_interpreter = interpreter
        if active_interpreter is None and AI_INTERPRETER_ENABLED:
            active_interpreter = LLMOperationInterpreter()

        app.state.store = active_store
        app.state.library = library
        app.state.dialects = dialects
        app.state.pipeline = ResolutionPipeline(library, dialects, active_interpreter)
        app.state.learning_writer = LearningWriter(dialects, library)
        yield

    app = FastAPI(
        title="panelops Resolution API",
        version=__version__,
        description="Operation notation resolution and library matching for cut panels",
        lifespan=lifespan,
    )

    cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestTimingMiddleware)

    from panelops.api.dialect_routes import router as dialect_router
    from panelops.api.library_routes import router as library_router
    from panelops.api.operation_type_routes import router as operation_type_router
    from panelops.api.operations_routes import router as operations_router

    app.include_router(operations_router)
    app.include_router(dialect_router)
    app.include_router(library_router)
    app.include_router(operation_type_router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": __version__,
            "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        }

    return app


app = create_app()
