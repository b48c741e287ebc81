"""
Celery Tasks — learning events applied off the request path.

Each task opens its own engine (NullPool, since a Celery task owns a fresh
event loop) and funnels the batch through a LearningWriter.
"""
import asyncio
import logging

from panelops.workers.celery_app import celery_app

logger = logging.getLogger("panelops-celery")


def _run_async(coro):
    """Run an async coroutine in a sync Celery task context (new event loop)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _apply(events) -> int:
    from sqlalchemy.pool import NullPool

    from panelops.db import DATABASE_URL, build_engine
    from panelops.db.sql_store import SqlAlchemyOperationsStore
    from panelops.services.dialect_resolver import DialectResolver
    from panelops.services.learning_writer import LearningWriter
    from panelops.services.operations_library import OperationsLibrary

    if not DATABASE_URL:
        raise RuntimeError("DATABASE_URL is required for the learning worker")
    engine = build_engine(DATABASE_URL, poolclass=NullPool)
    try:
        store = SqlAlchemyOperationsStore(engine)
        writer = LearningWriter(DialectResolver(store), OperationsLibrary(store))
        return await writer.apply(events)
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="tasks.apply_learning_events")
def apply_learning_events(self, events: list):
    """Apply a batch of serialized learning events (alias learned, usage recorded)."""
    from panelops.models.resolution import LEARNING_EVENTS

    parsed = LEARNING_EVENTS.validate_python(events)
    try:
        applied = _run_async(_apply(parsed))
    except Exception as e:
        logger.error(f"Learning batch of {len(parsed)} events failed: {e}")
        raise
    return {"status": "success", "applied": applied}
