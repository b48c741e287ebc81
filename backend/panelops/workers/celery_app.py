"""
Celery Application — background learning writes for the resolution engine.

Learning events (dialect aliases, usage counters) produced by resolutions are
queued here so request handlers never write shared state themselves. The
learning queue runs with a single worker process, which makes it the one
writer for alias and usage updates.
"""
import os
from celery import Celery

from panelops.config import LEARNING_QUEUE, REDIS_URL

BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)

celery_app = Celery(
    "panelops",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=["panelops.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=1,
    task_soft_time_limit=30,
    task_time_limit=60,
    result_expires=3600,
    task_routes={
        "tasks.apply_learning_events": {"queue": LEARNING_QUEUE},
    },
)
