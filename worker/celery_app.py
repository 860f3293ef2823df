"""Celery application configuration."""

from celery import Celery
from celery.signals import setup_logging, worker_process_shutdown

from backend.app.config import get_settings
from backend.app.core.logging import setup_logging as configure_logging
from worker.db import cleanup_engine

settings = get_settings()

app = Celery(
    "preset_store",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "worker.tasks.reconciliation",
    ],
)

# Celery configuration
app.conf.update(
    # Task settings
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,

    # Task tracking
    task_track_started=True,
    task_time_limit=900,  # a full audit is one aggregate query plus row updates
    task_soft_time_limit=840,

    # Worker settings
    worker_prefetch_multiplier=1,  # Fair task distribution
    worker_concurrency=1,  # audits must not overlap

    # Result backend settings
    result_expires=86400,  # Results expire after 24 hours

    task_default_queue="default",

    # Periodic reaction count audit
    beat_schedule={
        "audit-reaction-counts": {
            "task": "worker.tasks.reconciliation.audit_reaction_counts",
            "schedule": settings.reaction_reconcile_interval_seconds,
            "kwargs": {"repair": settings.reaction_reconcile_repair},
        },
    },
)


@setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Use the application's log format instead of Celery's."""
    configure_logging()


@worker_process_shutdown.connect
def dispose_db_pool(**kwargs) -> None:
    cleanup_engine()


if __name__ == "__main__":
    app.start()
