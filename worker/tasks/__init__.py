"""Celery task definitions."""

# Import tasks to register them with Celery
from worker.tasks import reconciliation

__all__ = [
    "reconciliation",
]
