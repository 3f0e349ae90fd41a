from __future__ import annotations

# Ensure all models are registered before any task runs
# isort: off
import fleet_ledger.models  # noqa: F401
# isort: on

import time
from collections.abc import Callable
from typing import Any, TypeVar

from celery import Task

from fleet_ledger.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_task_context,
    set_task_context,
)
from fleet_ledger.worker.celery_app import celery_app

logger = get_logger(__name__)

T = TypeVar("T")


def _run_logged(task: Task, fn: Callable[[], T], **fields: Any) -> T:
    """Run a task body with the celery task id on every log line and start/finish/error events."""
    task_id = getattr(task.request, "id", None)
    token = set_task_context(task_id)
    start = time.monotonic()
    log_event(logger, "celery.task.start", task_name=task.name, **fields)
    try:
        result = fn()
    except Exception:
        log_exception(
            logger,
            "celery.task.error",
            task_name=task.name,
            duration_ms=monotonic_ms(start),
            **fields,
        )
        raise
    else:
        log_event(
            logger,
            "celery.task.finish",
            task_name=task.name,
            duration_ms=monotonic_ms(start),
            **fields,
        )
        return result
    finally:
        reset_task_context(token)


@celery_app.task(name="categorize_vessel_expenses", bind=True)
def categorize_vessel_expenses_task(self, vessel_id: int, min_confidence: float) -> int:
    from fleet_ledger.modules.categorization.service import categorize_vessel_expenses

    return _run_logged(
        self,
        lambda: categorize_vessel_expenses(vessel_id=vessel_id, min_confidence=min_confidence),
        vessel_id=vessel_id,
        min_confidence=min_confidence,
    )
