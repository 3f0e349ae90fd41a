from __future__ import annotations

from celery import Celery

from fleet_ledger.core.config import settings


def make_celery() -> Celery:
    app = Celery("fleet_ledger", broker=settings.redis_url, backend=settings.redis_url)
    app.conf.update(
        task_always_eager=settings.environment in {"dev", "test"},
        task_eager_propagates=True,
        task_store_eager_result=False,
        task_track_started=True,
    )
    app.autodiscover_tasks(["fleet_ledger.worker.tasks"])
    return app


celery_app = make_celery()
