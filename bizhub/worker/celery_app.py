# bizhub/worker/celery_app.py

from celery import Celery
from loguru import logger

from bizhub.core.config import settings

celery_app = Celery(
    "bizhub_tasks",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["bizhub.worker.tasks_alerts"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_ignore_result=True,
    task_default_queue="default",
    task_default_retry_delay=60,
    worker_prefetch_multiplier=1,
    worker_hijack_root_logger=False,
)

logger.debug("Celery app configured.")
