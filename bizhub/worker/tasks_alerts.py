# bizhub/worker/tasks_alerts.py

from typing import Any, Dict

from loguru import logger

from bizhub.core.config import settings
from bizhub.services.email_service import email_service
from bizhub.worker.celery_app import celery_app

# Provider failures that are worth another attempt
RETRYABLE_CODES = {"TIMEOUT", "CONNECTION_FAILED"}


def _deliver(task, recipient: str, subject: str, html: str) -> Dict[str, Any]:
    result = email_service.send_email_sync(recipient, subject, html=html)
    if not result.success and result.code in RETRYABLE_CODES:
        logger.warning(f"[Task:{task.request.id}] email to {recipient} failed ({result.code}); retrying")
        raise task.retry(exc=RuntimeError(result.error))
    return result.model_dump()


@celery_app.task(bind=True, name="alerts.low_stock_email", max_retries=3)
def send_low_stock_email(self, recipient: str, product_name: str, quantity: int, min_threshold: int) -> Dict[str, Any]:
    """Emails the product owner that stock fell to or below its threshold."""
    logger.info(f"[Task:{self.request.id}] low-stock email for '{product_name}' -> {recipient}")
    subject, html = email_service.low_stock_alert_content(product_name, quantity, min_threshold)
    return _deliver(self, recipient, subject, html)


@celery_app.task(bind=True, name="alerts.sale_email", max_retries=3)
def send_sale_email(self, recipient: str, sale_ref: str, total: float, item_count: int) -> Dict[str, Any]:
    logger.info(f"[Task:{self.request.id}] sale email for {sale_ref} -> {recipient}")
    subject, html = email_service.sale_notification_content(sale_ref, total, item_count, settings.DEFAULT_CURRENCY)
    return _deliver(self, recipient, subject, html)


def queue_low_stock_email(recipient: str, product_name: str, quantity: int, min_threshold: int) -> None:
    if not settings.EMAIL_ALERTS_ENABLED:
        return
    try:
        send_low_stock_email.delay(recipient, product_name, quantity, min_threshold)
    except Exception as e:
        logger.error(f"Could not queue low-stock email for '{product_name}': {e}")


def queue_sale_email(recipient: str, sale_ref: str, total: float, item_count: int) -> None:
    if not settings.EMAIL_ALERTS_ENABLED:
        return
    try:
        send_sale_email.delay(recipient, sale_ref, total, item_count)
    except Exception as e:
        logger.error(f"Could not queue sale email for {sale_ref}: {e}")
