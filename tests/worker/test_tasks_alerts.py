# tests/worker/test_tasks_alerts.py
from unittest.mock import MagicMock

import pytest

from bizhub.core.config import settings
from bizhub.services.email_service import EmailResult
from bizhub.worker import tasks_alerts
from bizhub.worker.celery_app import celery_app


@pytest.fixture
def alerts_enabled(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_ALERTS_ENABLED", True)


@pytest.fixture
def sent(monkeypatch):
    calls = []

    def fake_send(to, subject, html=None, text=None):
        calls.append({"to": to, "subject": subject, "html": html})
        return EmailResult(success=True, recipient=to, message_id="<1@example.com>")

    monkeypatch.setattr(tasks_alerts.email_service, "send_email_sync", fake_send)
    return calls


def test_celery_app_registers_alert_tasks():
    assert "alerts.low_stock_email" in celery_app.tasks
    assert "alerts.sale_email" in celery_app.tasks
    assert celery_app.conf.task_serializer == "json"


def test_queue_helpers_do_nothing_when_disabled(monkeypatch):
    task = MagicMock()
    monkeypatch.setattr(tasks_alerts, "send_low_stock_email", task)
    tasks_alerts.queue_low_stock_email("a@example.com", "Rice", 2, 5)
    task.delay.assert_not_called()


def test_queue_helpers_enqueue_when_enabled(monkeypatch, alerts_enabled):
    low_stock, sale = MagicMock(), MagicMock()
    monkeypatch.setattr(tasks_alerts, "send_low_stock_email", low_stock)
    monkeypatch.setattr(tasks_alerts, "send_sale_email", sale)

    tasks_alerts.queue_low_stock_email("a@example.com", "Rice", 2, 5)
    tasks_alerts.queue_sale_email("a@example.com", "SAL-2026-00001", 99.5, 2)

    low_stock.delay.assert_called_once_with("a@example.com", "Rice", 2, 5)
    sale.delay.assert_called_once_with("a@example.com", "SAL-2026-00001", 99.5, 2)


def test_queue_failure_is_logged_not_raised(monkeypatch, alerts_enabled):
    task = MagicMock()
    task.delay.side_effect = ConnectionError("broker down")
    monkeypatch.setattr(tasks_alerts, "send_sale_email", task)
    tasks_alerts.queue_sale_email("a@example.com", "SAL-2026-00001", 10.0, 1)


def test_low_stock_task_renders_and_sends(sent):
    result = tasks_alerts.send_low_stock_email.apply(args=("a@example.com", "Rice", 2, 5)).get()
    assert result["success"] is True
    assert sent[0]["subject"] == "Low Stock Alert: Rice"
    assert "Current stock: <strong>2</strong>" in sent[0]["html"]


def test_sale_task_includes_currency(sent):
    tasks_alerts.send_sale_email.apply(args=("a@example.com", "SAL-2026-00007", 250.0, 3)).get()
    assert sent[0]["subject"] == "New Sale SAL-2026-00007"
    assert f"{settings.DEFAULT_CURRENCY} 250.00" in sent[0]["html"]


def test_deliver_retries_transient_failures(monkeypatch):
    monkeypatch.setattr(
        tasks_alerts.email_service,
        "send_email_sync",
        lambda *args, **kwargs: EmailResult(success=False, recipient="a@example.com", code="TIMEOUT", error="slow"),
    )
    task = MagicMock()
    task.retry.return_value = RuntimeError("retry scheduled")

    with pytest.raises(RuntimeError, match="retry scheduled"):
        tasks_alerts._deliver(task, "a@example.com", "Subject", "<p>x</p>")
    assert str(task.retry.call_args.kwargs["exc"]) == "slow"


def test_deliver_does_not_retry_permanent_failures(monkeypatch):
    monkeypatch.setattr(
        tasks_alerts.email_service,
        "send_email_sync",
        lambda *args, **kwargs: EmailResult(success=False, recipient="bad", code="INVALID_EMAIL", error="Invalid"),
    )
    task = MagicMock()
    result = tasks_alerts._deliver(task, "bad", "Subject", "<p>x</p>")
    assert result["code"] == "INVALID_EMAIL"
    task.retry.assert_not_called()
