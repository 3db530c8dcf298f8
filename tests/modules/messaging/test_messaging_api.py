# tests/modules/messaging/test_messaging_api.py
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.core.repository import utc_now
from bizhub.modules.messaging.repository import MessageRepository

pytestmark = pytest.mark.asyncio


async def test_send_email_to_many_records_each_message(client: AsyncClient, owner, owner_headers, fake_email, db):
    payload = {"to": ["a@example.com", "b@example.com"], "subject": "Diwali offer", "content": "20% off <today>"}
    with patch("bizhub.modules.messaging.services.push_event", new_callable=AsyncMock) as pushed:
        response = await client.post("/api/v1/communication/send-email", json=payload, headers=owner_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["success_count"] == 2
    assert data["failed_count"] == 0
    assert [m["to"] for m in fake_email.sent] == ["a@example.com", "b@example.com"]
    assert fake_email.sent[0]["html"] == "<p>20% off &lt;today&gt;</p>"
    assert pushed.await_args.args[0] == "new-message"

    stored = await MessageRepository(db).list_by({"owner_id": owner.id})
    assert {m.to_address for m in stored} == {"a@example.com", "b@example.com"}
    assert {m.status for m in stored} == {"sent"}


async def test_send_email_failure_is_reported(client: AsyncClient, owner_headers, failing_email, db):
    payload = {"to": "a@example.com", "subject": "Hi", "content": "Hello"}
    response = await client.post("/api/v1/communication/send-email", json=payload, headers=owner_headers)
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "AUTH_FAILED"
    assert data["errors"] == ["a@example.com: SMTP unavailable"]
    assert (await MessageRepository(db).get_by({})).status == "failed"


async def test_send_email_rejects_empty_recipient_list(client: AsyncClient, owner_headers, fake_email):
    payload = {"to": [], "subject": "Hi", "content": "Hello"}
    response = await client.post("/api/v1/communication/send-email", json=payload, headers=owner_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_whatsapp_not_configured(client: AsyncClient, owner_headers, db):
    response = await client.post(
        "/api/v1/communication/send-whatsapp", json={"to": "+919876543210", "message": "Hi"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["code"] == "WHATSAPP_NOT_CONFIGURED"
    assert await MessageRepository(db).count() == 0


async def test_send_whatsapp_normalises_numbers(client: AsyncClient, owner_headers, fake_twilio, db):
    response = await client.post(
        "/api/v1/communication/send-whatsapp",
        json={"to": ["+91 98765-43210", "123"], "message": "  Your order is ready  "},
        headers=owner_headers,
    )
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "PARTIAL_FAILURE"
    assert data["success_count"] == 1
    assert fake_twilio.sent == [
        {"from": "whatsapp:+14155238886", "to": "whatsapp:+919876543210", "body": "Your order is ready"}
    ]
    # invalid numbers never reach the provider and are not stored
    assert await MessageRepository(db).count() == 1


async def test_send_sms(client: AsyncClient, owner_headers, fake_twilio, db):
    response = await client.post(
        "/api/v1/communication/send-sms", json={"phone": "91 98765 43210", "message": "Thanks!"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True
    assert fake_twilio.sent[0]["to"] == "+919876543210"
    assert (await MessageRepository(db).get_by({"channel": "sms"})).status == "sent"


async def test_send_sms_validation_and_provider_errors(client: AsyncClient, owner_headers, fake_twilio, db):
    missing = await client.post("/api/v1/communication/send-sms", json={"message": "Hi"}, headers=owner_headers)
    assert missing.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.json()["detail"] == "Phone number is required"

    fake_twilio.fail_code = "INVALID_PHONE"
    failed = await client.post(
        "/api/v1/communication/send-sms", json={"phone": "+15551234567", "message": "Hi"}, headers=owner_headers
    )
    assert failed.status_code == status.HTTP_502_BAD_GATEWAY
    assert (await MessageRepository(db).get_by({"channel": "sms"})).status == "failed"


async def test_sms_not_configured(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/communication/send-sms", json={"phone": "+15551234567", "message": "Hi"}, headers=owner_headers
    )
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "SMS service not configured"


async def test_channel_status_endpoints(client: AsyncClient, owner_headers, fake_twilio):
    whatsapp = (await client.get("/api/v1/communication/whatsapp-status", headers=owner_headers)).json()
    assert whatsapp == {"channel": "whatsapp", "configured": True, "missing": []}

    email = (await client.get("/api/v1/communication/email-status", headers=owner_headers)).json()
    assert email["configured"] is False
    assert "SMTP_USER" in email["missing"]


async def test_stats_and_message_listing(client: AsyncClient, owner_headers, fake_email, fake_twilio):
    await client.post(
        "/api/v1/communication/send-email",
        json={"to": "a@example.com", "subject": "Hi", "content": "Hello"},
        headers=owner_headers,
    )
    await client.post(
        "/api/v1/communication/send-sms", json={"phone": "+15551234567", "message": "Hi"}, headers=owner_headers
    )

    stats = (await client.get("/api/v1/communication/stats", headers=owner_headers)).json()
    assert stats["total_messages"] == 2
    assert stats["recent_messages"] == 2
    assert stats["by_channel"]["email"] == {"count": 1, "sent": 1, "failed": 0}

    sms_only = await client.get("/api/v1/communication/messages", params={"channel": "sms"}, headers=owner_headers)
    assert [m["to_address"] for m in sms_only.json()] == ["+15551234567"]


async def test_customers_are_built_from_sales(client: AsyncClient, owner, owner_headers, db):
    now = utc_now()
    await db["sales"].insert_many([
        {"owner_id": owner.id, "customer_name": "Ravi", "customer_email": "ravi@example.com",
         "total_amount": 100.0, "created_at": now},
        {"owner_id": owner.id, "customer_name": "Ravi K", "customer_email": "ravi@example.com",
         "total_amount": 50.5, "created_at": now},
        {"owner_id": owner.id, "customer_name": "Anon", "total_amount": 10.0, "created_at": now},
    ])

    response = await client.get("/api/v1/communication/customers", headers=owner_headers)
    customers = response.json()
    assert len(customers) == 1
    assert customers[0]["email"] == "ravi@example.com"
    assert customers[0]["total_purchases"] == 2
    assert customers[0]["total_spent"] == 150.5
