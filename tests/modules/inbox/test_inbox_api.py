# tests/modules/inbox/test_inbox_api.py
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.modules.inbox.models import make_thread_id
from bizhub.modules.inbox.repository import CustomerMessageRepository
from bizhub.modules.inbox.services import preview
from bizhub.modules.notifications.repository import NotificationRepository

pytestmark = pytest.mark.asyncio

RAVI = {"name": "Ravi", "email": "ravi@example.com", "phone": "+919876543210"}


async def receive(client, content="Is the shop open on Sunday?", **extra):
    return await client.post("/api/v1/customer-messages/receive", json={"customer": RAVI, "content": content, **extra})


async def test_thread_id_prefers_email_then_phone_then_name():
    by_email = make_thread_id("Ravi", "ravi@example.com", "+91")
    assert by_email == make_thread_id("Someone", "ravi@example.com")
    assert by_email.startswith("thread_")
    assert make_thread_id("Ravi", "", "+919876543210") != make_thread_id("Ravi")
    assert make_thread_id("Ravi")[len("thread_"):].isalnum()


async def test_preview_truncates_long_content():
    assert preview("short") == "short"
    assert preview("x" * 150) == "x" * 100 + "..."


async def test_receive_is_public_and_notifies_staff(client: AsyncClient, db, owner, admin, make_user):
    employee = await make_user("Eve Employee", role="employee", owner_id=owner.id)
    await make_user("Idle Employee", role="employee", owner_id=owner.id, is_active=False)

    with patch("bizhub.modules.inbox.services.push_event", new_callable=AsyncMock) as pushed:
        response = await receive(client)
    assert response.status_code == status.HTTP_201_CREATED
    message = response.json()
    assert message["direction"] == "inbound"
    assert message["thread_id"] == make_thread_id("Ravi", "ravi@example.com")
    assert pushed.await_args.args[1]["is_inbound"] is True

    notes = await NotificationRepository(db).list_by({"type": "new_message"})
    assert {n.user_id for n in notes} == {admin.id, employee.id}
    assert notes[0].title == "New Customer Message"
    assert notes[0].link == f"/messages/thread/{message['thread_id']}"


async def test_receive_requires_content(client: AsyncClient):
    response = await receive(client, content="   ")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_staff_reply_on_web_channel(client: AsyncClient, owner, owner_headers):
    thread_id = (await receive(client)).json()["thread_id"]
    response = await client.post(
        "/api/v1/customer-messages/send",
        json={"customer": RAVI, "content": "Yes, 9 to 1.", "thread_id": thread_id},
        headers=owner_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    reply = response.json()
    assert reply["direction"] == "outbound"
    assert reply["status"] == "sent"
    assert reply["sender"]["user_id"] == str(owner.id)
    assert reply["thread_id"] == thread_id


async def test_email_reply_goes_through_email_service(client: AsyncClient, owner_headers, fake_email):
    response = await client.post(
        "/api/v1/customer-messages/send",
        json={"customer": RAVI, "content": "Your order shipped", "channel": "email"},
        headers=owner_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert fake_email.sent[0]["subject"] == "Message from our team"
    assert response.json()["metadata"]["delivery"]["success"] is True


async def test_sms_reply_requires_phone(client: AsyncClient, owner_headers, fake_twilio):
    response = await client.post(
        "/api/v1/customer-messages/send",
        json={"customer": {"name": "No Phone", "email": "np@example.com"}, "content": "Hi", "channel": "sms"},
        headers=owner_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Customer phone is required for sms messages"


async def test_failed_delivery_is_stored_as_failed(client: AsyncClient, owner_headers, fake_twilio):
    fake_twilio.fail_code = "INVALID_PHONE"
    response = await client.post(
        "/api/v1/customer-messages/send",
        json={"customer": RAVI, "content": "Hi", "channel": "whatsapp"},
        headers=owner_headers,
    )
    assert response.json()["status"] == "failed"


async def test_threads_and_opening_a_thread_marks_it_read(client: AsyncClient, owner_headers, db):
    await receive(client, "First question")
    await receive(client, "Second question")
    await client.post(
        "/api/v1/customer-messages/receive",
        json={"customer": {"name": "Meera", "phone": "+911111111111"}, "content": "Hello"},
    )

    threads = (await client.get("/api/v1/customer-messages/threads", headers=owner_headers)).json()
    by_id = {t["thread_id"]: t for t in threads}
    ravi_thread = make_thread_id("Ravi", "ravi@example.com")
    assert by_id[ravi_thread]["unread_count"] == 2
    assert by_id[ravi_thread]["message_count"] == 2

    messages = await client.get(f"/api/v1/customer-messages/thread/{ravi_thread}", headers=owner_headers)
    assert len(messages.json()) == 2
    assert await CustomerMessageRepository(db).count({"thread_id": ravi_thread, "status": "read"}) == 2

    stats = (await client.get("/api/v1/customer-messages/stats", headers=owner_headers)).json()
    assert stats == {
        "total_messages": 3, "inbound_messages": 3, "outbound_messages": 0, "unread_messages": 1, "total_threads": 2,
    }


async def test_list_filters_and_mark_read(client: AsyncClient, owner_headers):
    message_id = (await receive(client)).json()["id"]

    unread = await client.get("/api/v1/customer-messages/", params={"unread_only": "true"}, headers=owner_headers)
    assert [m["id"] for m in unread.json()] == [message_id]

    response = await client.put(f"/api/v1/customer-messages/{message_id}/read", headers=owner_headers)
    assert response.json()["status"] == "read"
    assert response.json()["read_at"] is not None

    by_email = await client.get(
        "/api/v1/customer-messages/", params={"customer_email": "ravi@example.com"}, headers=owner_headers
    )
    assert len(by_email.json()) == 1

    missing = await client.put("/api/v1/customer-messages/64b7f0c2a1b2c3d4e5f60718/read", headers=owner_headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


async def test_inbox_requires_auth(client: AsyncClient):
    response = await client.get("/api/v1/customer-messages/threads")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
