# tests/modules/chat/test_chat.py
from typing import Any, Dict, List

import pytest
from fastapi import status
from httpx import AsyncClient

from bizhub.modules.chat.models import MAX_CHAT_TEXT, ChatMessageInDB
from bizhub.modules.chat.repository import ChatMessageRepository
from bizhub.modules.chat.services import ChatHub
from bizhub.websocket.connection_manager import ConnectionManager, chat_manager

pytestmark = pytest.mark.asyncio


class FakeSocket:
    def __init__(self):
        self.accepted = False
        self.sent: List[Dict[str, Any]] = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        self.sent.append(message)

    def events(self, name: str) -> List[Dict[str, Any]]:
        return [m["data"] for m in self.sent if m["event"] == name]


@pytest.fixture
def hub() -> ChatHub:
    return ChatHub(ConnectionManager("test-chat"), history_size=2)


async def test_join_sends_history_and_announces_once(hub, owner, make_user):
    staff = await make_user("Sam Staff")
    owner_socket, staff_socket, second_tab = FakeSocket(), FakeSocket(), FakeSocket()

    await hub.join(owner, owner_socket)
    await hub.join(staff, staff_socket)
    await hub.join(staff, second_tab)

    assert owner_socket.accepted
    assert staff_socket.events("history") == [{"messages": []}]
    joined = [e["text"] for e in owner_socket.events("system")]
    assert joined == ["Olivia Owner joined the chat", "Sam Staff joined the chat"]
    assert {u["name"] for u in owner_socket.events("users")[-1]["users"]} == {"Olivia Owner", "Sam Staff"}


async def test_leave_announces_only_when_last_socket_closes(hub, owner, make_user):
    staff = await make_user("Sam Staff")
    owner_socket, tab_one, tab_two = FakeSocket(), FakeSocket(), FakeSocket()
    await hub.join(owner, owner_socket)
    await hub.join(staff, tab_one)
    await hub.join(staff, tab_two)

    await hub.leave(staff, tab_one)
    assert "Sam Staff left the chat" not in [e["text"] for e in owner_socket.events("system")]
    await hub.leave(staff, tab_two)
    assert owner_socket.events("system")[-1] == {"text": "Sam Staff left the chat"}
    assert not hub.manager.is_online(str(staff.id))


async def test_public_messages_are_broadcast_persisted_and_kept_in_history(hub, owner, db):
    repo = ChatMessageRepository(db)
    socket = FakeSocket()
    await hub.join(owner, socket)

    for text in ("one", "two", "  three  "):
        await hub.handle(owner, {"event": "message", "text": text}, socket, repo)

    broadcast = socket.events("message")
    assert [m["text"] for m in broadcast] == ["one", "two", "three"]
    assert broadcast[0]["from_username"] == "Olivia Owner"
    assert broadcast[0]["to_user_id"] is None
    assert [m["text"] for m in hub.public_history] == ["two", "three"]
    assert await repo.count({"to_user_id": None}) == 3


async def test_message_text_is_validated_and_truncated(hub, owner, db):
    repo = ChatMessageRepository(db)
    socket = FakeSocket()
    await hub.join(owner, socket)

    await hub.handle(owner, {"event": "message", "text": "   "}, socket, repo)
    assert socket.events("error") == [{"detail": "Message text is required"}]

    await hub.handle(owner, {"event": "message", "text": "x" * (MAX_CHAT_TEXT + 10)}, socket, repo)
    assert len(socket.events("message")[0]["text"]) == MAX_CHAT_TEXT


async def test_private_message_routing(hub, owner, make_user, db):
    repo = ChatMessageRepository(db)
    staff = await make_user("Sam Staff")
    owner_socket, staff_socket = FakeSocket(), FakeSocket()
    await hub.join(owner, owner_socket)
    await hub.join(staff, staff_socket)

    await hub.handle(owner, {"event": "private_message", "to": str(staff.id), "text": "hi Sam"}, owner_socket, repo)

    assert staff_socket.events("private_message")[0]["is_me"] is False
    assert owner_socket.events("private_message")[0]["is_me"] is True
    stored = await repo.get_by({"to_user_id": staff.id})
    assert stored.delivered is True


async def test_private_message_to_offline_user_is_stored_undelivered(hub, owner, make_user, db):
    repo = ChatMessageRepository(db)
    offline = await make_user("Off Line")
    socket = FakeSocket()
    await hub.join(owner, socket)

    await hub.handle(owner, {"event": "private_message", "to": str(offline.id), "text": "later"}, socket, repo)
    assert (await repo.get_by({"to_user_id": offline.id})).delivered is False
    assert len(socket.events("private_message")) == 1

    await hub.handle(owner, {"event": "private_message", "to": "nobody", "text": "x"}, socket, repo)
    assert socket.events("error") == [{"detail": "A recipient and message text are required"}]


async def test_typing_and_ping(hub, owner, make_user, db):
    staff = await make_user("Sam Staff")
    owner_socket, staff_socket = FakeSocket(), FakeSocket()
    await hub.join(owner, owner_socket)
    await hub.join(staff, staff_socket)

    await hub.handle(owner, {"event": "typing", "to": str(staff.id)}, owner_socket, ChatMessageRepository(db))
    assert staff_socket.events("typing") == [{"user_id": str(owner.id), "name": "Olivia Owner", "private": True}]
    assert owner_socket.events("typing") == []

    await hub.handle(owner, {"event": "typing"}, owner_socket, ChatMessageRepository(db))
    assert staff_socket.events("typing")[-1]["private"] is False

    await hub.handle(owner, {"event": "ping"}, owner_socket, ChatMessageRepository(db))
    assert owner_socket.sent[-1]["event"] == "pong"


async def test_history_endpoint_marks_incoming_read(client: AsyncClient, owner, owner_headers, make_user, db):
    repo = ChatMessageRepository(db)
    peer = await make_user("Pia Peer")
    await repo.create(ChatMessageInDB(from_user_id=peer.id, to_user_id=owner.id, text="hello"))
    await repo.create(ChatMessageInDB(from_user_id=owner.id, to_user_id=peer.id, text="hi back"))

    response = await client.get(f"/api/v1/chat/messages/{peer.id}", headers=owner_headers)
    assert response.status_code == status.HTTP_200_OK
    messages = {m["text"]: m for m in response.json()}
    assert messages["hello"]["is_me"] is False
    assert messages["hello"]["from_username"] == "Pia Peer"
    assert messages["hi back"]["is_me"] is True
    incoming = await repo.get_by({"from_user_id": peer.id})
    assert incoming.read is True
    assert incoming.delivered is True


async def test_history_rejects_bad_ids(client: AsyncClient, owner_headers):
    response = await client.get("/api/v1/chat/messages/not-an-id", headers=owner_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_conversations_and_unread_counts(client: AsyncClient, owner, owner_headers, make_user, db):
    repo = ChatMessageRepository(db)
    pia, raj = await make_user("Pia Peer"), await make_user("Raj Peer")
    await repo.create(ChatMessageInDB(from_user_id=pia.id, to_user_id=owner.id, text="one"))
    await repo.create(ChatMessageInDB(from_user_id=pia.id, to_user_id=owner.id, text="two"))
    await repo.create(ChatMessageInDB(from_user_id=owner.id, to_user_id=raj.id, text="ping"))
    await repo.create(ChatMessageInDB(from_user_id=owner.id, text="public"))

    response = await client.get("/api/v1/chat/conversations", headers=owner_headers)
    conversations = {c["user_name"]: c for c in response.json()}
    assert set(conversations) == {"Pia Peer", "Raj Peer"}
    assert conversations["Pia Peer"]["unread_count"] == 2
    assert conversations["Raj Peer"]["unread_count"] == 0


async def test_online_users(client: AsyncClient, owner, owner_headers):
    await chat_manager.connect(str(owner.id), FakeSocket())
    response = await client.get("/api/v1/chat/online", headers=owner_headers)
    assert response.json() == {"users": [str(owner.id)], "count": 1}
