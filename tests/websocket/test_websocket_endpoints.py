# tests/websocket/test_websocket_endpoints.py
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from bizhub.api.endpoints.websocket import parse_client_message
from bizhub.core.security import create_user_token
from bizhub.websocket.connection_manager import notification_manager

pytestmark = pytest.mark.asyncio


async def test_parse_client_message():
    assert parse_client_message("ping") == {"event": "ping"}
    assert parse_client_message(" PING ") == {"event": "ping"}
    assert parse_client_message('{"event": "typing"}') == {"event": "typing"}
    assert parse_client_message("[1, 2]") == {}
    assert parse_client_message("not json") == {}


async def test_notifications_socket_requires_token(app):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/notifications"):
            pass
    assert exc.value.code == 1008


async def test_notifications_socket_rejects_bad_token(app):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/notifications?token=garbage"):
            pass
    assert exc.value.code == 1008


async def test_notifications_socket_rejects_inactive_user(app, make_user):
    idle = await make_user("Idle User", is_active=False)
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws/notifications?token={create_user_token(idle)}"):
            pass
    assert exc.value.code == 1008


async def test_notifications_socket_ping_pong(app, owner):
    client = TestClient(app)
    with client.websocket_connect(f"/ws/notifications?token={create_user_token(owner)}") as ws:
        connected = ws.receive_json()
        assert connected["event"] == "connected"
        assert connected["data"] == {"user_id": str(owner.id)}
        assert notification_manager.is_online(str(owner.id))

        ws.send_text("ping")
        assert ws.receive_json()["event"] == "pong"
        ws.send_json({"event": "ping"})
        assert ws.receive_json()["event"] == "pong"

    assert not notification_manager.is_online(str(owner.id))


async def test_chat_socket_round_trip(app, owner):
    client = TestClient(app)
    with client.websocket_connect(f"/ws/chat?token={create_user_token(owner)}") as ws:
        assert ws.receive_json()["event"] == "history"
        assert ws.receive_json()["event"] == "users"
        assert ws.receive_json()["data"] == {"text": "Olivia Owner joined the chat"}

        ws.send_json({"event": "message", "text": "Hello team"})
        message = ws.receive_json()
        assert message["event"] == "message"
        assert message["data"]["text"] == "Hello team"
        assert message["data"]["from_username"] == "Olivia Owner"
