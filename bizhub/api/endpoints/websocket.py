# bizhub/api/endpoints/websocket.py

import json
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status as http_status
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase

from bizhub.core.database import get_database
from bizhub.core.security import decode_access_token, resolve_token_user
from bizhub.modules.chat.repository import ChatMessageRepository
from bizhub.modules.chat.services import chat_hub
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from bizhub.websocket.connection_manager import notification_manager
from bizhub.websocket.events import build_event

router = APIRouter()


async def authenticate_websocket(websocket: WebSocket, token: Optional[str], db: AsyncIOMotorDatabase) -> Optional[UserInDB]:
    """Resolves the ?token= JWT to an active user; closes the socket with 1008 otherwise."""
    log = logger.bind(service="WSAuth")
    if not token:
        log.warning("WebSocket connection rejected: missing token.")
        await websocket.close(code=http_status.WS_1008_POLICY_VIOLATION, reason="Authentication required")
        return None
    try:
        return await resolve_token_user(decode_access_token(token), UserRepository(db))
    except HTTPException as e:
        log.warning(f"WebSocket connection rejected: {e.detail}")
        await websocket.close(code=http_status.WS_1008_POLICY_VIOLATION, reason=str(e.detail))
        return None


def parse_client_message(raw: str) -> dict:
    """Accepts JSON objects and the bare 'ping' keep-alive."""
    if raw.strip().lower() == "ping":
        return {"event": "ping"}
    try:
        payload = json.loads(raw)
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.websocket("/ws/notifications", name="websocket_notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """Per-user and broadcast real-time events. Authenticate with `?token=<jwt>`."""
    user = await authenticate_websocket(websocket, token, db)
    if user is None:
        return

    user_id = str(user.id)
    log = logger.bind(trace_id=f"ws_{uuid.uuid4().hex[:8]}", user=user_id)
    await notification_manager.connect(user_id, websocket)
    try:
        await websocket.send_json(build_event("connected", {"user_id": user_id}))
        while True:
            payload = parse_client_message(await websocket.receive_text())
            if payload.get("event") == "ping":
                await websocket.send_json(build_event("pong", {}))
            else:
                log.debug(f"Ignoring client message on notifications socket: {payload}")
    except WebSocketDisconnect as e:
        log.info(f"Notifications socket disconnected (code: {e.code}).")
    except Exception as loop_err:
        log.exception(f"Error during notifications socket loop: {loop_err}")
        await websocket.close(code=http_status.WS_1011_INTERNAL_ERROR)
    finally:
        notification_manager.disconnect(user_id, websocket)


@router.websocket("/ws/chat", name="websocket_chat")
async def chat_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    """Internal web chat. Authenticate with `?token=<jwt>`."""
    user = await authenticate_websocket(websocket, token, db)
    if user is None:
        return

    repo = ChatMessageRepository(db)
    log = logger.bind(trace_id=f"ws_{uuid.uuid4().hex[:8]}", user=str(user.id))
    await chat_hub.join(user, websocket)
    try:
        while True:
            payload = parse_client_message(await websocket.receive_text())
            await chat_hub.handle(user, payload, websocket, repo)
    except WebSocketDisconnect as e:
        log.info(f"Chat socket disconnected (code: {e.code}).")
    except Exception as loop_err:
        log.exception(f"Error during chat socket loop: {loop_err}")
        await websocket.close(code=http_status.WS_1011_INTERNAL_ERROR)
    finally:
        await chat_hub.leave(user, websocket)
