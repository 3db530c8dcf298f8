# bizhub/modules/chat/services.py
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from bson import ObjectId
from fastapi import HTTPException, status
from loguru import logger

from bizhub.core.repository import to_object_id
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from bizhub.websocket.connection_manager import ConnectionManager, chat_manager
from bizhub.websocket.events import build_event
from .models import MAX_CHAT_TEXT, ChatMessageAPI, ChatMessageInDB, ConversationAPI, OnlineUsersAPI
from .repository import HISTORY_LIMIT, ChatMessageRepository

PUBLIC_HISTORY_SIZE = 200


def to_api(message: ChatMessageInDB, viewer_id: Optional[ObjectId] = None, from_username: Optional[str] = None) -> ChatMessageAPI:
    return ChatMessageAPI(
        id=message.id,
        text=message.text,
        from_user_id=message.from_user_id,
        from_username=from_username,
        to_user_id=message.to_user_id,
        timestamp=message.created_at,
        is_me=viewer_id is not None and message.from_user_id == viewer_id,
        delivered=message.delivered,
        read=message.read,
    )


class ChatService:
    """REST side of the internal chat."""

    async def history(
        self, peer_id: str, user: UserInDB, repo: ChatMessageRepository, user_repo: UserRepository
    ) -> List[ChatMessageAPI]:
        peer_oid = to_object_id(peer_id)
        if peer_oid is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user id")
        peer = await user_repo.get_by_id(peer_oid)
        names = {user.id: user.name, peer_oid: peer.name if peer else None}

        messages = await repo.history_between(user.id, peer_oid, limit=HISTORY_LIMIT)
        await repo.mark_received(peer_oid, user.id)
        return [to_api(m, user.id, names.get(m.from_user_id)) for m in messages]

    async def conversations(
        self, user: UserInDB, repo: ChatMessageRepository, user_repo: UserRepository
    ) -> List[ConversationAPI]:
        latest: Dict[ObjectId, ChatMessageInDB] = {}
        unread: Dict[ObjectId, int] = {}
        for message in await repo.private_messages_of(user.id):
            peer = message.to_user_id if message.from_user_id == user.id else message.from_user_id
            latest[peer] = message
            unread.setdefault(peer, 0)
            if message.to_user_id == user.id and not message.read:
                unread[peer] += 1

        conversations = []
        for peer_id, message in latest.items():
            peer = await user_repo.get_by_id(peer_id)
            conversations.append(
                ConversationAPI(
                    user_id=peer_id,
                    user_name=peer.name if peer else None,
                    last_message={
                        "text": message.text,
                        "timestamp": message.created_at,
                        "from_user_id": message.from_user_id,
                        "to_user_id": message.to_user_id,
                        "read": message.read,
                    },
                    unread_count=unread[peer_id],
                )
            )
        conversations.sort(key=lambda c: c.last_message.timestamp, reverse=True)
        return conversations

    def online(self, manager: ConnectionManager = chat_manager) -> OnlineUsersAPI:
        users = manager.online_users()
        return OnlineUsersAPI(users=users, count=len(users))


class ChatHub:
    """
    Live side of the chat: keeps the recent public room history in memory
    and routes socket events between connected users.
    """

    def __init__(self, manager: ConnectionManager = chat_manager, history_size: int = PUBLIC_HISTORY_SIZE):
        self.manager = manager
        self.public_history: Deque[Dict[str, Any]] = deque(maxlen=history_size)
        self.names: Dict[str, str] = {}

    def users_payload(self) -> List[Dict[str, str]]:
        return [{"user_id": uid, "name": self.names.get(uid, "")} for uid in self.manager.online_users()]

    async def join(self, user: UserInDB, websocket) -> str:
        user_id = str(user.id)
        first_socket = not self.manager.is_online(user_id)
        await self.manager.connect(user_id, websocket)
        self.names[user_id] = user.name
        await websocket.send_json(build_event("history", {"messages": list(self.public_history)}))
        await self.manager.broadcast(build_event("users", {"users": self.users_payload()}))
        if first_socket:
            await self.manager.broadcast(build_event("system", {"text": f"{user.name} joined the chat"}))
        return user_id

    async def leave(self, user: UserInDB, websocket):
        user_id = str(user.id)
        self.manager.disconnect(user_id, websocket)
        if self.manager.is_online(user_id):
            return
        self.names.pop(user_id, None)
        await self.manager.broadcast(build_event("users", {"users": self.users_payload()}))
        await self.manager.broadcast(build_event("system", {"text": f"{user.name} left the chat"}))

    async def handle(self, user: UserInDB, payload: Dict[str, Any], websocket, repo: ChatMessageRepository):
        event = payload.get("event")
        if event == "ping":
            await websocket.send_json(build_event("pong", {}))
        elif event == "message":
            await self.public_message(user, payload.get("text"), websocket, repo)
        elif event == "private_message":
            await self.private_message(user, payload.get("to"), payload.get("text"), websocket, repo)
        elif event == "typing":
            await self.typing(user, payload.get("to"))
        else:
            logger.debug(f"[chat] ignoring unknown event {event!r} from {user.id}")

    @staticmethod
    def _clean_text(text: Any) -> Optional[str]:
        if not isinstance(text, str):
            return None
        text = text.strip()
        return text[:MAX_CHAT_TEXT] if text else None

    async def _error(self, websocket, detail: str):
        await websocket.send_json(build_event("error", {"detail": detail}))

    async def public_message(self, user: UserInDB, text: Any, websocket, repo: ChatMessageRepository):
        text = self._clean_text(text)
        if text is None:
            await self._error(websocket, "Message text is required")
            return
        stored = await repo.create(ChatMessageInDB(from_user_id=user.id, text=text, delivered=True))
        data = to_api(stored, from_username=user.name).model_dump(mode="json", exclude={"is_me"})
        self.public_history.append(data)
        await self.manager.broadcast(build_event("message", data))

    async def private_message(self, user: UserInDB, to: Any, text: Any, websocket, repo: ChatMessageRepository):
        text = self._clean_text(text)
        recipient_id = to_object_id(to)
        if text is None or recipient_id is None:
            await self._error(websocket, "A recipient and message text are required")
            return

        online = self.manager.is_online(str(recipient_id))
        stored = await repo.create(
            ChatMessageInDB(from_user_id=user.id, to_user_id=recipient_id, text=text, delivered=online)
        )
        data = to_api(stored, from_username=user.name).model_dump(mode="json", exclude={"is_me"})
        if online:
            await self.manager.send_personal_message(str(recipient_id), build_event("private_message", {**data, "is_me": False}))
        await self.manager.send_personal_message(str(user.id), build_event("private_message", {**data, "is_me": True}))

    async def typing(self, user: UserInDB, to: Any):
        data = {"user_id": str(user.id), "name": user.name}
        if to:
            await self.manager.send_personal_message(str(to), build_event("typing", {**data, "private": True}))
        else:
            await self.manager.broadcast(build_event("typing", {**data, "private": False}))


chat_hub = ChatHub()


async def get_chat_service() -> ChatService:
    return ChatService()
