# bizhub/modules/chat/repository.py
from typing import List

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository
from .models import ChatMessageInDB

HISTORY_LIMIT = 200


class ChatMessageRepository(BaseRepository[ChatMessageInDB]):
    model = ChatMessageInDB
    collection_name = "chat_messages"
    indexes = [
        IndexModel([("from_user_id", ASCENDING), ("to_user_id", ASCENDING), ("created_at", ASCENDING)]),
        IndexModel([("to_user_id", ASCENDING), ("read", ASCENDING)]),
    ]

    @staticmethod
    def _between(a: ObjectId, b: ObjectId) -> dict:
        return {"$or": [{"from_user_id": a, "to_user_id": b}, {"from_user_id": b, "to_user_id": a}]}

    async def history_between(self, a: ObjectId, b: ObjectId, limit: int = HISTORY_LIMIT) -> List[ChatMessageInDB]:
        return await self.list_by(self._between(a, b), limit=limit, sort=[("created_at", 1)])

    async def mark_received(self, sender: ObjectId, recipient: ObjectId) -> int:
        return await self.update_many(
            {"from_user_id": sender, "to_user_id": recipient, "read": False},
            {"delivered": True, "read": True},
        )

    async def private_messages_of(self, user_id: ObjectId) -> List[ChatMessageInDB]:
        query = {"to_user_id": {"$ne": None}, "$or": [{"from_user_id": user_id}, {"to_user_id": user_id}]}
        return await self.list_by(query, limit=0, sort=[("created_at", 1)])


async def get_chat_message_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> ChatMessageRepository:
    return ChatMessageRepository(db)
