# bizhub/modules/messaging/repository.py
from datetime import datetime
from typing import Any, Dict, List

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository
from .models import MessageInDB


class MessageRepository(BaseRepository[MessageInDB]):
    model = MessageInDB
    collection_name = "messages"
    indexes = [
        IndexModel([("owner_id", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("sent_by", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("channel", ASCENDING), ("status", ASCENDING)]),
    ]

    async def channel_breakdown(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$match": scope},
            {"$group": {
                "_id": "$channel",
                "count": {"$sum": 1},
                "sent": {"$sum": {"$cond": [{"$eq": ["$status", "sent"]}, 1, 0]}},
                "failed": {"$sum": {"$cond": [{"$eq": ["$status", "failed"]}, 1, 0]}},
            }},
        ])

    async def counts_by_sender(self, owner_id: ObjectId, since: datetime) -> Dict[ObjectId, int]:
        rows = await self.aggregate([
            {"$match": {"owner_id": owner_id, "created_at": {"$gte": since}}},
            {"$group": {"_id": "$sent_by", "count": {"$sum": 1}}},
        ])
        return {row["_id"]: row["count"] for row in rows}


async def get_message_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> MessageRepository:
    return MessageRepository(db)
