# bizhub/modules/notifications/repository.py
from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository
from .models import NotificationInDB


class NotificationRepository(BaseRepository[NotificationInDB]):
    model = NotificationInDB
    collection_name = "notifications"
    indexes = [IndexModel([("user_id", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)])]

    async def count_unread(self, user_id: ObjectId) -> int:
        return await self.count({"user_id": user_id, "is_read": False})

    async def mark_all_read(self, user_id: ObjectId) -> int:
        return await self.update_many({"user_id": user_id, "is_read": False}, {"is_read": True})


async def get_notification_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> NotificationRepository:
    return NotificationRepository(db)
