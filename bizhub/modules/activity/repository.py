# bizhub/modules/activity/repository.py
from typing import Any, Dict

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository
from .models import ActivityInDB


class ActivityRepository(BaseRepository[ActivityInDB]):
    model = ActivityInDB
    collection_name = "activities"
    indexes = [
        IndexModel([("user_id", ASCENDING), ("timestamp", DESCENDING)]),
        IndexModel([("action", ASCENDING)]),
        IndexModel([("resource", ASCENDING)]),
        IndexModel([("timestamp", DESCENDING)]),
    ]

    async def count_by(self, field: str, query: Dict[str, Any]) -> Dict[str, int]:
        rows = await self.aggregate([
            {"$match": query},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ])
        return {row["_id"]: row["count"] for row in rows if row.get("_id")}


async def get_activity_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> ActivityRepository:
    return ActivityRepository(db)
