# bizhub/modules/users/repository.py
from typing import List, Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository, utc_now
from .models import UserInDB


class UserRepository(BaseRepository[UserInDB]):
    model = UserInDB
    collection_name = "users"
    indexes = [
        IndexModel([("email", ASCENDING)], unique=True),
        IndexModel([("owner_id", ASCENDING)]),
    ]

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        return await self.get_by({"email": email.strip().lower()})

    async def touch_last_login(self, user_id: ObjectId) -> None:
        await self.collection.update_one({"_id": user_id}, {"$set": {"last_login": utc_now()}})

    async def list_team_users(self, owner_id: ObjectId, include_excluded: bool = True) -> List[UserInDB]:
        """Active users that belong to an owner's team, the owner included."""
        query = {"is_active": True, "$or": [{"owner_id": owner_id}, {"_id": owner_id}]}
        if not include_excluded:
            query["exclude_from_leaderboard"] = {"$ne": True}
        return await self.list_by(query, limit=0, sort=[("created_at", 1)])

    async def first_admin(self) -> Optional[UserInDB]:
        return await self.get_by({"role": "admin"}, sort=[("created_at", 1)])


async def get_user_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> UserRepository:
    return UserRepository(db)
