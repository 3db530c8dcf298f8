# bizhub/modules/invites/repository.py
from typing import Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository, utc_now
from .models import InviteInDB


class InviteRepository(BaseRepository[InviteInDB]):
    model = InviteInDB
    collection_name = "collaborator_invites"
    indexes = [
        IndexModel([("token", ASCENDING)], unique=True),
        IndexModel([("email", ASCENDING), ("status", ASCENDING)]),
        IndexModel([("invited_by", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("expires_at", ASCENDING)]),
    ]

    async def latest_for_email(self, email: str) -> Optional[InviteInDB]:
        return await self.get_by({"email": email.strip().lower()}, sort=[("created_at", -1)])

    async def get_by_token(self, token: str) -> Optional[InviteInDB]:
        return await self.get_by({"token": token})

    async def expire_stale(self, invited_by: ObjectId) -> int:
        return await self.update_many(
            {"invited_by": invited_by, "status": "pending", "expires_at": {"$lt": utc_now()}},
            {"status": "expired"},
        )


async def get_invite_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> InviteRepository:
    return InviteRepository(db)
