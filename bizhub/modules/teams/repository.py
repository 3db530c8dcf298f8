# bizhub/modules/teams/repository.py
from typing import Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository, utc_now
from .models import TeamInDB, TeamMember


class TeamRepository(BaseRepository[TeamInDB]):
    model = TeamInDB
    collection_name = "teams"
    indexes = [
        IndexModel([("owner_id", ASCENDING)], unique=True),
        IndexModel([("members.user_id", ASCENDING)]),
    ]

    async def get_by_owner(self, owner_id: ObjectId) -> Optional[TeamInDB]:
        return await self.get_by({"owner_id": owner_id})

    async def get_for_user(self, user_id: ObjectId) -> Optional[TeamInDB]:
        """Team the user owns, falling back to one they are a member of."""
        team = await self.get_by_owner(user_id)
        if team is None:
            team = await self.get_by({"members.user_id": user_id})
        return team

    async def add_member(self, team_id: ObjectId, member: TeamMember) -> Optional[TeamInDB]:
        await self.collection.update_one(
            {"_id": team_id},
            {"$push": {"members": member.model_dump()}, "$set": {"updated_at": utc_now()}},
        )
        return await self.get_by_id(team_id)

    async def remove_member(self, team_id: ObjectId, member_id: ObjectId) -> bool:
        result = await self.collection.update_one(
            {"_id": team_id},
            {"$pull": {"members": {"id": member_id}}, "$set": {"updated_at": utc_now()}},
        )
        return result.modified_count > 0


async def get_team_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> TeamRepository:
    return TeamRepository(db)
