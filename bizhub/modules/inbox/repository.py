# bizhub/modules/inbox/repository.py
from typing import Any, Dict, List

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository, utc_now
from .models import CustomerMessageInDB

UNREAD_INBOUND = {"direction": "inbound", "status": {"$ne": "read"}}
_UNREAD_INBOUND_EXPR = {
    "$cond": [{"$and": [{"$eq": ["$direction", "inbound"]}, {"$ne": ["$status", "read"]}]}, 1, 0]
}


class CustomerMessageRepository(BaseRepository[CustomerMessageInDB]):
    model = CustomerMessageInDB
    collection_name = "customer_messages"
    indexes = [
        IndexModel([("thread_id", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("customer.email", ASCENDING)]),
        IndexModel([("customer.phone", ASCENDING)]),
        IndexModel([("sender.user_id", ASCENDING)]),
        IndexModel([("status", ASCENDING)]),
    ]

    async def thread_summaries(self) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$sort": {"created_at": 1}},
            {"$group": {
                "_id": "$thread_id",
                "customer": {"$first": "$customer"},
                "last_message": {"$max": "$created_at"},
                "last_message_content": {"$last": "$content"},
                "unread_count": {"$sum": _UNREAD_INBOUND_EXPR},
                "message_count": {"$sum": 1},
            }},
            {"$sort": {"last_message": -1}},
        ])

    async def mark_thread_read(self, thread_id: str) -> int:
        return await self.update_many({"thread_id": thread_id, **UNREAD_INBOUND}, {"status": "read", "read_at": utc_now()})

    async def totals(self) -> Dict[str, Any]:
        rows = await self.aggregate([
            {"$group": {
                "_id": None,
                "total_messages": {"$sum": 1},
                "inbound_messages": {"$sum": {"$cond": [{"$eq": ["$direction", "inbound"]}, 1, 0]}},
                "outbound_messages": {"$sum": {"$cond": [{"$eq": ["$direction", "outbound"]}, 1, 0]}},
                "unread_messages": {"$sum": _UNREAD_INBOUND_EXPR},
                "threads": {"$addToSet": "$thread_id"},
            }},
        ])
        if not rows:
            return {}
        row = rows[0]
        row["total_threads"] = len(row.pop("threads", []))
        row.pop("_id", None)
        return row


async def get_customer_message_repository(
    db: AsyncIOMotorDatabase = Depends(get_database),
) -> CustomerMessageRepository:
    return CustomerMessageRepository(db)
