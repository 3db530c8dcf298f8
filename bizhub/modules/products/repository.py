# bizhub/modules/products/repository.py
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository, utc_now
from .models import ProductInDB


class ProductRepository(BaseRepository[ProductInDB]):
    model = ProductInDB
    collection_name = "products"
    indexes = [
        IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("category", ASCENDING)]),
    ]

    async def decrement_stock(self, product_id: ObjectId, quantity: int) -> Optional[ProductInDB]:
        """Atomically takes `quantity` units; returns None if not enough stock is left."""
        document = await self.collection.find_one_and_update(
            {"_id": product_id, "quantity": {"$gte": quantity}},
            {"$inc": {"quantity": -quantity}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._validate(document)

    async def increment_stock(self, product_id: ObjectId, quantity: int) -> Optional[ProductInDB]:
        document = await self.collection.find_one_and_update(
            {"_id": product_id},
            {"$inc": {"quantity": quantity}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._validate(document)

    async def set_low_stock_flag(self, product_id: ObjectId, flag: bool) -> None:
        await self.collection.update_one({"_id": product_id}, {"$set": {"low_stock_alert": flag}})

    async def category_stats(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$match": scope},
            {"$group": {
                "_id": "$category",
                "count": {"$sum": 1},
                "total_quantity": {"$sum": "$quantity"},
                "total_value": {"$sum": {"$multiply": ["$price", "$quantity"]}},
            }},
            {"$sort": {"count": -1}},
        ])

    async def assign_unowned(self, owner_id: ObjectId) -> int:
        return await self.update_many(
            {"$or": [{"user_id": None}, {"user_id": {"$exists": False}}]},
            {"user_id": owner_id},
        )


async def get_product_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> ProductRepository:
    return ProductRepository(db)
