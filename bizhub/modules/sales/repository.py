# bizhub/modules/sales/repository.py
from datetime import datetime
from typing import Any, Dict, List

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, IndexModel

from bizhub.core.database import get_database
from bizhub.core.repository import BaseRepository
from .models import SaleInDB


class SaleRepository(BaseRepository[SaleInDB]):
    model = SaleInDB
    collection_name = "sales"
    indexes = [
        IndexModel([("sold_by", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("owner_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]),
        IndexModel([("sale_ref", ASCENDING)], unique=True, sparse=True),
    ]

    async def revenue_summary(self, scope: Dict[str, Any], since: datetime) -> Dict[str, Any]:
        rows = await self.aggregate([
            {"$match": {**scope, "status": "completed", "created_at": {"$gte": since}}},
            {"$group": {"_id": None, "total_revenue": {"$sum": "$total_amount"}, "total_sales": {"$sum": 1}}},
        ])
        return rows[0] if rows else {"total_revenue": 0, "total_sales": 0}

    async def top_products(self, scope: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$match": {**scope, "status": "completed"}},
            {"$unwind": "$items"},
            {"$group": {
                "_id": "$items.product_id",
                "product_name": {"$last": "$items.product_name"},
                "category": {"$last": "$items.category"},
                "total_quantity": {"$sum": "$items.quantity"},
                "total_revenue": {"$sum": "$items.subtotal"},
            }},
            {"$sort": {"total_quantity": -1}},
            {"$limit": limit},
        ])

    async def totals_by_seller(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self.aggregate([
            {"$match": {**scope, "status": "completed"}},
            {"$group": {
                "_id": "$sold_by",
                "user_name": {"$last": "$sold_by_name"},
                "total_sales": {"$sum": "$total_amount"},
                "sales_count": {"$sum": 1},
            }},
            {"$sort": {"total_sales": -1}},
        ])

    async def customers(self, scope: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Customer directory built from sales that captured an email or phone."""
        return await self.aggregate([
            {"$match": {**scope, "$or": [
                {"customer_email": {"$nin": [None, ""]}},
                {"customer_phone": {"$nin": [None, ""]}},
            ]}},
            {"$sort": {"created_at": 1}},
            {"$group": {
                "_id": {"email": "$customer_email", "phone": "$customer_phone"},
                "name": {"$last": "$customer_name"},
                "total_purchases": {"$sum": 1},
                "total_spent": {"$sum": "$total_amount"},
                "last_purchase": {"$max": "$created_at"},
            }},
            {"$sort": {"last_purchase": -1}},
        ])


async def get_sale_repository(db: AsyncIOMotorDatabase = Depends(get_database)) -> SaleRepository:
    return SaleRepository(db)
