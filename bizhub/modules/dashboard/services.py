# bizhub/modules/dashboard/services.py
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Tuple

from loguru import logger

from bizhub.core.repository import utc_now
from bizhub.modules.forecast.services import months_back
from bizhub.modules.messaging.repository import MessageRepository
from bizhub.modules.notifications.repository import NotificationRepository
from bizhub.modules.products.models import CategoryStatAPI
from bizhub.modules.products.repository import ProductRepository
from bizhub.modules.sales.repository import SaleRepository
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from .models import (
    CHART_PERIODS, CommunicationCountsAPI, DashboardStatsAPI, NotificationCountsAPI, PeriodCountsAPI,
    PeriodRevenueAPI, ProductCountsAPI, SalesChartBucketAPI, UserCountsAPI,
)

EPOCH = datetime(1970, 1, 1)


def chart_window(period: str, now: datetime) -> Tuple[datetime, Callable[[datetime], str]]:
    """Start of the chart window and the bucket label function for a period."""
    if period == "day":
        return now.replace(hour=0, minute=0, second=0, microsecond=0), lambda d: f"{d:%H}:00"
    if period == "week":
        return now - timedelta(days=7), lambda d: f"{d:%Y-%m-%d}"
    if period == "year":
        return months_back(now, 12), lambda d: f"{d:%Y-%m}"
    return now - timedelta(days=30), lambda d: f"{d:%Y-%m-%d}"


class DashboardService:
    """Headline numbers and chart series. Admins see everything, others their owner's team."""

    async def _scopes(self, user: UserInDB, user_repo: UserRepository) -> Dict[str, Dict[str, Any]]:
        if user.is_admin:
            return {"sales": {}, "products": {}, "users": {}, "messages": {}}
        owner_id = user.scope_owner_id
        team = await user_repo.list_team_users(owner_id)
        member_ids = [u.id for u in team] or [owner_id]
        return {
            "sales": {"owner_id": owner_id},
            "products": {"user_id": {"$in": member_ids}},
            "users": {"$or": [{"owner_id": owner_id}, {"_id": owner_id}]},
            "messages": {"owner_id": owner_id},
        }

    async def stats(
        self,
        user: UserInDB,
        user_repo: UserRepository,
        sale_repo: SaleRepository,
        product_repo: ProductRepository,
        message_repo: MessageRepository,
        notification_repo: NotificationRepository,
    ) -> DashboardStatsAPI:
        now = utc_now()
        start_of_month = datetime(now.year, now.month, 1)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        scopes = await self._scopes(user, user_repo)
        sales_scope = scopes["sales"]

        total_revenue = await sale_repo.revenue_summary(sales_scope, EPOCH)
        monthly_revenue = await sale_repo.revenue_summary(sales_scope, start_of_month)
        daily_revenue = await sale_repo.revenue_summary(sales_scope, start_of_day)

        stats = DashboardStatsAPI(
            sales=PeriodCountsAPI(
                total=await sale_repo.count(sales_scope),
                monthly=await sale_repo.count({**sales_scope, "created_at": {"$gte": start_of_month}}),
                daily=await sale_repo.count({**sales_scope, "created_at": {"$gte": start_of_day}}),
            ),
            revenue=PeriodRevenueAPI(
                total=total_revenue["total_revenue"],
                monthly=monthly_revenue["total_revenue"],
                daily=daily_revenue["total_revenue"],
            ),
            products=ProductCountsAPI(
                total=await product_repo.count(scopes["products"]),
                active=await product_repo.count({**scopes["products"], "is_active": True}),
                low_stock=await product_repo.count({**scopes["products"], "low_stock_alert": True}),
            ),
            users=UserCountsAPI(
                total=await user_repo.count(scopes["users"]),
                active=await user_repo.count({**scopes["users"], "is_active": True}),
            ),
            communication=CommunicationCountsAPI(
                total_messages=await message_repo.count(scopes["messages"]),
                recent_messages=await message_repo.count(
                    {**scopes["messages"], "created_at": {"$gte": now - timedelta(hours=24)}}
                ),
            ),
            notifications=NotificationCountsAPI(unread=await notification_repo.count_unread(user.id)),
        )
        logger.debug(f"Dashboard stats computed for {user.email} (admin={user.is_admin})")
        return stats

    async def sales_chart(
        self, period: CHART_PERIODS, user: UserInDB, user_repo: UserRepository, sale_repo: SaleRepository
    ) -> List[SalesChartBucketAPI]:
        start, label_of = chart_window(period, utc_now())
        scopes = await self._scopes(user, user_repo)
        sales = await sale_repo.list_by(
            {**scopes["sales"], "status": "completed", "created_at": {"$gte": start}},
            limit=0,
            sort=[("created_at", 1)],
        )

        buckets: Dict[str, SalesChartBucketAPI] = {}
        for sale in sales:
            label = label_of(sale.created_at)
            bucket = buckets.setdefault(label, SalesChartBucketAPI(label=label, count=0, revenue=0.0))
            bucket.count += 1
            bucket.revenue = round(bucket.revenue + sale.total_amount, 2)
        return list(buckets.values())

    async def products_chart(
        self, user: UserInDB, user_repo: UserRepository, product_repo: ProductRepository
    ) -> List[CategoryStatAPI]:
        scopes = await self._scopes(user, user_repo)
        rows = await product_repo.category_stats(scopes["products"])
        return [
            CategoryStatAPI(
                category=row["_id"] or "Uncategorized",
                count=row["count"],
                total_quantity=row["total_quantity"],
                total_value=round(row["total_value"], 2),
            )
            for row in rows
        ]


async def get_dashboard_service() -> DashboardService:
    return DashboardService()
