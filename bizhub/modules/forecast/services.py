# bizhub/modules/forecast/services.py
import random
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from loguru import logger

from bizhub.core.config import settings
from bizhub.core.repository import utc_now
from bizhub.modules.inbox.repository import CustomerMessageRepository
from bizhub.modules.messaging.repository import MessageRepository
from bizhub.modules.products.repository import ProductRepository
from bizhub.modules.sales.repository import SaleRepository
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from . import algorithms
from .models import (
    ActivityTrendAPI, ChannelPerformanceAPI, CommunicationStatAPI, ForecastOverviewAPI, InsightsAPI,
    InsightsPredictionsAPI, InsightsSummaryAPI, InventoryForecastAPI, MonthlyQuantityAPI, OutreachRequestAPI,
    ProductForecastAPI, SalesChartPointAPI, SalesForecastAPI, SuggestionAPI,
)

HISTORY_MONTHS = 6
INSIGHTS_WINDOW_DAYS = 30
CHART_DAYS = 7
TOP_SELLER_SCAN = 100
PRODUCTIVITY_TARGET = 50000
PREDICTED_GROWTH = 1.1
INSIGHT_CHANNELS = ("whatsapp", "email", "sms", "web")

OUTREACH_TEMPLATES = (
    "Hello {name}, I admire your work in {industry}.",
    "Hi {name}, your journey in {industry} is inspiring.",
    "Dear {name}, I'd love to connect and learn more about your work.",
)


def months_back(now: datetime, months: int) -> datetime:
    """First day of the month `months` calendar months before now."""
    index = now.year * 12 + (now.month - 1) - months
    return datetime(index // 12, index % 12 + 1, 1)


def day_label(day: datetime) -> str:
    return f"{day:%b} {day.day}"


class ForecastService:

    async def _team_user_ids(self, owner_id, user_repo: UserRepository) -> List:
        users = await user_repo.list_team_users(owner_id)
        ids = [u.id for u in users]
        return ids or [owner_id]

    async def sales_forecast(
        self,
        user: UserInDB,
        user_repo: UserRepository,
        product_repo: ProductRepository,
        sale_repo: SaleRepository,
    ) -> ForecastOverviewAPI:
        owner_id = user.scope_owner_id
        log = logger.bind(user_id=str(user.id), owner_id=str(owner_id))
        member_ids = await self._team_user_ids(owner_id, user_repo)
        products = await product_repo.list_by({"is_active": True, "user_id": {"$in": member_ids}}, limit=0)

        since = months_back(utc_now(), HISTORY_MONTHS)
        sales = await sale_repo.list_by(
            {"owner_id": owner_id, "status": "completed", "created_at": {"$gte": since}},
            limit=0,
            sort=[("created_at", 1)],
        )
        monthly: Dict = defaultdict(lambda: defaultdict(int))
        for sale in sales:
            month = f"{sale.created_at:%Y-%m}"
            for item in sale.items:
                monthly[item.product_id][month] += item.quantity

        forecasts: List[ProductForecastAPI] = []
        for product in products:
            history = sorted(monthly.get(product.id, {}).items())
            quantities = [qty for _, qty in history]
            sales_forecast = algorithms.forecast_product_sales(quantities)
            inventory = algorithms.forecast_inventory(product.quantity, product.min_threshold, sales_forecast["forecast"])
            forecasts.append(ProductForecastAPI(
                product_id=product.id,
                product_name=product.name,
                category=product.category,
                current_stock=product.quantity,
                historical_data=[MonthlyQuantityAPI(month=m, quantity=q) for m, q in history],
                sales_forecast=SalesForecastAPI(**sales_forecast),
                inventory_forecast=InventoryForecastAPI(**inventory),
            ))

        top_sellers = [
            {"product_id": row["_id"], "product_name": row.get("product_name"), "total_quantity": row["total_quantity"]}
            for row in await sale_repo.top_products({"owner_id": owner_id}, limit=TOP_SELLER_SCAN)
        ]
        suggestions = algorithms.generate_suggestions(
            [{"id": p.id, "name": p.name, "low_stock_alert": p.low_stock_alert} for p in products],
            top_sellers,
            [
                {"product_id": f.product_id, "product_name": f.product_name, "inventory": f.inventory_forecast.model_dump()}
                for f in forecasts
            ],
        )
        log.info(f"Forecast computed for {len(forecasts)} product(s) from {len(sales)} sale(s)")
        return ForecastOverviewAPI(forecasts=forecasts, suggestions=[SuggestionAPI(**s) for s in suggestions])

    async def suggestions(
        self,
        user: UserInDB,
        user_repo: UserRepository,
        product_repo: ProductRepository,
        sale_repo: SaleRepository,
    ) -> List[SuggestionAPI]:
        overview = await self.sales_forecast(user, user_repo, product_repo, sale_repo)
        return overview.suggestions

    async def insights(
        self,
        user: UserInDB,
        sale_repo: SaleRepository,
        message_repo: MessageRepository,
        customer_message_repo: CustomerMessageRepository,
    ) -> InsightsAPI:
        owner_id = user.scope_owner_id
        now = utc_now()
        since = now - timedelta(days=INSIGHTS_WINDOW_DAYS)

        sales = await sale_repo.list_by(
            {"owner_id": owner_id, "status": "completed", "created_at": {"$gte": since}}, limit=0
        )
        total_sales = round(sum(s.total_amount for s in sales), 2)

        window = {"owner_id": owner_id, "created_at": {"$gte": since}}
        messages = await message_repo.list_by(window, limit=0)
        outbound = await customer_message_repo.list_by({**window, "direction": "outbound"}, limit=0)
        sent = [(m.channel, m.created_at) for m in messages] + [(m.channel, m.created_at) for m in outbound]
        total_messages = len(sent)

        channel_counts = {channel: 0 for channel in INSIGHT_CHANNELS}
        for channel, _ in sent:
            if channel in channel_counts:
                channel_counts[channel] += 1
        channel_performance = [
            ChannelPerformanceAPI(name=channel.capitalize(), value=count) for channel, count in channel_counts.items()
        ]
        top_channel = "None"
        if max(channel_counts.values()) > 0:
            top_channel = max(channel_performance, key=lambda c: c.value).name

        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        sales_chart, activity_trends = [], []
        for offset in range(CHART_DAYS - 1, -1, -1):
            start = today - timedelta(days=offset)
            end = start + timedelta(days=1)
            revenue = round(sum(s.total_amount for s in sales if start <= s.created_at < end), 2)
            sales_chart.append(SalesChartPointAPI(
                date=day_label(start), sales=revenue, predicted=algorithms.round_half_up(revenue * PREDICTED_GROWTH)
            ))
            activity_trends.append(ActivityTrendAPI(
                date=day_label(start), activity=sum(1 for _, created in sent if start <= created < end)
            ))

        communication_stats = [
            CommunicationStatAPI(
                channel=channel.capitalize(),
                sent=count,
                share=algorithms.round_half_up(count / total_messages * 100) if total_messages else 0,
            )
            for channel, count in channel_counts.items()
        ]

        recommendations = []
        if total_messages == 0:
            recommendations.append("Start messaging customers to increase engagement.")
        if total_sales == 0:
            recommendations.append("No sales recorded. Focus on follow-ups.")
        if top_channel != "None":
            recommendations.append(f"Focus more on {top_channel} for better results.")
        if not recommendations:
            recommendations.append("Your performance is stable. Keep it up.")

        estimated_revenue = algorithms.round_half_up(total_sales * PREDICTED_GROWTH)
        return InsightsAPI(
            summary=InsightsSummaryAPI(
                total_messages=total_messages,
                total_sales=total_sales,
                top_channel=top_channel,
                productivity_score=min(100, algorithms.round_half_up(total_sales / PRODUCTIVITY_TARGET * 100)),
                estimated_revenue=estimated_revenue,
                currency=settings.DEFAULT_CURRENCY,
            ),
            predictions=InsightsPredictionsAPI(
                estimated_revenue=estimated_revenue,
                best_performer=user.name or "You",
                recommended_action=(
                    f"Increase outreach on {top_channel}" if top_channel != "None" else "Increase customer engagement"
                ),
            ),
            sales_chart=sales_chart,
            channel_performance=channel_performance,
            activity_trends=activity_trends,
            communication_stats=communication_stats,
            recommendations=recommendations,
        )

    def generate_outreach(self, request_in: OutreachRequestAPI, rng: Optional[random.Random] = None) -> str:
        template = (rng or random).choice(OUTREACH_TEMPLATES)
        industry = (request_in.industry or "").strip() or "your field"
        return template.format(name=request_in.name, industry=industry)


async def get_forecast_service() -> ForecastService:
    return ForecastService()
