# bizhub/modules/dashboard/models.py
from typing import Literal

from pydantic import BaseModel

CHART_PERIODS = Literal["day", "week", "month", "year"]


class PeriodCountsAPI(BaseModel):
    total: int = 0
    monthly: int = 0
    daily: int = 0


class PeriodRevenueAPI(BaseModel):
    total: float = 0.0
    monthly: float = 0.0
    daily: float = 0.0


class ProductCountsAPI(BaseModel):
    total: int = 0
    active: int = 0
    low_stock: int = 0


class UserCountsAPI(BaseModel):
    total: int = 0
    active: int = 0


class CommunicationCountsAPI(BaseModel):
    total_messages: int = 0
    recent_messages: int = 0


class NotificationCountsAPI(BaseModel):
    unread: int = 0


class DashboardStatsAPI(BaseModel):
    sales: PeriodCountsAPI
    revenue: PeriodRevenueAPI
    products: ProductCountsAPI
    users: UserCountsAPI
    communication: CommunicationCountsAPI
    notifications: NotificationCountsAPI


class SalesChartBucketAPI(BaseModel):
    label: str
    count: int
    revenue: float
