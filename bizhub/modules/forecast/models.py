# bizhub/modules/forecast/models.py
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from bizhub.models.api_common import PyObjectId

CONFIDENCE_LEVELS = Literal["low", "medium", "high"]
URGENCY_LEVELS = Literal["low", "medium", "high"]


class SalesForecastAPI(BaseModel):
    forecast: int
    confidence: CONFIDENCE_LEVELS
    method: str
    historical_average: Optional[int] = None
    moving_average: Optional[int] = None
    recommendation: Optional[str] = None


class InventoryForecastAPI(BaseModel):
    current_stock: int
    recommended_stock: int
    reorder_quantity: int
    days_until_stockout: Optional[int] = None
    urgency: URGENCY_LEVELS


class MonthlyQuantityAPI(BaseModel):
    month: str  # YYYY-MM
    quantity: int


class ProductForecastAPI(BaseModel):
    product_id: PyObjectId
    product_name: str
    category: Optional[str] = None
    current_stock: int
    historical_data: List[MonthlyQuantityAPI]
    sales_forecast: SalesForecastAPI
    inventory_forecast: InventoryForecastAPI


class SuggestionAPI(BaseModel):
    type: Literal["restock", "promotion", "markdown"]
    priority: Literal["low", "medium", "high"]
    message: str
    product_id: Optional[PyObjectId] = None
    action: str


class ForecastOverviewAPI(BaseModel):
    forecasts: List[ProductForecastAPI]
    suggestions: List[SuggestionAPI]


class InsightsSummaryAPI(BaseModel):
    total_messages: int
    total_sales: float
    top_channel: str
    productivity_score: int
    estimated_revenue: int
    currency: str


class InsightsPredictionsAPI(BaseModel):
    estimated_revenue: int
    best_performer: str
    recommended_action: str


class SalesChartPointAPI(BaseModel):
    date: str
    sales: float
    predicted: int


class ChannelPerformanceAPI(BaseModel):
    name: str
    value: int


class ActivityTrendAPI(BaseModel):
    date: str
    activity: int


class CommunicationStatAPI(BaseModel):
    channel: str
    sent: int
    share: int


class InsightsAPI(BaseModel):
    summary: InsightsSummaryAPI
    predictions: InsightsPredictionsAPI
    sales_chart: List[SalesChartPointAPI]
    channel_performance: List[ChannelPerformanceAPI]
    activity_trends: List[ActivityTrendAPI]
    communication_stats: List[CommunicationStatAPI]
    recommendations: List[str]


class OutreachRequestAPI(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    industry: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class OutreachResponseAPI(BaseModel):
    success: bool = True
    message: str
