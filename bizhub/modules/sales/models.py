# bizhub/modules/sales/models.py
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

PAYMENT_METHODS = Literal["cash", "card", "online", "other"]
SALE_STATUSES = Literal["completed", "pending", "cancelled"]
STATS_PERIODS = Literal["day", "week", "month", "year"]


# --- Internal/DB Models ---
class SaleItem(BaseModel):
    product_id: ObjectId
    product_name: str
    category: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    subtotal: float

    model_config = ConfigDict(arbitrary_types_allowed=True)


class SaleInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    sale_ref: Optional[str] = None
    items: List[SaleItem] = Field(default_factory=list)
    total_amount: float = Field(..., ge=0)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: PAYMENT_METHODS = "cash"
    status: SALE_STATUSES = "completed"
    sold_by: ObjectId
    sold_by_name: Optional[str] = None
    owner_id: ObjectId
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


# --- API Models ---
class SaleItemAPI(BaseModel):
    product_id: PyObjectId
    product_name: str
    category: Optional[str] = None
    quantity: int
    price: float
    subtotal: float

    model_config = ConfigDict(from_attributes=True)


class SaleAPI(BaseModel):
    id: PyObjectId
    sale_ref: Optional[str] = None
    items: List[SaleItemAPI]
    total_amount: float
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: PAYMENT_METHODS
    status: SALE_STATUSES
    sold_by: PyObjectId
    sold_by_name: Optional[str] = None
    owner_id: PyObjectId
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SaleItemCreateAPI(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: Optional[float] = Field(None, ge=0, description="Unit price; defaults to the product's price")


class SaleCreateAPI(BaseModel):
    items: List[SaleItemCreateAPI] = Field(..., min_length=1)
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    payment_method: PAYMENT_METHODS = "cash"
    status: Literal["completed", "pending"] = "completed"
    notes: Optional[str] = None


class QuickSaleCreateAPI(BaseModel):
    customer_name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    payment_method: PAYMENT_METHODS = "cash"
    notes: Optional[str] = None


class MySaleAPI(BaseModel):
    id: PyObjectId
    sale_ref: Optional[str] = None
    customer_name: str
    amount: float
    status: SALE_STATUSES
    date: datetime
    item_count: int


class TeamSalesRowAPI(BaseModel):
    user_id: PyObjectId
    user_name: str
    total_sales: float
    sales_count: int


class RevenueStatsAPI(BaseModel):
    period: STATS_PERIODS
    total_revenue: float
    total_sales: int
    average_sale: float


class TopProductAPI(BaseModel):
    product_id: PyObjectId
    product_name: str
    category: Optional[str] = None
    total_quantity: int
    total_revenue: float
