# bizhub/modules/products/models.py
from datetime import date, datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

DEFAULT_MIN_THRESHOLD = 10


def is_low_stock(quantity: int, min_threshold: int) -> bool:
    return quantity <= min_threshold


# --- Internal/DB Models ---
class ProductInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user_id: Optional[ObjectId] = None
    name: str
    description: Optional[str] = None
    category: str
    brand: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(default=0, ge=0)
    min_threshold: int = Field(default=DEFAULT_MIN_THRESHOLD, ge=0)
    unit: str = "piece"
    image: Optional[str] = None
    is_active: bool = True
    low_stock_alert: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    def check_low_stock(self) -> bool:
        return is_low_stock(self.quantity, self.min_threshold)


# --- API Models ---
class ProductAPI(BaseModel):
    id: PyObjectId
    user_id: Optional[PyObjectId] = None
    name: str
    description: Optional[str] = None
    category: str
    brand: Optional[str] = None
    price: float
    quantity: int
    min_threshold: int
    unit: str
    image: Optional[str] = None
    is_active: bool
    low_stock_alert: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductCreateAPI(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100)
    brand: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(default=0, ge=0)
    min_threshold: int = Field(default=DEFAULT_MIN_THRESHOLD, ge=0)
    unit: str = "piece"
    image: Optional[str] = None
    is_active: bool = True

    @field_validator("name", "category")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class ProductUpdateAPI(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    brand: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    min_threshold: Optional[int] = Field(None, ge=0)
    unit: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")


class CategoryStatAPI(BaseModel):
    category: str
    count: int
    total_quantity: int
    total_value: float


class MigrationResultAPI(BaseModel):
    message: str
    migrated: int
    assigned_to: Optional[PyObjectId] = None


class ProductQRRequestAPI(BaseModel):
    product_name: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    batch_number: str = Field(..., min_length=1)
    manufacturing_date: Optional[date] = None
    expiry_date: Optional[date] = None

    @field_validator("product_name", "company_name", "batch_number")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field is required")
        return v


class ProductQRResponseAPI(BaseModel):
    success: bool = True
    qr_code: str
    data: str


class ProductListAPI(BaseModel):
    products: List[ProductAPI]
    total: int
