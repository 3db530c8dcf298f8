# bizhub/modules/messaging/models.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId
from bizhub.services.twilio_service import SMS_MAX_LENGTH

CHANNELS = Literal["web", "email", "whatsapp", "sms"]
MESSAGE_STATUSES = Literal["sent", "delivered", "read", "failed"]


# --- Internal/DB Models ---
class MessageInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    channel: CHANNELS
    from_address: str
    to_address: str
    subject: Optional[str] = None
    content: str
    status: MESSAGE_STATUSES = "sent"
    sent_by: ObjectId
    owner_id: ObjectId
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


# --- API Models ---
class MessageAPI(BaseModel):
    id: PyObjectId
    channel: CHANNELS
    from_address: str
    to_address: str
    subject: Optional[str] = None
    content: str
    status: MESSAGE_STATUSES
    sent_by: PyObjectId
    metadata: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SendEmailAPI(BaseModel):
    to: Union[EmailStr, List[EmailStr]]
    subject: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)

    @field_validator("to")
    @classmethod
    def non_empty_recipients(cls, v):
        if isinstance(v, list) and not v:
            raise ValueError("At least one recipient is required")
        return v

    def recipients(self) -> List[str]:
        return [str(r) for r in (self.to if isinstance(self.to, list) else [self.to])]


class SendWhatsAppAPI(BaseModel):
    to: Union[str, List[str]]
    message: str = ""

    def recipients(self) -> List[str]:
        return self.to if isinstance(self.to, list) else [self.to]


class SendSmsAPI(BaseModel):
    phone: str = ""
    message: str = Field("", max_length=SMS_MAX_LENGTH)


class SmsResponseAPI(BaseModel):
    success: bool
    message: str
    sid: Optional[str] = None


class DeliveryResultAPI(BaseModel):
    to: str
    success: bool
    code: Optional[str] = None
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class BulkSendResultAPI(BaseModel):
    success: bool
    code: Optional[str] = None
    message: str
    messages: List[MessageAPI] = []
    results: List[DeliveryResultAPI] = []
    total_sent: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: List[str] = []


class ChannelStatusAPI(BaseModel):
    channel: CHANNELS
    configured: bool
    missing: List[str] = []


class CustomerAPI(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    total_purchases: int
    total_spent: float
    last_purchase: datetime


class ChannelStatAPI(BaseModel):
    count: int = 0
    sent: int = 0
    failed: int = 0


class MessageStatsAPI(BaseModel):
    by_channel: Dict[str, ChannelStatAPI]
    total_messages: int
    recent_messages: int
