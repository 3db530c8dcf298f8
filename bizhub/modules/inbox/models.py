# bizhub/modules/inbox/models.py
import base64
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId
from bizhub.modules.messaging.models import CHANNELS, MESSAGE_STATUSES

DIRECTIONS = Literal["inbound", "outbound"]
PARTY_TYPES = Literal["customer", "staff", "system"]


def make_thread_id(name: str, email: Optional[str] = None, phone: Optional[str] = None) -> str:
    """Stable thread id for a customer, keyed on email, then phone, then name."""
    identifier = email or phone or name
    encoded = base64.b64encode(identifier.encode("utf-8")).decode("ascii")
    return "thread_" + re.sub(r"[^a-zA-Z0-9]", "", encoded)


class CustomerInfo(BaseModel):
    name: str
    email: Optional[str] = ""
    phone: Optional[str] = ""

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Customer name is required")
        return v

    @field_validator("email", "phone")
    @classmethod
    def strip_contact(cls, v: Optional[str]) -> str:
        return (v or "").strip()


class Party(BaseModel):
    type: PARTY_TYPES
    user_id: Optional[ObjectId] = None
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Attachment(BaseModel):
    filename: str
    url: str
    type: Optional[str] = None
    size: Optional[int] = None


# --- Internal/DB Models ---
class CustomerMessageInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    customer: CustomerInfo
    thread_id: str
    direction: DIRECTIONS
    channel: CHANNELS = "web"
    sender: Party
    recipient: Party
    subject: Optional[str] = ""
    content: str
    status: MESSAGE_STATUSES = "sent"
    read_at: Optional[datetime] = None
    owner_id: Optional[ObjectId] = None
    attachments: List[Attachment] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


# --- API Models ---
class PartyAPI(BaseModel):
    type: PARTY_TYPES
    user_id: Optional[PyObjectId] = None
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CustomerMessageAPI(BaseModel):
    id: PyObjectId
    customer: CustomerInfo
    thread_id: str
    direction: DIRECTIONS
    channel: CHANNELS
    sender: PartyAPI
    recipient: PartyAPI
    subject: Optional[str] = ""
    content: str
    status: MESSAGE_STATUSES
    read_at: Optional[datetime] = None
    attachments: List[Attachment] = []
    metadata: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerMessageCreateAPI(BaseModel):
    customer: CustomerInfo
    content: str
    subject: Optional[str] = ""
    thread_id: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message content is required")
        return v


class CustomerMessageSendAPI(CustomerMessageCreateAPI):
    channel: CHANNELS = "web"


class ThreadSummaryAPI(BaseModel):
    thread_id: str
    customer: CustomerInfo
    last_message: datetime
    last_message_content: str
    unread_count: int
    message_count: int


class InboxStatsAPI(BaseModel):
    total_messages: int = 0
    inbound_messages: int = 0
    outbound_messages: int = 0
    unread_messages: int = 0
    total_threads: int = 0
