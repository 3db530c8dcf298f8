# bizhub/modules/notifications/models.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

NOTIFICATION_TYPES = Literal["low_stock", "new_sale", "new_message", "ai_alert", "system", "team"]


class NotificationInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user_id: ObjectId
    type: NOTIFICATION_TYPES
    title: str
    message: str
    is_read: bool = False
    link: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


class NotificationAPI(BaseModel):
    id: PyObjectId
    type: NOTIFICATION_TYPES
    title: str
    message: str
    is_read: bool
    link: Optional[str] = None
    metadata: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListAPI(BaseModel):
    notifications: List[NotificationAPI]
    unread_count: int


class MarkAllReadAPI(BaseModel):
    message: str
    updated: int
