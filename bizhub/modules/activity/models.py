# bizhub/modules/activity/models.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

ACTIVITY_ACTIONS = Literal["login", "logout", "create", "update", "delete", "view", "send", "generate", "export"]
ACTIVITY_RESOURCES = Literal[
    "user", "product", "sale", "message", "notification", "report", "profile", "dashboard", "team"
]


class ActivityInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    user_id: ObjectId
    user_name: str
    action: ACTIVITY_ACTIONS
    resource: ACTIVITY_RESOURCES
    description: str
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


class ActivityAPI(BaseModel):
    id: PyObjectId
    user_id: PyObjectId
    user_name: str
    action: ACTIVITY_ACTIONS
    resource: ACTIVITY_RESOURCES
    description: str
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityCreateAPI(BaseModel):
    action: ACTIVITY_ACTIONS
    resource: ACTIVITY_RESOURCES
    description: str = Field(..., min_length=1)
    details: Dict[str, Any] = Field(default_factory=dict)


class ActivitySummaryAPI(BaseModel):
    total: int
    today: int
    this_week: int
    login: int
    create: int
    update: int
    view: int


class PaginationAPI(BaseModel):
    total: int
    limit: int


class ActivityListAPI(BaseModel):
    activities: List[ActivityAPI]
    stats: ActivitySummaryAPI
    pagination: PaginationAPI


class ActivityStatsAPI(BaseModel):
    total: int
    today: int
    this_week: int
    by_action: Dict[str, int]
    by_resource: Dict[str, int]
