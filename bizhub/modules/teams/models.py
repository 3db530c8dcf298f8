# bizhub/modules/teams/models.py
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

MEMBER_ROLES = Literal["member", "manager"]
MEMBER_STATUSES = Literal["active", "inactive", "pending"]


# --- Internal/DB Models ---
class TeamMember(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId)
    user_id: Optional[ObjectId] = None
    name: str
    email: str
    role: MEMBER_ROLES = "member"
    status: MEMBER_STATUSES = "active"
    joined_at: datetime = Field(default_factory=utc_now)
    sales_count: int = 0
    products_count: int = 0

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class TeamInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    team_name: str
    owner_id: ObjectId
    owner_name: str
    owner_email: str
    members: List[TeamMember] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    def has_member_email(self, email: str) -> bool:
        email = email.strip().lower()
        return any(m.email == email for m in self.members)


# --- API Models ---
class TeamMemberAPI(BaseModel):
    id: PyObjectId
    user_id: Optional[PyObjectId] = None
    name: str
    email: str
    role: MEMBER_ROLES
    status: MEMBER_STATUSES
    joined_at: datetime
    sales_count: int = 0
    products_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class TeamAPI(BaseModel):
    id: PyObjectId
    team_name: str
    owner_id: PyObjectId
    owner_name: str
    owner_email: str
    members: List[TeamMemberAPI]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamCreateAPI(BaseModel):
    team_name: str = Field(..., min_length=1, max_length=120)

    @field_validator("team_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Team name is required")
        return v


class TeamCreatedAPI(BaseModel):
    success: bool = True
    message: str
    team: TeamAPI


class MyTeamAPI(BaseModel):
    success: bool = True
    has_team: bool
    team: Optional[TeamAPI] = None
    is_owner: bool = False


class MemberCreateAPI(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class MemberAddedAPI(BaseModel):
    success: bool = True
    message: str
    member: TeamMemberAPI


class TeamStatsAPI(BaseModel):
    team_name: str
    total_members: int
    active_members: int
    total_sales: int
    total_products: int
    my_sales: int
    my_products: int
    is_owner: bool


class TeamStatsResponseAPI(BaseModel):
    success: bool = True
    has_team: bool
    stats: Optional[TeamStatsAPI] = None


class PerformanceRowAPI(BaseModel):
    id: PyObjectId
    name: str
    sales: float
    sales_count: int
    messages_sent: int
    conversion_rate: int


class PerformanceTotalsAPI(BaseModel):
    total_sales: float
    total_messages: int
    avg_conversion: int


class TeamPerformanceAPI(BaseModel):
    leaderboard: List[PerformanceRowAPI]
    individual_performance: List[PerformanceRowAPI]
    totals: PerformanceTotalsAPI
    current_user_id: PyObjectId
    current_user_role: str
