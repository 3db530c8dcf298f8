# bizhub/modules/invites/models.py
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

INVITE_STATUSES = Literal["pending", "accepted", "rejected", "expired"]


class InviteInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    email: str
    status: INVITE_STATUSES = "pending"
    token: str
    invited_by: ObjectId
    owner_id: ObjectId
    invited_at: datetime = Field(default_factory=utc_now)
    last_sent_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[ObjectId] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Pending and not yet past its expiry."""
        return self.status == "pending" and self.expires_at > (now or utc_now())


class InviteAPI(BaseModel):
    id: PyObjectId
    email: str
    status: INVITE_STATUSES
    invited_by: PyObjectId
    invited_at: datetime
    last_sent_at: datetime
    expires_at: datetime
    accepted_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InviteCreateAPI(BaseModel):
    email: EmailStr


class InviteResultAPI(BaseModel):
    success: bool
    message: str
    invite: InviteAPI
    email_sent: bool
    email_error: Optional[str] = None


class InviteListAPI(BaseModel):
    success: bool = True
    invites: List[InviteAPI]


class InviteDetailsAPI(BaseModel):
    email: str
    inviter_name: str
    inviter_email: str
    expires_at: datetime
    invited_at: datetime
