# bizhub/modules/chat/models.py
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

MAX_CHAT_TEXT = 2000


class ChatMessageInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    from_user_id: ObjectId
    to_user_id: Optional[ObjectId] = None  # None = public room
    text: str
    delivered: bool = False
    read: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)


class ChatMessageAPI(BaseModel):
    id: PyObjectId
    text: str
    from_user_id: PyObjectId
    from_username: Optional[str] = None
    to_user_id: Optional[PyObjectId] = None
    timestamp: datetime
    is_me: bool = False
    delivered: bool = False
    read: bool = False


class ConversationLastMessageAPI(BaseModel):
    text: str
    timestamp: datetime
    from_user_id: PyObjectId
    to_user_id: Optional[PyObjectId] = None
    read: bool


class ConversationAPI(BaseModel):
    user_id: PyObjectId
    user_name: Optional[str] = None
    last_message: ConversationLastMessageAPI
    unread_count: int


class OnlineUsersAPI(BaseModel):
    users: List[str]
    count: int
