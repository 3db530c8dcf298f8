# bizhub/modules/users/models.py
from datetime import datetime
from typing import Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from bizhub.core.repository import utc_now
from bizhub.models.api_common import PyObjectId

# --- Constants ---
USER_ROLES = Literal["admin", "employee", "user"]
GENDERS = Literal["male", "female", "other", "prefer_not_to_say"]
MIN_PASSWORD_LENGTH = 6


# --- Internal/DB Models ---
class UserCreateInternal(BaseModel):
    name: str
    email: str
    hashed_password: str
    role: USER_ROLES = "user"
    owner_id: Optional[ObjectId] = None
    phone: Optional[str] = None
    is_active: bool = True

    model_config = ConfigDict(arbitrary_types_allowed=True)


class UserInDB(BaseModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    name: str
    email: str
    hashed_password: str
    role: USER_ROLES = "user"
    owner_id: Optional[ObjectId] = None
    phone: Optional[str] = None
    gender: Optional[GENDERS] = None
    avatar: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    exclude_from_leaderboard: bool = False
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def scope_owner_id(self) -> ObjectId:
        """Id of the account owner whose team this user works in."""
        return self.owner_id or self.id


# --- API Models ---
class UserAPI(BaseModel):
    id: PyObjectId
    name: str
    email: str
    role: USER_ROLES
    owner_id: Optional[PyObjectId] = None
    phone: Optional[str] = None
    gender: Optional[GENDERS] = None
    avatar: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegisterAPI(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    phone: Optional[str] = None
    invite_token: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginAPI(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenAPI(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserAPI


class ForgotPasswordAPI(BaseModel):
    email: EmailStr


class ResetPasswordAPI(BaseModel):
    token: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class ProfileUpdateAPI(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    gender: Optional[GENDERS] = None


class PasswordChangeAPI(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class UserAdminUpdateAPI(BaseModel):
    role: Optional[USER_ROLES] = None
    is_active: Optional[bool] = None
