# bizhub/models/api_common.py

from typing import Annotated, Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, Field


def _stringify_object_id(value: Any) -> Any:
    return str(value) if isinstance(value, ObjectId) else value


# ObjectId fields coming from DB models are exposed as hex strings
PyObjectId = Annotated[str, BeforeValidator(_stringify_object_id)]


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


class StatusResponse(BaseModel):
    status: str = Field(..., description="Overall status (ok, error, accepted...)")
    message: Optional[str] = None


class DetailResponse(BaseModel):
    """Error body returned by the HTTP exception handler."""
    detail: str


class ErrorDetail(BaseModel):
    field: Optional[str | int | List[str | int]] = None
    message: str


class ValidationErrorResponse(BaseModel):
    detail: str = "Validation Error"
    errors: List[ErrorDetail]


class CountResponse(BaseModel):
    count: int
