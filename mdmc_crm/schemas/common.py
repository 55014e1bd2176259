"""
Common schemas used across multiple endpoints.
"""
from datetime import datetime, timezone
from typing import List, Optional

from typing_extensions import Annotated
from pydantic import AfterValidator, BaseModel


class MessageResponse(BaseModel):
    """Simple message response."""
    success: bool = True
    message: str

    class Config:
        json_schema_extra = {"example": {"success": True, "message": "Operation successful"}}


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing request."""
    success: bool = False
    message: str
    code: Optional[str] = None
    errors: Optional[List[dict]] = None

    class Config:
        json_schema_extra = {
            "example": {"success": False, "message": "Token has expired", "code": "TOKEN_EXPIRED"}
        }


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str = "1.0.0"


def to_naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UTCDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


def not_null(value):
    """Partial updates may omit a field but not clear a required one."""
    if value is None:
        raise ValueError("Field cannot be null")
    return value
