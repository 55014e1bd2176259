"""
User schemas.
"""
import uuid
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from mdmc_crm.core.permissions import Role
from mdmc_crm.schemas.common import not_null


class UserResponse(BaseModel):
    """Account details response."""
    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    timezone: str
    preferences: dict = {}
    role: str
    permissions: List[str]
    is_active: bool
    is_verified: bool
    login_count: int
    last_login_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Fields an account may change on its own profile."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = None
    timezone: Optional[str] = None
    avatar_url: Optional[str] = None
    preferences: Optional[dict] = None

    @field_validator("first_name", "last_name", "timezone", "preferences", mode="before")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)


class UserCreate(BaseModel):
    """Account created by an administrator."""
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.AGENT
    phone: Optional[str] = None
    timezone: str = "UTC"
    is_verified: bool = False


class UserUpdate(ProfileUpdate):
    """Administrative update. role, permissions and is_active are admin-only."""
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    permissions: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator(
        "first_name", "last_name", "timezone", "preferences", "email", "role", "permissions", "is_active",
        mode="before"
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)


class RoleChangeRequest(BaseModel):
    role: Role


class PermissionsUpdate(BaseModel):
    permissions: List[str]


class UserBulkUpdate(BaseModel):
    user_ids: List[uuid.UUID] = Field(min_length=1)
    updates: UserUpdate
