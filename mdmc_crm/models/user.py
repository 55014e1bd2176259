"""
User (account) model.
Accounts carry a role and an explicit permission list seeded from the role.
"""
import uuid
from datetime import datetime
from typing import Optional, List

from sqlmodel import SQLModel, Field

from mdmc_crm.core.permissions import Role, has_permission
from mdmc_crm.models.columns import json_column


class User(SQLModel, table=True):
    """
    CRM account. Never hard-deleted, only deactivated.
    An account always has a password hash, a Google id, or both.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Profile
    first_name: str
    last_name: str
    email: str = Field(unique=True, index=True)  # stored lower-case
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    timezone: str = Field(default="UTC")
    preferences: dict = Field(default_factory=dict, sa_column=json_column())

    # Auth
    password_hash: Optional[str] = None
    google_id: Optional[str] = Field(default=None, unique=True, index=True)

    # Authorization
    role: str = Field(default=Role.AGENT.value, index=True)
    permissions: List[str] = Field(default_factory=list, sa_column=json_column())

    # Status
    is_active: bool = Field(default=True, index=True)
    is_verified: bool = Field(default=False)

    # Activity
    last_login_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    login_count: int = Field(default=0)

    # One-time tokens (only SHA-256 digests are stored)
    password_reset_token_hash: Optional[str] = Field(default=None, index=True)
    password_reset_expires_at: Optional[datetime] = None
    email_verification_token_hash: Optional[str] = Field(default=None, index=True)
    email_verification_expires_at: Optional[datetime] = None

    # Audit
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def initials(self) -> str:
        return f"{self.first_name[:1]}{self.last_name[:1]}".upper()

    def has_permission(self, permission: str) -> bool:
        return has_permission(self, permission)
