"""
Campaign schemas.
"""
import uuid
from typing import Optional, List, Any
from datetime import datetime, date as date_type
from pydantic import BaseModel, Field, field_validator, model_validator

from mdmc_crm.models.campaign import (
    CampaignType, CampaignCategory, CampaignStatus, TeamRole, OptimizationType,
)
from mdmc_crm.models.lead import Currency
from mdmc_crm.schemas.common import UTCDatetime, not_null


class BudgetIn(BaseModel):
    total: float = Field(ge=0)
    spent: float = Field(default=0, ge=0)
    currency: Currency = Currency.USD
    daily_budget: Optional[float] = Field(default=None, ge=0)

    class Config:
        use_enum_values = True


class BudgetUpdate(BaseModel):
    total: Optional[float] = Field(default=None, ge=0)
    spent: Optional[float] = Field(default=None, ge=0)
    currency: Optional[Currency] = None
    daily_budget: Optional[float] = Field(default=None, ge=0)

    @field_validator("total", "spent", "currency", mode="before")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    class Config:
        use_enum_values = True


class TeamMemberIn(BaseModel):
    user_id: uuid.UUID
    role: TeamRole = TeamRole.ANALYST

    class Config:
        use_enum_values = True


class TeamMemberResponse(BaseModel):
    user_id: uuid.UUID
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class MetricsUpdate(BaseModel):
    """Raw counters; derived metrics are always recomputed from these."""
    impressions: Optional[int] = Field(default=None, ge=0)
    reach: Optional[int] = Field(default=None, ge=0)
    clicks: Optional[int] = Field(default=None, ge=0)
    views: Optional[int] = Field(default=None, ge=0)
    engagements: Optional[int] = Field(default=None, ge=0)
    conversions: Optional[int] = Field(default=None, ge=0)
    leads: Optional[int] = Field(default=None, ge=0)
    revenue: Optional[float] = Field(default=None, ge=0)
    spent: Optional[float] = Field(default=None, ge=0)


def _lower_tags(tags):
    if tags is None:
        return None
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


class CampaignCreate(BaseModel):
    """Create a new campaign."""
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: CampaignType
    category: CampaignCategory = CampaignCategory.ACQUISITION
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: UTCDatetime
    end_date: UTCDatetime
    timezone: str = "UTC"
    budget: BudgetIn
    manager_id: Optional[uuid.UUID] = None
    client_id: Optional[uuid.UUID] = None
    team: List[TeamMemberIn] = []
    tags: List[str] = []

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _lower_tags(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "name": "Summer Single Push",
                "type": "youtube_promotion",
                "start_date": "2025-06-01T00:00:00",
                "end_date": "2025-06-30T00:00:00",
                "budget": {"total": 5000, "currency": "USD"},
                "tags": ["summer"]
            }
        }


class CampaignUpdate(BaseModel):
    """Update an existing campaign."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    type: Optional[CampaignType] = None
    category: Optional[CampaignCategory] = None
    status: Optional[CampaignStatus] = None
    start_date: Optional[UTCDatetime] = None
    end_date: Optional[UTCDatetime] = None
    timezone: Optional[str] = None
    budget: Optional[BudgetUpdate] = None
    manager_id: Optional[uuid.UUID] = None
    client_id: Optional[uuid.UUID] = None
    team: Optional[List[TeamMemberIn]] = None
    tags: Optional[List[str]] = None

    @field_validator(
        "name", "type", "category", "status", "start_date", "end_date", "timezone",
        "budget", "manager_id", "team", "tags",
        mode="before"
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _lower_tags(v)

    class Config:
        use_enum_values = True


class CampaignFilter(BaseModel):
    """Filters for campaign search."""
    status: Optional[CampaignStatus] = None
    type: Optional[CampaignType] = None
    category: Optional[CampaignCategory] = None
    manager_id: Optional[uuid.UUID] = None
    min_budget: Optional[float] = None
    max_budget: Optional[float] = None
    start_date: Optional[UTCDatetime] = None
    end_date: Optional[UTCDatetime] = None
    created_after: Optional[UTCDatetime] = None
    created_before: Optional[UTCDatetime] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None


class DailyMetricCreate(BaseModel):
    date: date_type
    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    spend: float = Field(default=0, ge=0)
    conversions: int = Field(default=0, ge=0)
    revenue: float = Field(default=0, ge=0)


class OptimizationCreate(BaseModel):
    type: OptimizationType
    description: str = Field(min_length=1, max_length=500)
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    reason: Optional[str] = None
    impact: Optional[str] = None

    class Config:
        use_enum_values = True


class OptimizationRecord(OptimizationCreate):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    date: UTCDatetime = Field(default_factory=datetime.utcnow)
    created_by: Optional[uuid.UUID] = None


class CampaignBulkUpdate(BaseModel):
    campaign_ids: List[uuid.UUID] = Field(min_length=1)
    updates: CampaignUpdate


class DuplicateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class CampaignResponse(BaseModel):
    """Campaign response with nested budget and metrics."""
    id: uuid.UUID
    name: str
    description: Optional[str]
    type: str
    category: str
    status: str
    start_date: datetime
    end_date: datetime
    timezone: str
    budget: dict
    metrics: dict
    budget_utilization: float
    duration_days: int
    days_remaining: int
    is_running: bool
    manager_id: uuid.UUID
    client_id: Optional[uuid.UUID]
    team: List[TeamMemberResponse]
    tags: List[str]
    daily_metrics: List[dict]
    optimizations: List[dict]
    is_archived: bool
    archived_at: Optional[datetime]
    started_at: Optional[datetime]
    paused_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_by: Optional[uuid.UUID]
    updated_by: Optional[uuid.UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
