"""
Lead schemas.
"""
import uuid
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from mdmc_crm.models.lead import (
    LeadStatus, LeadSource, Genre, LeadPriority, Temperature, ServiceType,
    Currency, InteractionType, InteractionOutcome,
)
from mdmc_crm.schemas.common import UTCDatetime, not_null


def _normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]


class MusicLinks(BaseModel):
    """Where the artist's music can be found."""
    youtube: Optional[str] = None
    spotify: Optional[str] = None
    soundcloud: Optional[str] = None
    apple_music: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    website: Optional[str] = None


class _BudgetRangeMixin(BaseModel):
    @model_validator(mode="after")
    def check_budget_range(self):
        low = getattr(self, "budget_min", None)
        high = getattr(self, "budget_max", None)
        if low is not None and high is not None and high < low:
            raise ValueError("budget_max must be greater than or equal to budget_min")
        return self


class LeadCreate(_BudgetRangeMixin):
    """Create a new lead."""
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = None
    artist_name: Optional[str] = Field(default=None, max_length=100)
    genre: Genre = Genre.OTHER
    music_links: MusicLinks = Field(default_factory=MusicLinks)
    source: LeadSource
    source_details: Optional[str] = None
    campaign_id: Optional[uuid.UUID] = None
    status: LeadStatus = LeadStatus.NEW
    priority: LeadPriority = LeadPriority.MEDIUM
    score: int = Field(default=50, ge=0, le=100)
    budget_min: Optional[float] = Field(default=None, ge=0)
    budget_max: Optional[float] = Field(default=None, ge=0)
    budget_currency: Currency = Currency.USD
    services_interested: List[ServiceType] = []
    project_description: Optional[str] = Field(default=None, max_length=2000)
    preferred_contact_method: Optional[str] = None
    urgency: Optional[str] = None
    expected_start_date: Optional[UTCDatetime] = None
    assigned_to: Optional[uuid.UUID] = None
    next_follow_up: Optional[UTCDatetime] = None
    follow_up_reason: Optional[str] = None
    tags: List[str] = []
    custom_fields: dict = {}
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "first_name": "Maya",
                "last_name": "Reyes",
                "email": "maya@artist.io",
                "artist_name": "MAYA R",
                "genre": "Pop",
                "source": "social_media",
                "services_interested": ["youtube_promotion", "meta_ads"],
                "budget_min": 500,
                "budget_max": 2000,
                "tags": ["new-single"]
            }
        }


class LeadUpdate(_BudgetRangeMixin):
    """Update an existing lead. Assignment changes go through the assign endpoint."""
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    artist_name: Optional[str] = Field(default=None, max_length=100)
    genre: Optional[Genre] = None
    music_links: Optional[MusicLinks] = None
    source: Optional[LeadSource] = None
    source_details: Optional[str] = None
    campaign_id: Optional[uuid.UUID] = None
    status: Optional[LeadStatus] = None
    priority: Optional[LeadPriority] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)
    budget_min: Optional[float] = Field(default=None, ge=0)
    budget_max: Optional[float] = Field(default=None, ge=0)
    budget_currency: Optional[Currency] = None
    services_interested: Optional[List[ServiceType]] = None
    project_description: Optional[str] = Field(default=None, max_length=2000)
    preferred_contact_method: Optional[str] = None
    urgency: Optional[str] = None
    expected_start_date: Optional[UTCDatetime] = None
    next_follow_up: Optional[UTCDatetime] = None
    follow_up_reason: Optional[str] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[dict] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @field_validator(
        "first_name", "last_name", "email", "genre", "music_links", "source", "status",
        "priority", "score", "budget_currency", "services_interested", "tags", "custom_fields",
        mode="before"
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v):
        return _normalize_tags(v)

    class Config:
        use_enum_values = True


class LeadFilter(BaseModel):
    """Filters for lead search."""
    status: Optional[LeadStatus] = None
    source: Optional[LeadSource] = None
    genre: Optional[Genre] = None
    priority: Optional[LeadPriority] = None
    temperature: Optional[Temperature] = None
    assigned_to: Optional[uuid.UUID] = None
    campaign_id: Optional[uuid.UUID] = None
    min_score: Optional[int] = None
    max_score: Optional[int] = None
    created_after: Optional[UTCDatetime] = None
    created_before: Optional[UTCDatetime] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None


class InteractionCreate(BaseModel):
    """Append an interaction to a lead's history."""
    type: InteractionType
    description: str = Field(min_length=1, max_length=500)
    outcome: Optional[InteractionOutcome] = None
    date: Optional[UTCDatetime] = None
    next_action: Optional[str] = None
    next_action_date: Optional[UTCDatetime] = None

    class Config:
        use_enum_values = True


class InteractionRecord(InteractionCreate):
    """Stored interaction entry."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    date: UTCDatetime = Field(default_factory=datetime.utcnow)
    created_by: Optional[uuid.UUID] = None


class FollowUpRequest(BaseModel):
    next_follow_up: UTCDatetime
    reason: Optional[str] = None


class ConvertRequest(BaseModel):
    conversion_value: float = Field(ge=0)


class MarkLostRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class AssignRequest(BaseModel):
    assigned_to: uuid.UUID


class LeadBulkUpdate(BaseModel):
    lead_ids: List[uuid.UUID] = Field(min_length=1)
    updates: LeadUpdate


class BulkUpdateResponse(BaseModel):
    matched: int
    modified: int


class LeadResponse(BaseModel):
    """Lead response."""
    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: Optional[str]
    artist_name: Optional[str]
    genre: str
    music_links: dict
    source: str
    source_details: Optional[str]
    campaign_id: Optional[uuid.UUID]
    status: str
    priority: str
    score: int
    temperature: str
    budget_min: Optional[float]
    budget_max: Optional[float]
    budget_currency: str
    services_interested: List[str]
    project_description: Optional[str]
    preferred_contact_method: Optional[str]
    urgency: Optional[str]
    expected_start_date: Optional[datetime]
    assigned_to: Optional[uuid.UUID]
    assigned_at: Optional[datetime]
    interactions: List[dict]
    interaction_count: int
    last_interaction: Optional[dict]
    next_follow_up: Optional[datetime]
    follow_up_reason: Optional[str]
    is_overdue: bool
    tags: List[str]
    custom_fields: dict
    city: Optional[str]
    state: Optional[str]
    country: Optional[str]
    converted_at: Optional[datetime]
    conversion_value: Optional[float]
    days_since_created: int
    created_by: Optional[uuid.UUID]
    updated_by: Optional[uuid.UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
