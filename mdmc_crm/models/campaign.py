"""
Campaign model - paid music promotion campaigns with budget and performance metrics.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlmodel import SQLModel, Field, Relationship

from mdmc_crm.models.columns import json_column


class CampaignType(str, Enum):
    YOUTUBE_PROMOTION = "youtube_promotion"
    META_ADS = "meta_ads"
    TIKTOK_ADS = "tiktok_ads"
    SPOTIFY_PROMOTION = "spotify_promotion"
    PLAYLIST_PLACEMENT = "playlist_placement"
    INFLUENCER_MARKETING = "influencer_marketing"
    PR_CAMPAIGN = "pr_campaign"
    SOCIAL_MEDIA = "social_media"
    EMAIL_MARKETING = "email_marketing"
    CONTENT_MARKETING = "content_marketing"
    PAID_SEARCH = "paid_search"
    DISPLAY_ADS = "display_ads"
    RETARGETING = "retargeting"
    OTHER = "other"


class CampaignCategory(str, Enum):
    ACQUISITION = "acquisition"
    RETENTION = "retention"
    AWARENESS = "awareness"
    ENGAGEMENT = "engagement"
    CONVERSION = "conversion"


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TeamRole(str, Enum):
    MANAGER = "manager"
    ANALYST = "analyst"
    CREATIVE = "creative"
    STRATEGIST = "strategist"


class OptimizationType(str, Enum):
    BUDGET = "budget"
    TARGETING = "targeting"
    CREATIVE = "creative"
    BIDDING = "bidding"
    SCHEDULE = "schedule"


# Raw counters; derived metrics are computed from these and budget_spent
RAW_METRICS = ("impressions", "reach", "clicks", "views", "engagements", "conversions", "leads", "revenue")
DERIVED_METRICS = ("ctr", "cpc", "cpm", "cpa", "conversion_rate", "roas", "roi")

DAILY_METRICS_RETENTION_DAYS = 90


class CampaignMember(SQLModel, table=True):
    """
    Junction table for campaign team membership.
    """
    __tablename__ = "campaign_member"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    campaign_id: uuid.UUID = Field(foreign_key="campaign.id", index=True)
    user_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    role: str = Field(default=TeamRole.ANALYST.value)

    joined_at: datetime = Field(default_factory=datetime.utcnow)

    campaign: Optional["Campaign"] = Relationship(back_populates="team")


class Campaign(SQLModel, table=True):
    """
    Campaign entity. Archived rather than deleted.
    Derived metrics are recomputed from raw counters on every save.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Basic info
    name: str = Field(index=True)
    description: Optional[str] = None
    type: str = Field(index=True)
    category: str = Field(default=CampaignCategory.ACQUISITION.value, index=True)
    status: str = Field(default=CampaignStatus.DRAFT.value, index=True)

    # Schedule
    start_date: datetime
    end_date: datetime
    timezone: str = Field(default="UTC")
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Budget
    budget_total: float = Field(default=0)
    budget_spent: float = Field(default=0)
    budget_currency: str = Field(default="USD")
    daily_budget: Optional[float] = None

    # Raw metrics
    impressions: int = Field(default=0)
    reach: int = Field(default=0)
    clicks: int = Field(default=0)
    views: int = Field(default=0)
    engagements: int = Field(default=0)
    conversions: int = Field(default=0)
    leads: int = Field(default=0)
    revenue: float = Field(default=0)

    # Derived metrics
    ctr: float = Field(default=0)
    cpc: float = Field(default=0)
    cpm: float = Field(default=0)
    cpa: float = Field(default=0)
    conversion_rate: float = Field(default=0)
    roas: float = Field(default=0)
    roi: float = Field(default=0)

    # Ownership
    manager_id: uuid.UUID = Field(foreign_key="user.id", index=True)
    client_id: Optional[uuid.UUID] = Field(default=None, index=True)  # Lead reference, checked on write

    # Logs
    daily_metrics: List[dict] = Field(default_factory=list, sa_column=json_column())
    optimizations: List[dict] = Field(default_factory=list, sa_column=json_column())
    tags: List[str] = Field(default_factory=list, sa_column=json_column())

    # Archive
    is_archived: bool = Field(default=False, index=True)
    archived_at: Optional[datetime] = None
    archived_by: Optional[uuid.UUID] = None

    # Audit
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    team: List[CampaignMember] = Relationship(
        back_populates="campaign",
        sa_relationship_kwargs={"lazy": "selectin", "cascade": "all, delete-orphan"}
    )

    @property
    def budget(self) -> dict:
        return {
            "total": self.budget_total,
            "spent": self.budget_spent,
            "currency": self.budget_currency,
            "daily_budget": self.daily_budget,
        }

    @property
    def metrics(self) -> dict:
        return {name: getattr(self, name) for name in RAW_METRICS + DERIVED_METRICS}

    @property
    def budget_utilization(self) -> float:
        if self.budget_total > 0:
            return self.budget_spent / self.budget_total * 100
        return 0

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def days_remaining(self) -> int:
        return max(0, (self.end_date - datetime.utcnow()).days)

    @property
    def is_running(self) -> bool:
        now = datetime.utcnow()
        return self.status == CampaignStatus.ACTIVE.value and self.start_date <= now <= self.end_date

    def is_team_member(self, user_id: uuid.UUID) -> bool:
        return any(member.user_id == user_id for member in self.team or [])

    def apply_derived_fields(self) -> None:
        """Recompute derived metrics; values whose denominator is zero are kept."""
        spent = self.budget_spent or 0
        if self.impressions > 0:
            self.ctr = self.clicks / self.impressions * 100
            self.cpm = spent / self.impressions * 1000
        if self.clicks > 0:
            self.cpc = spent / self.clicks
        if self.conversions > 0:
            self.cpa = spent / self.conversions
            if self.clicks > 0:
                self.conversion_rate = self.conversions / self.clicks * 100
        if spent > 0:
            self.roas = self.revenue / spent
            self.roi = (self.revenue - spent) / spent * 100
