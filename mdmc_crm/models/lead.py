"""
Lead model - an artist or label prospect working through the sales pipeline.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlmodel import SQLModel, Field

from mdmc_crm.models.columns import json_column


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATING = "negotiating"
    WON = "won"
    LOST = "lost"
    UNQUALIFIED = "unqualified"


# Pipeline order used by the conversion funnel
FUNNEL_ORDER = [
    LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.QUALIFIED,
    LeadStatus.PROPOSAL_SENT, LeadStatus.NEGOTIATING, LeadStatus.WON,
]

CLOSED_STATUSES = (LeadStatus.WON.value, LeadStatus.LOST.value, LeadStatus.UNQUALIFIED.value)


class LeadSource(str, Enum):
    WEBSITE = "website"
    SOCIAL_MEDIA = "social_media"
    EMAIL = "email"
    REFERRAL = "referral"
    ADVERTISING = "advertising"
    EVENT = "event"
    COLD_OUTREACH = "cold_outreach"
    ORGANIC = "organic"
    OTHER = "other"


class Genre(str, Enum):
    POP = "Pop"
    ROCK = "Rock"
    HIP_HOP = "Hip-Hop"
    RNB = "R&B"
    COUNTRY = "Country"
    ELECTRONIC = "Electronic"
    JAZZ = "Jazz"
    CLASSICAL = "Classical"
    FOLK = "Folk"
    BLUES = "Blues"
    REGGAE = "Reggae"
    PUNK = "Punk"
    METAL = "Metal"
    ALTERNATIVE = "Alternative"
    INDIE = "Indie"
    SOUL = "Soul"
    FUNK = "Funk"
    GOSPEL = "Gospel"
    LATIN = "Latin"
    WORLD = "World"
    OTHER = "Other"


class LeadPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Temperature(str, Enum):
    COLD = "cold"
    WARM = "warm"
    HOT = "hot"


class ServiceType(str, Enum):
    YOUTUBE_PROMOTION = "youtube_promotion"
    META_ADS = "meta_ads"
    TIKTOK_ADS = "tiktok_ads"
    SPOTIFY_PROMOTION = "spotify_promotion"
    PLAYLIST_PLACEMENT = "playlist_placement"
    INFLUENCER_MARKETING = "influencer_marketing"
    PR_CAMPAIGN = "pr_campaign"
    MUSIC_VIDEO_PRODUCTION = "music_video_production"
    SOCIAL_MEDIA_MANAGEMENT = "social_media_management"
    WEBSITE_DEVELOPMENT = "website_development"
    BRAND_DEVELOPMENT = "brand_development"
    CONSULTATION = "consultation"
    OTHER = "other"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"


class InteractionType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    PROPOSAL = "proposal"
    FOLLOW_UP = "follow_up"
    NOTE = "note"


class InteractionOutcome(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    NO_RESPONSE = "no_response"


def temperature_for(score: int, interaction_count: int) -> str:
    if score >= 80 or interaction_count >= 3:
        return Temperature.HOT.value
    if score >= 60 or interaction_count >= 1:
        return Temperature.WARM.value
    return Temperature.COLD.value


class Lead(SQLModel, table=True):
    """
    Lead entity. Soft-deleted leads are hidden from every read path.
    Interactions are append-only.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Contact
    first_name: str = Field(index=True)
    last_name: str = Field(index=True)
    email: str = Field(index=True)
    phone: Optional[str] = None

    # Artist profile
    artist_name: Optional[str] = Field(default=None, index=True)
    genre: str = Field(default=Genre.OTHER.value, index=True)
    music_links: dict = Field(default_factory=dict, sa_column=json_column())

    # Source tracking
    source: str = Field(index=True)
    source_details: Optional[str] = None
    campaign_id: Optional[uuid.UUID] = Field(default=None, foreign_key="campaign.id", index=True)

    # Qualification
    status: str = Field(default=LeadStatus.NEW.value, index=True)
    priority: str = Field(default=LeadPriority.MEDIUM.value)
    score: int = Field(default=50, index=True)
    temperature: str = Field(default=Temperature.COLD.value, index=True)

    # Budget and needs
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    budget_currency: str = Field(default=Currency.USD.value)
    services_interested: List[str] = Field(default_factory=list, sa_column=json_column())
    project_description: Optional[str] = None
    preferred_contact_method: Optional[str] = None
    urgency: Optional[str] = None
    expected_start_date: Optional[datetime] = None

    # Ownership
    assigned_to: Optional[uuid.UUID] = Field(default=None, foreign_key="user.id", index=True)
    assigned_at: Optional[datetime] = None

    # Activity
    interactions: List[dict] = Field(default_factory=list, sa_column=json_column())
    next_follow_up: Optional[datetime] = Field(default=None, index=True)
    follow_up_reason: Optional[str] = None

    # Organization
    tags: List[str] = Field(default_factory=list, sa_column=json_column())
    custom_fields: dict = Field(default_factory=dict, sa_column=json_column())

    # Location
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    # Conversion
    converted_at: Optional[datetime] = None
    conversion_value: Optional[float] = None

    # Soft delete
    is_deleted: bool = Field(default=False, index=True)
    deleted_at: Optional[datetime] = None

    # Audit
    created_by: Optional[uuid.UUID] = None
    updated_by: Optional[uuid.UUID] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def interaction_count(self) -> int:
        return len(self.interactions or [])

    @property
    def last_interaction(self) -> Optional[dict]:
        if not self.interactions:
            return None
        return self.interactions[-1]

    @property
    def is_overdue(self) -> bool:
        if not self.next_follow_up or self.status in CLOSED_STATUSES:
            return False
        return self.next_follow_up < datetime.utcnow()

    @property
    def days_since_created(self) -> int:
        return (datetime.utcnow() - self.created_at).days

    def apply_derived_fields(self) -> None:
        """Recompute temperature from score and interaction history."""
        self.temperature = temperature_for(self.score, self.interaction_count)
