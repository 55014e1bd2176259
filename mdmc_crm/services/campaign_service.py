"""
Campaign service - campaign management, metrics and lifecycle.
"""
import logging
import uuid
from typing import Optional, List
from datetime import datetime, date, timedelta

from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.core.exceptions import raise_not_found, raise_forbidden, raise_validation_error
from mdmc_crm.core.permissions import MANAGER_AND_ABOVE, Role, check_ownership, is_agent
from mdmc_crm.repositories.campaign_repo import CampaignRepository
from mdmc_crm.repositories.lead_repo import LeadRepository
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.models.campaign import (
    Campaign, CampaignStatus, DAILY_METRICS_RETENTION_DAYS,
)
from mdmc_crm.models.user import User
from mdmc_crm.schemas.campaign import (
    CampaignCreate, CampaignUpdate, CampaignFilter, MetricsUpdate, DailyMetricCreate,
    OptimizationCreate, OptimizationRecord,
)

logger = logging.getLogger(__name__)

DAILY_METRIC_FIELDS = ("impressions", "clicks", "spend", "conversions", "revenue", "ctr", "cpc", "cpm")


def build_daily_metric(data: DailyMetricCreate) -> dict:
    """Daily metric entry with its own ctr/cpc/cpm."""
    entry = data.model_dump()
    entry["date"] = data.date.isoformat()
    entry["ctr"] = data.clicks / data.impressions * 100 if data.impressions else 0
    entry["cpc"] = data.spend / data.clicks if data.clicks else 0
    entry["cpm"] = data.spend / data.impressions * 1000 if data.impressions else 0
    return entry


def upsert_daily_metric(entries: List[dict], entry: dict, today: date = None) -> List[dict]:
    """
    Replace any entry for the same date, drop entries older than the
    retention window and return the list sorted by date.
    """
    today = today or datetime.utcnow().date()
    cutoff = (today - timedelta(days=DAILY_METRICS_RETENTION_DAYS)).isoformat()
    merged = [e for e in entries if e["date"] != entry["date"]]
    merged.append(entry)
    merged = [e for e in merged if e["date"] >= cutoff]
    return sorted(merged, key=lambda e: e["date"])


class CampaignService:
    """Service for campaign operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.campaign_repo = CampaignRepository(session)
        self.lead_repo = LeadRepository(session)
        self.user_repo = UserRepository(session)

    async def _get_visible(self, user: User, campaign_id: uuid.UUID, for_update: bool = False) -> Campaign:
        """Load a live campaign the caller can see (agents: manager or team)."""
        campaign = await self.campaign_repo.get_active(campaign_id, for_update=for_update)
        if not campaign:
            raise_not_found("Campaign", str(campaign_id))
        if is_agent(user) and not (
            check_ownership(user, campaign.manager_id) or campaign.is_team_member(user.id)
        ):
            raise_forbidden("You can only access campaigns you manage or work on")
        return campaign

    async def _get_managed(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        """Load a campaign the caller may change (agents: manager only)."""
        campaign = await self._get_visible(user, campaign_id, for_update=True)
        if is_agent(user) and not check_ownership(user, campaign.manager_id):
            raise_forbidden("Only the campaign manager can modify this campaign")
        return campaign

    async def _check_user(self, user_id: uuid.UUID) -> User:
        account = await self.user_repo.get(user_id)
        if not account or not account.is_active:
            raise_not_found("User", str(user_id))
        return account

    async def _check_client(self, client_id: uuid.UUID) -> None:
        if not await self.lead_repo.get_active(client_id):
            raise_not_found("Lead", str(client_id))

    async def _check_team(self, team: List[dict]) -> List[dict]:
        seen = set()
        members = []
        for member in team:
            if member["user_id"] in seen:
                continue
            await self._check_user(member["user_id"])
            seen.add(member["user_id"])
            members.append(member)
        return members

    def _set_status(self, campaign: Campaign, status: str) -> None:
        """Update status with the matching lifecycle timestamp."""
        now = datetime.utcnow()
        campaign.status = status
        if status == CampaignStatus.ACTIVE.value:
            if not campaign.started_at:
                campaign.started_at = now
            campaign.paused_at = None
        elif status == CampaignStatus.PAUSED.value:
            campaign.paused_at = now
        elif status == CampaignStatus.COMPLETED.value:
            campaign.completed_at = now

    def _apply_update(self, campaign: Campaign, update_data: dict) -> None:
        budget = update_data.pop("budget", None)
        if budget:
            for key, column in (("total", "budget_total"), ("spent", "budget_spent"),
                                ("currency", "budget_currency"), ("daily_budget", "daily_budget")):
                if key in budget:
                    setattr(campaign, column, budget[key])

        status = update_data.pop("status", None)
        if status:
            self._set_status(campaign, status)

        team = update_data.pop("team", None)
        if team is not None:
            self.campaign_repo.replace_team(campaign, team)

        for field, value in update_data.items():
            setattr(campaign, field, value)

    async def list(
        self,
        user: User,
        filters: Optional[CampaignFilter] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> dict:
        """List campaigns with filtering and pagination."""
        return await self.campaign_repo.search(user, filters, page, limit, sort, order_desc)

    async def get(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        """Get a campaign by ID."""
        return await self._get_visible(user, campaign_id)

    async def create(self, user: User, campaign_data: CampaignCreate) -> Campaign:
        """Create a new campaign. Agents always manage the campaigns they create."""
        data = campaign_data.model_dump()

        manager_id = data.pop("manager_id") or user.id
        if is_agent(user) and manager_id != user.id:
            raise_forbidden("Agents can only create campaigns they manage")
        await self._check_user(manager_id)

        if data.get("client_id"):
            await self._check_client(data["client_id"])
        team = await self._check_team(data.pop("team"))

        budget = data.pop("budget")
        campaign = Campaign(
            **data,
            manager_id=manager_id,
            budget_total=budget["total"],
            budget_spent=budget["spent"],
            budget_currency=budget["currency"],
            daily_budget=budget["daily_budget"],
            created_by=user.id
        )
        if campaign.status == CampaignStatus.ACTIVE.value:
            campaign.started_at = datetime.utcnow()
        self.campaign_repo.replace_team(campaign, team)

        campaign = await self.campaign_repo.save(campaign)
        logger.info("Campaign %s created by %s", campaign.id, user.id)
        return campaign

    async def update(self, user: User, campaign_id: uuid.UUID, campaign_data: CampaignUpdate) -> Campaign:
        """Update a campaign."""
        campaign = await self._get_managed(user, campaign_id)
        update_data = campaign_data.model_dump(exclude_unset=True)

        if "manager_id" in update_data and update_data["manager_id"] != campaign.manager_id:
            if Role(user.role) not in MANAGER_AND_ABOVE:
                raise_forbidden("Only managers and admins can reassign a campaign")
            await self._check_user(update_data["manager_id"])
        if update_data.get("client_id"):
            await self._check_client(update_data["client_id"])
        if update_data.get("team") is not None:
            update_data["team"] = await self._check_team(update_data["team"])

        start = update_data.get("start_date") or campaign.start_date
        end = update_data.get("end_date") or campaign.end_date
        if end <= start:
            raise_validation_error("end_date must be after start_date", field="end_date")

        self._apply_update(campaign, update_data)
        campaign.updated_by = user.id
        return await self.campaign_repo.save(campaign)

    async def archive(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        """Archive a campaign (managers and admins)."""
        if Role(user.role) not in MANAGER_AND_ABOVE:
            raise_forbidden("Only managers and admins can archive campaigns")

        campaign = await self._get_visible(user, campaign_id, for_update=True)
        now = datetime.utcnow()
        campaign.is_archived = True
        campaign.archived_at = now
        campaign.archived_by = user.id
        campaign.updated_by = user.id
        campaign = await self.campaign_repo.save(campaign)
        logger.info("Campaign %s archived by %s", campaign.id, user.id)
        return campaign

    async def update_metrics(self, user: User, campaign_id: uuid.UUID, metrics: MetricsUpdate) -> Campaign:
        """Overwrite raw counters; derived metrics are recomputed on save."""
        campaign = await self._get_visible(user, campaign_id, for_update=True)
        data = metrics.model_dump(exclude_none=True)
        if not data:
            raise_validation_error("No metrics supplied", field="metrics")

        spent = data.pop("spent", None)
        if spent is not None:
            campaign.budget_spent = spent
        for name, value in data.items():
            setattr(campaign, name, value)
        campaign.updated_by = user.id
        return await self.campaign_repo.save(campaign)

    async def add_daily_metric(self, user: User, campaign_id: uuid.UUID, data: DailyMetricCreate) -> Campaign:
        """Insert or replace the entry for one calendar date."""
        campaign = await self._get_visible(user, campaign_id, for_update=True)
        campaign.daily_metrics = upsert_daily_metric(campaign.daily_metrics or [], build_daily_metric(data))
        campaign.updated_by = user.id
        return await self.campaign_repo.save(campaign)

    async def _change_status(self, user: User, campaign_id: uuid.UUID, status: CampaignStatus) -> Campaign:
        campaign = await self._get_managed(user, campaign_id)
        self._set_status(campaign, status.value)
        campaign.updated_by = user.id
        campaign = await self.campaign_repo.save(campaign)
        logger.info("Campaign %s -> %s by %s", campaign.id, status.value, user.id)
        return campaign

    async def pause(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        return await self._change_status(user, campaign_id, CampaignStatus.PAUSED)

    async def resume(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        return await self._change_status(user, campaign_id, CampaignStatus.ACTIVE)

    async def complete(self, user: User, campaign_id: uuid.UUID) -> Campaign:
        return await self._change_status(user, campaign_id, CampaignStatus.COMPLETED)

    async def add_optimization(self, user: User, campaign_id: uuid.UUID, data: OptimizationCreate) -> Campaign:
        """Append an entry to the optimization log."""
        campaign = await self._get_managed(user, campaign_id)
        record = OptimizationRecord(**data.model_dump(), created_by=user.id)
        campaign.optimizations = [*(campaign.optimizations or []), record.model_dump(mode="json")]
        campaign.updated_by = user.id
        return await self.campaign_repo.save(campaign)

    async def get_stats(self, user: User) -> dict:
        return await self.campaign_repo.get_stats(user)

    async def get_performance(
        self,
        user: User,
        campaign_id: uuid.UUID,
        metric: str = "impressions",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> dict:
        """Per-day series of one daily metric."""
        if metric not in DAILY_METRIC_FIELDS:
            raise_validation_error(f"Unknown metric '{metric}'", field="metric")

        campaign = await self._get_visible(user, campaign_id)
        series = []
        for entry in campaign.daily_metrics or []:
            if start_date and entry["date"] < start_date.isoformat():
                continue
            if end_date and entry["date"] > end_date.isoformat():
                continue
            series.append({"date": entry["date"], "value": entry.get(metric) or 0})

        return {
            "campaign": {"id": campaign.id, "name": campaign.name, "type": campaign.type},
            "metric": metric,
            "performance": sorted(series, key=lambda e: e["date"])
        }

    async def bulk_update(self, user: User, campaign_ids: List[uuid.UUID], campaign_data: CampaignUpdate) -> dict:
        """
        Apply one update to many campaigns. Fails as a whole if any campaign is
        missing or, for agents, not managed by the caller.
        """
        update_data = campaign_data.model_dump(exclude_unset=True)
        if not update_data:
            raise_validation_error("No fields to update", field="updates")
        for field in ("team", "start_date", "end_date"):
            if field in update_data:
                raise_validation_error(f"{field} cannot be bulk updated", field=field)
        if "manager_id" in update_data:
            if Role(user.role) not in MANAGER_AND_ABOVE:
                raise_forbidden("Only managers and admins can reassign campaigns")
            await self._check_user(update_data["manager_id"])
        if update_data.get("client_id"):
            await self._check_client(update_data["client_id"])

        unique_ids = list(dict.fromkeys(campaign_ids))
        campaigns = [
            c for c in await self.campaign_repo.get_many(unique_ids, for_update=True)
            if not c.is_archived
        ]
        if len(campaigns) != len(unique_ids):
            found = {c.id for c in campaigns}
            raise_not_found("Campaign", ", ".join(str(i) for i in unique_ids if i not in found))

        if is_agent(user) and not all(check_ownership(user, c.manager_id) for c in campaigns):
            raise_forbidden("You can only update campaigns you manage")

        for campaign in campaigns:
            self._apply_update(campaign, dict(update_data))
            campaign.updated_by = user.id
        await self.campaign_repo.save_all(campaigns)

        logger.info("Bulk updated %d campaigns by %s", len(campaigns), user.id)
        return {"matched": len(campaigns), "modified": len(campaigns)}

    async def duplicate(self, user: User, campaign_id: uuid.UUID, name: Optional[str] = None) -> Campaign:
        """Copy a campaign's setup into a new draft with zeroed metrics."""
        source = await self._get_visible(user, campaign_id)

        copy = Campaign(
            name=name or f"{source.name} (Copy)",
            description=source.description,
            type=source.type,
            category=source.category,
            status=CampaignStatus.DRAFT.value,
            start_date=source.start_date,
            end_date=source.end_date,
            timezone=source.timezone,
            budget_total=source.budget_total,
            budget_currency=source.budget_currency,
            daily_budget=source.daily_budget,
            manager_id=user.id if is_agent(user) else source.manager_id,
            client_id=source.client_id,
            tags=list(source.tags or []),
            created_by=user.id
        )
        self.campaign_repo.replace_team(
            copy, [{"user_id": m.user_id, "role": m.role} for m in source.team or []]
        )
        copy = await self.campaign_repo.save(copy)
        logger.info("Campaign %s duplicated to %s by %s", source.id, copy.id, user.id)
        return copy
