"""
Campaign repository.
"""
import uuid
from typing import Optional, List
from datetime import datetime

from sqlmodel import select, or_
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import func

from mdmc_crm.core.permissions import is_agent
from mdmc_crm.models.campaign import Campaign, CampaignMember, CampaignStatus
from mdmc_crm.models.user import User
from mdmc_crm.repositories.base import BaseRepository, escape_like
from mdmc_crm.repositories.lead_repo import tag_clause
from mdmc_crm.schemas.campaign import CampaignFilter


class CampaignRepository(BaseRepository[Campaign]):
    """Repository for Campaign operations."""

    SEARCH_FIELDS = ("name", "description")

    def __init__(self, session: AsyncSession):
        super().__init__(Campaign, session)

    @staticmethod
    def scope_clauses(user: User) -> list:
        """Archived campaigns are hidden; agents see campaigns they manage or work on."""
        clauses = [Campaign.is_archived == False]
        if is_agent(user):
            member_of = select(CampaignMember.campaign_id).where(CampaignMember.user_id == user.id)
            clauses.append(or_(Campaign.manager_id == user.id, Campaign.id.in_(member_of)))
        return clauses

    def scoped_query(self, user: User):
        return select(Campaign).where(*self.scope_clauses(user))

    def _apply_search_filters(self, query, filters: Optional[CampaignFilter]):
        if not filters:
            return query
        for field in ("status", "type", "category"):
            value = getattr(filters, field)
            if value is not None:
                query = query.where(getattr(Campaign, field) == value.value)
        if filters.manager_id:
            query = query.where(Campaign.manager_id == filters.manager_id)
        if filters.min_budget is not None:
            query = query.where(Campaign.budget_total >= filters.min_budget)
        if filters.max_budget is not None:
            query = query.where(Campaign.budget_total <= filters.max_budget)
        # Campaigns whose run overlaps the requested window
        if filters.start_date:
            query = query.where(Campaign.end_date >= filters.start_date)
        if filters.end_date:
            query = query.where(Campaign.start_date <= filters.end_date)
        if filters.created_after:
            query = query.where(Campaign.created_at >= filters.created_after)
        if filters.created_before:
            query = query.where(Campaign.created_at <= filters.created_before)
        if filters.search:
            search_term = f"%{escape_like(filters.search)}%"
            query = query.where(
                or_(*[getattr(Campaign, field).ilike(search_term, escape="!") for field in self.SEARCH_FIELDS])
            )
        if filters.tags:
            query = query.where(tag_clause(Campaign.tags, filters.tags))
        return query

    async def search(
        self,
        user: User,
        filters: Optional[CampaignFilter] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> dict:
        query = self._apply_search_filters(self.scoped_query(user), filters)
        return await self.list_paginated(
            query=query, page=page, limit=limit, order_by=sort, order_desc=order_desc
        )

    async def get_active(self, campaign_id: uuid.UUID, for_update: bool = False) -> Optional[Campaign]:
        """Get a campaign that is not archived."""
        campaign = await (self.get_for_update(campaign_id) if for_update else self.get(campaign_id))
        if not campaign or campaign.is_archived:
            return None
        return campaign

    async def save(self, db_obj: Campaign) -> Campaign:
        campaign = await super().save(db_obj)
        # Reload so the team collection reflects what was committed
        query = (
            select(Campaign)
            .where(Campaign.id == campaign.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(query)
        return result.one()

    def replace_team(self, campaign: Campaign, members: List[dict]) -> None:
        campaign.team = [
            CampaignMember(campaign_id=campaign.id, user_id=m["user_id"], role=m["role"])
            for m in members
        ]

    async def count_scoped(self, user: User, *clauses) -> int:
        query = select(func.count(Campaign.id)).where(*self.scope_clauses(user), *clauses)
        result = await self.session.exec(query)
        return result.one()

    async def group_counts(self, user: User, field: str, *clauses) -> dict:
        column = getattr(Campaign, field)
        query = (
            select(column, func.count(Campaign.id))
            .where(*self.scope_clauses(user), *clauses)
            .group_by(column)
        )
        result = await self.session.exec(query)
        return {key: count for key, count in result.all()}

    async def totals(self, user: User, *clauses) -> dict:
        """Summed budget and raw metrics over visible campaigns."""
        query = select(
            func.count(Campaign.id),
            func.coalesce(func.sum(Campaign.budget_total), 0),
            func.coalesce(func.sum(Campaign.budget_spent), 0),
            func.coalesce(func.sum(Campaign.impressions), 0),
            func.coalesce(func.sum(Campaign.clicks), 0),
            func.coalesce(func.sum(Campaign.conversions), 0),
            func.coalesce(func.sum(Campaign.revenue), 0),
            func.coalesce(func.avg(Campaign.ctr), 0),
            func.coalesce(func.avg(Campaign.roas), 0),
        ).where(*self.scope_clauses(user), *clauses)
        (count, budget, spent, impressions, clicks,
         conversions, revenue, avg_ctr, avg_roas) = (await self.session.exec(query)).one()
        return {
            "count": count,
            "total_budget": float(budget),
            "total_spent": float(spent),
            "total_impressions": int(impressions),
            "total_clicks": int(clicks),
            "total_conversions": int(conversions),
            "total_revenue": float(revenue),
            "avg_ctr": float(avg_ctr),
            "avg_roas": float(avg_roas),
        }

    async def get_stats(self, user: User) -> dict:
        """Campaign statistics for the list page."""
        totals = await self.totals(user)
        by_status = await self.group_counts(user, "status")
        by_type = await self.group_counts(user, "type")
        spent = totals["total_spent"]
        return {
            "total": totals["count"],
            "active": by_status.get(CampaignStatus.ACTIVE.value, 0),
            "by_status": by_status,
            "by_type": by_type,
            "total_budget": totals["total_budget"],
            "total_spent": spent,
            "total_revenue": totals["total_revenue"],
            "overall_roi": round((totals["total_revenue"] - spent) / spent * 100, 2) if spent else 0,
            "avg_ctr": round(totals["avg_ctr"], 2),
            "avg_roas": round(totals["avg_roas"], 2),
        }

    async def save_all(self, campaigns: List[Campaign]) -> List[Campaign]:
        """Persist several modified campaigns in one commit."""
        now = datetime.utcnow()
        for campaign in campaigns:
            campaign.apply_derived_fields()
            campaign.updated_at = now
            self.session.add(campaign)
        await self.session.commit()
        for campaign in campaigns:
            await self.session.refresh(campaign)
        return campaigns
