"""
Dashboard API routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.permissions import Permission, Role
from mdmc_crm.services.analytics_service import AnalyticsService
from mdmc_crm.schemas.lead import LeadResponse
from mdmc_crm.schemas.campaign import CampaignResponse
from mdmc_crm.api.deps import require_permission, require_roles
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/dashboard", tags=["dashboard"])

can_read = require_permission(Permission.DASHBOARD_READ)


def _leads(items):
    return [LeadResponse.model_validate(lead) for lead in items]


@router.get("/overview")
async def get_overview(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Landing-page numbers, recent records and follow-ups due this week."""
    overview = await AnalyticsService(session).overview(current_user)
    recent = overview["recent_activity"]
    recent["leads"] = _leads(recent["leads"])
    recent["campaigns"] = [CampaignResponse.model_validate(c) for c in recent["campaigns"]]
    overview["upcoming_tasks"] = _leads(overview["upcoming_tasks"])
    return overview


@router.get("/chart")
async def get_chart_data(
    days: int = Query(7, ge=1, le=90),
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """New leads per day."""
    return await AnalyticsService(session).lead_chart(current_user, days)


@router.get("/quick-actions")
async def get_quick_actions(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    actions = await AnalyticsService(session).quick_actions(current_user)
    return {
        "leads_needing_attention": _leads(actions["leads_needing_attention"]),
        "campaigns_needing_review": [
            CampaignResponse.model_validate(c) for c in actions["campaigns_needing_review"]
        ],
        "overdue_follow_ups": _leads(actions["overdue_follow_ups"])
    }


@router.get("/widgets")
async def get_widgets(
    widgets: Optional[str] = Query(None, description="Comma-separated widget names"),
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Lead, campaign, follow-up and 30-day performance widgets."""
    names = [name.strip() for name in widgets.split(",") if name.strip()] if widgets else None
    return await AnalyticsService(session).widgets(current_user, names)


@router.get("/team-performance", dependencies=[Depends(require_roles(Role.ADMIN, Role.MANAGER))])
async def get_team_performance(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Per-member workload, top converters and recent lead updates."""
    return await AnalyticsService(session).team_performance()
