"""
Analytics API routes.
"""
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.permissions import Permission
from mdmc_crm.models.lead import LeadSource, LeadStatus
from mdmc_crm.models.campaign import CampaignStatus, CampaignType
from mdmc_crm.services.analytics_service import AnalyticsService
from mdmc_crm.api.deps import require_permission
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/analytics", tags=["analytics"])

can_read = require_permission(Permission.ANALYTICS_READ)


@router.get("/dashboard")
async def get_dashboard_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "day",
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Overall analytics across leads and campaigns."""
    return await AnalyticsService(session).dashboard(current_user, start_date, end_date, group_by)


@router.get("/leads")
async def get_lead_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "day",
    source: Optional[LeadSource] = None,
    status: Optional[LeadStatus] = None,
    assigned_to: Optional[uuid.UUID] = None,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    return await AnalyticsService(session).lead_analytics(
        current_user,
        start_date,
        end_date,
        group_by,
        source=source.value if source else None,
        status=status.value if status else None,
        assigned_to=assigned_to
    )


@router.get("/campaigns")
async def get_campaign_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "day",
    type: Optional[CampaignType] = None,
    status: Optional[CampaignStatus] = None,
    manager_id: Optional[uuid.UUID] = None,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    return await AnalyticsService(session).campaign_analytics(
        current_user,
        start_date,
        end_date,
        group_by,
        type=type.value if type else None,
        status=status.value if status else None,
        manager_id=manager_id
    )


@router.get("/revenue")
async def get_revenue_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    group_by: str = "month",
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    return await AnalyticsService(session).revenue_analytics(current_user, start_date, end_date, group_by)


@router.get("/comparison")
async def get_performance_comparison(
    metric: str = "revenue",
    period1_start: Optional[datetime] = None,
    period1_end: Optional[datetime] = None,
    period2_start: Optional[datetime] = None,
    period2_end: Optional[datetime] = None,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Compare one metric across two periods."""
    return await AnalyticsService(session).performance_comparison(
        current_user, metric, period1_start, period1_end, period2_start, period2_end
    )
