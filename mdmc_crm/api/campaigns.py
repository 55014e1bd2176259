"""
Campaigns API routes.
"""
import uuid
from datetime import datetime, date
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.pagination import PaginationParams, PaginatedResponse
from mdmc_crm.core.permissions import Permission, Role
from mdmc_crm.services.campaign_service import CampaignService
from mdmc_crm.schemas.campaign import (
    CampaignCreate, CampaignUpdate, CampaignFilter, CampaignResponse, MetricsUpdate,
    DailyMetricCreate, OptimizationCreate, CampaignBulkUpdate, DuplicateRequest
)
from mdmc_crm.schemas.lead import BulkUpdateResponse
from mdmc_crm.models.campaign import CampaignStatus, CampaignType, CampaignCategory
from mdmc_crm.api.deps import require_permission, require_roles, get_pagination
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/campaigns", tags=["campaigns"])

can_read = require_permission(Permission.CAMPAIGNS_READ)
can_write = require_permission(Permission.CAMPAIGNS_WRITE)
manager_and_above = Depends(require_roles(Role.ADMIN, Role.MANAGER))


def campaign_filters(
    status: Optional[CampaignStatus] = None,
    type: Optional[CampaignType] = None,
    category: Optional[CampaignCategory] = None,
    manager_id: Optional[uuid.UUID] = None,
    min_budget: Optional[float] = Query(None, ge=0),
    max_budget: Optional[float] = Query(None, ge=0),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
    tags: Optional[List[str]] = Query(None),
    search: Optional[str] = None
) -> CampaignFilter:
    return CampaignFilter(
        status=status,
        type=type,
        category=category,
        manager_id=manager_id,
        min_budget=min_budget,
        max_budget=max_budget,
        start_date=start_date,
        end_date=end_date,
        created_after=created_after,
        created_before=created_before,
        tags=tags,
        search=search
    )


@router.get("/", response_model=PaginatedResponse[CampaignResponse])
async def list_campaigns(
    filters: CampaignFilter = Depends(campaign_filters),
    pagination: PaginationParams = Depends(get_pagination),
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """List campaigns with filtering and pagination."""
    campaign_service = CampaignService(session)
    return await campaign_service.list(
        current_user, filters, pagination.page, pagination.limit, pagination.sort, pagination.descending
    )


@router.get("/stats")
async def get_campaign_stats(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Get campaign statistics."""
    return await CampaignService(session).get_stats(current_user)


@router.patch("/bulk", response_model=BulkUpdateResponse)
async def bulk_update_campaigns(
    body: CampaignBulkUpdate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Apply one update to several campaigns, all or nothing."""
    return await CampaignService(session).bulk_update(current_user, body.campaign_ids, body.updates)


@router.post("/", response_model=CampaignResponse, status_code=201)
async def create_campaign(
    body: CampaignCreate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Create a new campaign."""
    return await CampaignService(session).create(current_user, body)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: uuid.UUID,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Get a campaign by ID."""
    return await CampaignService(session).get(current_user, campaign_id)


@router.get("/{campaign_id}/performance")
async def get_campaign_performance(
    campaign_id: uuid.UUID,
    metric: str = "impressions",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Per-day series of one daily metric."""
    return await CampaignService(session).get_performance(
        current_user, campaign_id, metric, start_date, end_date
    )


@router.post("/{campaign_id}/duplicate", response_model=CampaignResponse, status_code=201)
async def duplicate_campaign(
    campaign_id: uuid.UUID,
    body: DuplicateRequest,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Copy a campaign into a new draft."""
    return await CampaignService(session).duplicate(current_user, campaign_id, body.name)


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: uuid.UUID,
    body: CampaignUpdate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Update a campaign."""
    return await CampaignService(session).update(current_user, campaign_id, body)


@router.delete("/{campaign_id}", response_model=CampaignResponse, dependencies=[manager_and_above])
async def archive_campaign(
    campaign_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.CAMPAIGNS_DELETE)),
    session: AsyncSession = Depends(get_session)
):
    """Archive a campaign."""
    return await CampaignService(session).archive(current_user, campaign_id)


@router.patch("/{campaign_id}/metrics", response_model=CampaignResponse)
async def update_campaign_metrics(
    campaign_id: uuid.UUID,
    body: MetricsUpdate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Overwrite raw metrics; derived metrics are recomputed."""
    return await CampaignService(session).update_metrics(current_user, campaign_id, body)


@router.post("/{campaign_id}/daily-metrics", response_model=CampaignResponse)
async def add_daily_metric(
    campaign_id: uuid.UUID,
    body: DailyMetricCreate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Record one day's metrics, replacing any entry for the same date."""
    return await CampaignService(session).add_daily_metric(current_user, campaign_id, body)


@router.patch("/{campaign_id}/pause", response_model=CampaignResponse)
async def pause_campaign(
    campaign_id: uuid.UUID,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    return await CampaignService(session).pause(current_user, campaign_id)


@router.patch("/{campaign_id}/resume", response_model=CampaignResponse)
async def resume_campaign(
    campaign_id: uuid.UUID,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    return await CampaignService(session).resume(current_user, campaign_id)


@router.patch("/{campaign_id}/complete", response_model=CampaignResponse)
async def complete_campaign(
    campaign_id: uuid.UUID,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    return await CampaignService(session).complete(current_user, campaign_id)


@router.post("/{campaign_id}/optimizations", response_model=CampaignResponse, status_code=201)
async def add_optimization(
    campaign_id: uuid.UUID,
    body: OptimizationCreate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Log an optimization applied to the campaign."""
    return await CampaignService(session).add_optimization(current_user, campaign_id, body)
