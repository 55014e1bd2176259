"""
Leads API routes.
"""
import uuid
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.pagination import PaginationParams, PaginatedResponse
from mdmc_crm.core.permissions import Permission, Role
from mdmc_crm.services.lead_service import LeadService
from mdmc_crm.schemas.lead import (
    LeadCreate, LeadUpdate, LeadResponse, LeadFilter, InteractionCreate, FollowUpRequest,
    ConvertRequest, MarkLostRequest, AssignRequest, LeadBulkUpdate, BulkUpdateResponse
)
from mdmc_crm.models.lead import LeadStatus, LeadSource, Genre, LeadPriority, Temperature
from mdmc_crm.api.deps import require_permission, require_roles, get_pagination
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/leads", tags=["leads"])

can_read = require_permission(Permission.LEADS_READ)
can_write = require_permission(Permission.LEADS_WRITE)
manager_and_above = Depends(require_roles(Role.ADMIN, Role.MANAGER))


def lead_filters(
    status: Optional[LeadStatus] = None,
    source: Optional[LeadSource] = None,
    genre: Optional[Genre] = None,
    priority: Optional[LeadPriority] = None,
    temperature: Optional[Temperature] = None,
    assigned_to: Optional[uuid.UUID] = None,
    campaign_id: Optional[uuid.UUID] = None,
    min_score: Optional[int] = Query(None, ge=0, le=100),
    max_score: Optional[int] = Query(None, ge=0, le=100),
    created_after: Optional[datetime] = None,
    created_before: Optional[datetime] = None,
    tags: Optional[List[str]] = Query(None),
    search: Optional[str] = None
) -> LeadFilter:
    return LeadFilter(
        status=status,
        source=source,
        genre=genre,
        priority=priority,
        temperature=temperature,
        assigned_to=assigned_to,
        campaign_id=campaign_id,
        min_score=min_score,
        max_score=max_score,
        created_after=created_after,
        created_before=created_before,
        tags=tags,
        search=search
    )


@router.get("/", response_model=PaginatedResponse[LeadResponse])
async def list_leads(
    filters: LeadFilter = Depends(lead_filters),
    pagination: PaginationParams = Depends(get_pagination),
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """List leads with filtering and pagination."""
    lead_service = LeadService(session)
    return await lead_service.list(
        current_user, filters, pagination.page, pagination.limit, pagination.sort, pagination.descending
    )


@router.get("/stats")
async def get_lead_stats(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Get lead statistics."""
    stats = await LeadService(session).get_stats(current_user)
    stats["recent"] = [LeadResponse.model_validate(lead) for lead in stats["recent"]]
    return stats


@router.get("/overdue", response_model=List[LeadResponse])
async def get_overdue_leads(
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Open leads whose follow-up date has passed."""
    return await LeadService(session).get_overdue(current_user)


@router.get("/export")
async def export_leads(
    fmt: str = Query("csv", alias="format", pattern="^(csv|json)$"),
    filters: LeadFilter = Depends(lead_filters),
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Export visible leads as CSV or JSON."""
    content = await LeadService(session).export(current_user, filters, fmt)
    if fmt == "json":
        return {"items": content, "total": len(content)}

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=leads_export.csv"}
    )


@router.patch("/bulk", response_model=BulkUpdateResponse)
async def bulk_update_leads(
    body: LeadBulkUpdate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Apply one update to several leads, all or nothing."""
    return await LeadService(session).bulk_update(current_user, body.lead_ids, body.updates)


@router.post("/", response_model=LeadResponse, status_code=201)
async def create_lead(
    body: LeadCreate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Create a new lead."""
    return await LeadService(session).create(current_user, body)


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: uuid.UUID,
    current_user: User = Depends(can_read),
    session: AsyncSession = Depends(get_session)
):
    """Get a lead by ID."""
    return await LeadService(session).get(current_user, lead_id)


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: uuid.UUID,
    body: LeadUpdate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Update a lead."""
    return await LeadService(session).update(current_user, lead_id, body)


@router.delete("/{lead_id}", response_model=LeadResponse, dependencies=[manager_and_above])
async def delete_lead(
    lead_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.LEADS_DELETE)),
    session: AsyncSession = Depends(get_session)
):
    """Soft-delete a lead."""
    return await LeadService(session).delete(current_user, lead_id)


@router.patch("/{lead_id}/assign", response_model=LeadResponse, dependencies=[manager_and_above])
async def assign_lead(
    lead_id: uuid.UUID,
    body: AssignRequest,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Reassign a lead."""
    return await LeadService(session).assign(current_user, lead_id, body.assigned_to)


@router.post("/{lead_id}/interactions", response_model=LeadResponse, status_code=201)
async def add_interaction(
    lead_id: uuid.UUID,
    body: InteractionCreate,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Log an interaction; the outcome moves the lead score."""
    return await LeadService(session).add_interaction(current_user, lead_id, body)


@router.patch("/{lead_id}/follow-up", response_model=LeadResponse)
async def set_follow_up(
    lead_id: uuid.UUID,
    body: FollowUpRequest,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    return await LeadService(session).set_follow_up(current_user, lead_id, body.next_follow_up, body.reason)


@router.patch("/{lead_id}/convert", response_model=LeadResponse)
async def convert_lead(
    lead_id: uuid.UUID,
    body: ConvertRequest,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Mark a lead as won."""
    return await LeadService(session).convert(current_user, lead_id, body.conversion_value)


@router.patch("/{lead_id}/lost", response_model=LeadResponse)
async def mark_lead_lost(
    lead_id: uuid.UUID,
    body: MarkLostRequest,
    current_user: User = Depends(can_write),
    session: AsyncSession = Depends(get_session)
):
    """Mark a lead as lost."""
    return await LeadService(session).mark_as_lost(current_user, lead_id, body.reason)
