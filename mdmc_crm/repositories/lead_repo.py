"""
Lead repository with role-scoped search, stats and bulk operations.
"""
import uuid
from typing import Optional, List
from datetime import datetime

from sqlmodel import select, or_
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import func, cast, String

from mdmc_crm.core.permissions import is_agent
from mdmc_crm.models.lead import Lead, LeadStatus, CLOSED_STATUSES
from mdmc_crm.models.user import User
from mdmc_crm.repositories.base import BaseRepository, escape_like
from mdmc_crm.schemas.lead import LeadFilter


def tag_clause(column, tags: List[str]):
    """Match rows whose JSON tag list contains any of ``tags``."""
    return or_(*[
        cast(column, String).like(f'%"{escape_like(tag.lower())}"%', escape="!") for tag in tags
    ])


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead operations."""

    SEARCH_FIELDS = ("first_name", "last_name", "email", "artist_name", "phone")

    def __init__(self, session: AsyncSession):
        super().__init__(Lead, session)

    @staticmethod
    def scope_clauses(user: User) -> list:
        """Visibility rules: soft-deleted leads are hidden, agents see their own."""
        clauses = [Lead.is_deleted == False]
        if is_agent(user):
            clauses.append(Lead.assigned_to == user.id)
        return clauses

    def scoped_query(self, user: User):
        return select(Lead).where(*self.scope_clauses(user))

    def _apply_search_filters(self, query, filters: Optional[LeadFilter]):
        if not filters:
            return query
        for field in ("status", "source", "genre", "priority", "temperature"):
            value = getattr(filters, field)
            if value is not None:
                query = query.where(getattr(Lead, field) == value.value)
        if filters.assigned_to:
            query = query.where(Lead.assigned_to == filters.assigned_to)
        if filters.campaign_id:
            query = query.where(Lead.campaign_id == filters.campaign_id)
        if filters.min_score is not None:
            query = query.where(Lead.score >= filters.min_score)
        if filters.max_score is not None:
            query = query.where(Lead.score <= filters.max_score)
        if filters.created_after:
            query = query.where(Lead.created_at >= filters.created_after)
        if filters.created_before:
            query = query.where(Lead.created_at <= filters.created_before)
        if filters.search:
            search_term = f"%{escape_like(filters.search)}%"
            query = query.where(
                or_(*[getattr(Lead, field).ilike(search_term, escape="!") for field in self.SEARCH_FIELDS])
            )
        if filters.tags:
            query = query.where(tag_clause(Lead.tags, filters.tags))
        return query

    async def search(
        self,
        user: User,
        filters: Optional[LeadFilter] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> dict:
        """Search leads visible to ``user``. Client filters only narrow the scope."""
        query = self._apply_search_filters(self.scoped_query(user), filters)
        return await self.list_paginated(
            query=query, page=page, limit=limit, order_by=sort, order_desc=order_desc
        )

    async def find_all(
        self,
        user: User,
        filters: Optional[LeadFilter] = None,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> List[Lead]:
        """Every visible lead matching the filters (used for export)."""
        query = self._apply_search_filters(self.scoped_query(user), filters)
        query = self._apply_ordering(query, sort, order_desc)
        result = await self.session.exec(query)
        return list(result.all())

    async def get_active(self, lead_id: uuid.UUID, for_update: bool = False) -> Optional[Lead]:
        """Get a lead that is not soft-deleted."""
        lead = await (self.get_for_update(lead_id) if for_update else self.get(lead_id))
        if not lead or lead.is_deleted:
            return None
        return lead

    async def get_by_email(self, email: str) -> Optional[Lead]:
        """Get a live lead by email (for deduplication)."""
        query = select(Lead).where(
            func.lower(Lead.email) == email.strip().lower(),
            Lead.is_deleted == False
        )
        result = await self.session.exec(query)
        return result.first()

    async def get_overdue(self, user: User) -> List[Lead]:
        """Open leads whose follow-up date has passed."""
        query = self.scoped_query(user).where(
            Lead.next_follow_up < datetime.utcnow(),
            Lead.status.not_in(CLOSED_STATUSES)
        ).order_by(Lead.next_follow_up.asc())
        result = await self.session.exec(query)
        return list(result.all())

    async def count_scoped(self, user: User, *clauses) -> int:
        query = select(func.count(Lead.id)).where(*self.scope_clauses(user), *clauses)
        result = await self.session.exec(query)
        return result.one()

    async def group_counts(self, user: User, field: str, *clauses) -> dict:
        column = getattr(Lead, field)
        query = (
            select(column, func.count(Lead.id))
            .where(*self.scope_clauses(user), *clauses)
            .group_by(column)
        )
        result = await self.session.exec(query)
        return {key: count for key, count in result.all()}

    async def get_stats(self, user: User) -> dict:
        """Lead statistics for the list page."""
        total = await self.count_scoped(user)
        by_status = await self.group_counts(user, "status")
        by_source = await self.group_counts(user, "source")

        avg_query = select(func.avg(Lead.score)).where(*self.scope_clauses(user))
        avg_score = (await self.session.exec(avg_query)).one() or 0

        overdue = await self.count_scoped(
            user,
            Lead.next_follow_up < datetime.utcnow(),
            Lead.status.not_in(CLOSED_STATUSES)
        )

        recent_query = self.scoped_query(user).order_by(Lead.created_at.desc()).limit(5)
        recent = list((await self.session.exec(recent_query)).all())

        won = by_status.get(LeadStatus.WON.value, 0)
        return {
            "total": total,
            "by_status": by_status,
            "by_source": by_source,
            "avg_score": round(float(avg_score), 1),
            "conversion_rate": round(won / total * 100, 2) if total else 0,
            "overdue": overdue,
            "recent": recent
        }

    async def save_all(self, leads: List[Lead]) -> List[Lead]:
        """Persist several modified leads in one commit."""
        now = datetime.utcnow()
        for lead in leads:
            lead.apply_derived_fields()
            lead.updated_at = now
            self.session.add(lead)
        await self.session.commit()
        for lead in leads:
            await self.session.refresh(lead)
        return leads
