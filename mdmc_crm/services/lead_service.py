"""
Lead service - pipeline management with role scoping.
"""
import csv
import io
import logging
import uuid
from typing import Optional, List
from datetime import datetime

from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.core.exceptions import raise_not_found, raise_forbidden, raise_conflict, raise_validation_error
from mdmc_crm.core.permissions import MANAGER_AND_ABOVE, Role, check_ownership, is_admin, is_agent
from mdmc_crm.repositories.lead_repo import LeadRepository
from mdmc_crm.repositories.campaign_repo import CampaignRepository
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.models.lead import Lead, LeadStatus, InteractionOutcome, InteractionType
from mdmc_crm.models.user import User
from mdmc_crm.schemas.lead import (
    LeadCreate, LeadUpdate, LeadFilter, LeadResponse, InteractionCreate, InteractionRecord,
)

logger = logging.getLogger(__name__)

POSITIVE_SCORE_DELTA = 10
NEGATIVE_SCORE_DELTA = -5

EXPORT_FIELDS = [
    "id", "first_name", "last_name", "email", "phone", "artist_name", "genre",
    "source", "status", "priority", "score", "temperature", "budget_min", "budget_max",
    "budget_currency", "assigned_to", "next_follow_up", "conversion_value", "created_at",
]


def score_after_outcome(score: int, outcome: Optional[str]) -> int:
    """Score after an interaction: +10 positive (max 100), -5 negative (min 0)."""
    if outcome == InteractionOutcome.POSITIVE.value:
        return min(score + POSITIVE_SCORE_DELTA, 100)
    if outcome == InteractionOutcome.NEGATIVE.value:
        return max(score + NEGATIVE_SCORE_DELTA, 0)
    return score


class LeadService:
    """Service for lead operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.lead_repo = LeadRepository(session)
        self.campaign_repo = CampaignRepository(session)
        self.user_repo = UserRepository(session)

    async def _get_owned(self, user: User, lead_id: uuid.UUID, for_update: bool = False) -> Lead:
        """Load a live lead the caller may act on."""
        lead = await self.lead_repo.get_active(lead_id, for_update=for_update)
        if not lead:
            raise_not_found("Lead", str(lead_id))
        if is_agent(user) and not check_ownership(user, lead.assigned_to):
            raise_forbidden("You can only access leads assigned to you")
        return lead

    async def _check_assignee(self, assignee_id: uuid.UUID) -> User:
        assignee = await self.user_repo.get(assignee_id)
        if not assignee or not assignee.is_active:
            raise_not_found("User", str(assignee_id))
        return assignee

    async def _check_campaign(self, campaign_id: uuid.UUID) -> None:
        if not await self.campaign_repo.get_active(campaign_id):
            raise_not_found("Campaign", str(campaign_id))

    def _append_interaction(self, lead: Lead, record: InteractionRecord) -> None:
        entry = record.model_dump(mode="json")
        # Reassign so the JSON column is flagged as changed
        lead.interactions = [*(lead.interactions or []), entry]
        lead.score = score_after_outcome(lead.score, record.outcome)

    async def list(
        self,
        user: User,
        filters: Optional[LeadFilter] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> dict:
        """List leads with filtering and pagination."""
        return await self.lead_repo.search(user, filters, page, limit, sort, order_desc)

    async def get(self, user: User, lead_id: uuid.UUID) -> Lead:
        """Get a lead by ID."""
        return await self._get_owned(user, lead_id)

    async def create(self, user: User, lead_data: LeadCreate) -> Lead:
        """Create a lead. Agents always own the leads they create."""
        data = lead_data.model_dump()

        if await self.lead_repo.get_by_email(data["email"]):
            raise_conflict("Lead", "email", data["email"])

        if is_agent(user):
            if data.get("assigned_to") and data["assigned_to"] != user.id:
                raise_forbidden("Agents can only assign leads to themselves")
            data["assigned_to"] = user.id
        elif data.get("assigned_to"):
            await self._check_assignee(data["assigned_to"])

        if data.get("campaign_id"):
            await self._check_campaign(data["campaign_id"])

        if data.get("assigned_to"):
            data["assigned_at"] = datetime.utcnow()
        data["email"] = data["email"].lower()
        data["created_by"] = user.id

        lead = await self.lead_repo.create(data)
        logger.info("Lead %s created by %s", lead.id, user.id)
        return lead

    async def update(self, user: User, lead_id: uuid.UUID, lead_data: LeadUpdate) -> Lead:
        """Update a lead."""
        lead = await self._get_owned(user, lead_id, for_update=True)
        update_data = lead_data.model_dump(exclude_unset=True)

        if update_data.get("email"):
            email = update_data["email"].lower()
            existing = await self.lead_repo.get_by_email(email)
            if existing and existing.id != lead.id:
                raise_conflict("Lead", "email", email)
            update_data["email"] = email

        if update_data.get("campaign_id"):
            await self._check_campaign(update_data["campaign_id"])

        update_data["updated_by"] = user.id
        return await self.lead_repo.update(lead, update_data)

    async def delete(self, user: User, lead_id: uuid.UUID) -> Lead:
        """Soft-delete a lead (managers and admins)."""
        if Role(user.role) not in MANAGER_AND_ABOVE:
            raise_forbidden("Only managers and admins can delete leads")

        lead = await self._get_owned(user, lead_id, for_update=True)
        lead.is_deleted = True
        lead.deleted_at = datetime.utcnow()
        lead.updated_by = user.id
        lead = await self.lead_repo.save(lead)
        logger.info("Lead %s soft-deleted by %s", lead.id, user.id)
        return lead

    async def assign(self, user: User, lead_id: uuid.UUID, assignee_id: uuid.UUID) -> Lead:
        """Reassign a lead to another account (admins only)."""
        if not is_admin(user):
            raise_forbidden("Only administrators can reassign leads")

        lead = await self._get_owned(user, lead_id, for_update=True)
        await self._check_assignee(assignee_id)

        lead.assigned_to = assignee_id
        lead.assigned_at = datetime.utcnow()
        lead.updated_by = user.id
        lead = await self.lead_repo.save(lead)
        logger.info("Lead %s assigned to %s by %s", lead.id, assignee_id, user.id)
        return lead

    async def add_interaction(self, user: User, lead_id: uuid.UUID, data: InteractionCreate) -> Lead:
        """Append an interaction and adjust the score by its outcome."""
        lead = await self._get_owned(user, lead_id, for_update=True)
        record = InteractionRecord(**data.model_dump(exclude_none=True), created_by=user.id)
        self._append_interaction(lead, record)
        if record.next_action_date:
            lead.next_follow_up = record.next_action_date
            lead.follow_up_reason = record.next_action
        lead.updated_by = user.id
        return await self.lead_repo.save(lead)

    async def set_follow_up(
        self,
        user: User,
        lead_id: uuid.UUID,
        next_follow_up: datetime,
        reason: Optional[str] = None
    ) -> Lead:
        lead = await self._get_owned(user, lead_id, for_update=True)
        lead.next_follow_up = next_follow_up
        lead.follow_up_reason = reason
        lead.updated_by = user.id
        return await self.lead_repo.save(lead)

    async def convert(self, user: User, lead_id: uuid.UUID, conversion_value: float) -> Lead:
        """Mark a lead as won."""
        lead = await self._get_owned(user, lead_id, for_update=True)
        lead.status = LeadStatus.WON.value
        lead.converted_at = datetime.utcnow()
        lead.conversion_value = conversion_value
        lead.score = 100
        lead.updated_by = user.id
        lead = await self.lead_repo.save(lead)
        logger.info("Lead %s converted for %.2f by %s", lead.id, conversion_value, user.id)
        return lead

    async def mark_as_lost(self, user: User, lead_id: uuid.UUID, reason: str) -> Lead:
        """Mark a lead as lost and record the reason as a negative note."""
        lead = await self._get_owned(user, lead_id, for_update=True)
        lead.status = LeadStatus.LOST.value
        self._append_interaction(lead, InteractionRecord(
            type=InteractionType.NOTE,
            description=f"Lead marked as lost: {reason}"[:500],
            outcome=InteractionOutcome.NEGATIVE,
            created_by=user.id
        ))
        lead.updated_by = user.id
        lead = await self.lead_repo.save(lead)
        logger.info("Lead %s marked as lost by %s", lead.id, user.id)
        return lead

    async def get_overdue(self, user: User) -> List[Lead]:
        return await self.lead_repo.get_overdue(user)

    async def get_stats(self, user: User) -> dict:
        """Get lead statistics."""
        return await self.lead_repo.get_stats(user)

    async def bulk_update(self, user: User, lead_ids: List[uuid.UUID], lead_data: LeadUpdate) -> dict:
        """
        Apply one update to many leads. Fails as a whole if any lead is missing
        or, for agents, not assigned to the caller.
        """
        update_data = lead_data.model_dump(exclude_unset=True)
        if not update_data:
            raise_validation_error("No fields to update", field="updates")
        if "email" in update_data:
            raise_validation_error("Email cannot be bulk updated", field="email")
        if update_data.get("campaign_id"):
            await self._check_campaign(update_data["campaign_id"])

        unique_ids = list(dict.fromkeys(lead_ids))
        leads = [
            lead for lead in await self.lead_repo.get_many(unique_ids, for_update=True)
            if not lead.is_deleted
        ]
        if len(leads) != len(unique_ids):
            found = {lead.id for lead in leads}
            missing = [str(i) for i in unique_ids if i not in found]
            raise_not_found("Lead", ", ".join(missing))

        if is_agent(user) and not all(check_ownership(user, lead.assigned_to) for lead in leads):
            raise_forbidden("You can only update leads assigned to you")

        for lead in leads:
            for field, value in update_data.items():
                setattr(lead, field, value)
            lead.updated_by = user.id
        await self.lead_repo.save_all(leads)

        logger.info("Bulk updated %d leads by %s", len(leads), user.id)
        return {"matched": len(leads), "modified": len(leads)}

    async def export(self, user: User, filters: Optional[LeadFilter] = None, fmt: str = "csv"):
        """Export visible leads as CSV text or JSON-ready rows."""
        leads = await self.lead_repo.find_all(user, filters)

        if fmt == "json":
            return [LeadResponse.model_validate(lead).model_dump(mode="json") for lead in leads]

        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        for lead in leads:
            row = {}
            for field in EXPORT_FIELDS:
                value = getattr(lead, field)
                row[field] = value.isoformat() if isinstance(value, datetime) else value
            writer.writerow(row)

        return output.getvalue()
