"""
User repository.
"""
from typing import Optional, List
from datetime import datetime

from sqlmodel import select, or_
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy import func

from mdmc_crm.core.exceptions import ValidationError
from mdmc_crm.core.permissions import Role, permissions_for_role
from mdmc_crm.models.user import User
from mdmc_crm.repositories.base import BaseRepository, escape_like


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        query = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.exec(query)
        return result.first()

    async def get_by_google_id(self, google_id: str) -> Optional[User]:
        query = select(User).where(User.google_id == google_id)
        result = await self.session.exec(query)
        return result.first()

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        """User holding an unexpired password-reset token with this digest."""
        query = select(User).where(
            User.password_reset_token_hash == token_hash,
            User.password_reset_expires_at > datetime.utcnow()
        )
        result = await self.session.exec(query)
        return result.first()

    async def get_by_verification_token_hash(self, token_hash: str) -> Optional[User]:
        """User holding an unexpired email-verification token with this digest."""
        query = select(User).where(
            User.email_verification_token_hash == token_hash,
            User.email_verification_expires_at > datetime.utcnow()
        )
        result = await self.session.exec(query)
        return result.first()

    async def create_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password_hash: Optional[str] = None,
        google_id: Optional[str] = None,
        role: str = Role.AGENT.value,
        **extra
    ) -> User:
        """Create an account seeded with its role's default permissions."""
        if not password_hash and not google_id:
            raise ValidationError("Password is required", field="password")

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            password_hash=password_hash,
            google_id=google_id,
            role=Role(role).value,
            permissions=permissions_for_role(role),
            **extra
        )
        return await self.save(user)

    async def search(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        order_by: str = "created_at",
        order_desc: bool = True
    ) -> dict:
        """Search accounts by role, status and name/email substring."""
        query = select(User)
        if search:
            term = f"%{escape_like(search)}%"
            query = query.where(
                or_(
                    User.first_name.ilike(term, escape="!"),
                    User.last_name.ilike(term, escape="!"),
                    User.email.ilike(term, escape="!")
                )
            )
        return await self.list_paginated(
            query=query,
            filters={"role": role, "is_active": is_active},
            page=page,
            limit=limit,
            order_by=order_by,
            order_desc=order_desc
        )

    async def count_by_role(self) -> List[tuple]:
        query = select(User.role, func.count(User.id)).group_by(User.role)
        result = await self.session.exec(query)
        return list(result.all())

    async def count_created_since(self, since: datetime) -> int:
        query = select(func.count(User.id)).where(User.created_at >= since)
        result = await self.session.exec(query)
        return result.one()

    async def login_totals(self) -> tuple:
        """(sum of login counts, average login count)."""
        query = select(func.coalesce(func.sum(User.login_count), 0), func.avg(User.login_count))
        result = await self.session.exec(query)
        return result.one()

    async def touch_activity(self, user: User) -> None:
        """Stamp last activity without bumping updated_at."""
        user.last_activity_at = datetime.utcnow()
        self.session.add(user)
        await self.session.commit()

    async def save_all(self, users: List[User]) -> List[User]:
        """Persist several modified accounts in one commit."""
        now = datetime.utcnow()
        for user in users:
            user.updated_at = now
            self.session.add(user)
        await self.session.commit()
        for user in users:
            await self.session.refresh(user)
        return users
