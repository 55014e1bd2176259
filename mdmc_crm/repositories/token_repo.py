"""
Refresh token repository.
"""
import uuid
from typing import Optional, List
from datetime import datetime, timedelta

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.models.token import RefreshToken
from mdmc_crm.repositories.base import BaseRepository
from mdmc_crm.config import settings


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Repository for RefreshToken operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(RefreshToken, session)

    async def list_live(self, user_id: uuid.UUID) -> List[RefreshToken]:
        """Non-revoked, unexpired tokens of an account, oldest first."""
        query = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked == False,
            RefreshToken.expires_at > datetime.utcnow()
        ).order_by(RefreshToken.created_at.asc())
        result = await self.session.exec(query)
        return list(result.all())

    async def add_for_user(
        self,
        user_id: uuid.UUID,
        jti: str,
        token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> RefreshToken:
        """
        Store a new refresh token. When the account already holds
        MAX_REFRESH_TOKENS live tokens the oldest ones are revoked.
        """
        now = datetime.utcnow()
        live = await self.list_live(user_id)
        overflow = len(live) - settings.MAX_REFRESH_TOKENS + 1
        for old in live[:max(0, overflow)]:
            old.revoked = True
            old.revoked_at = now
            self.session.add(old)

        refresh_token = RefreshToken(
            user_id=user_id,
            token=token,
            jti=jti,
            created_at=now,
            expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            user_agent=user_agent,
            ip_address=ip_address
        )
        self.session.add(refresh_token)
        await self.session.commit()
        await self.session.refresh(refresh_token)
        return refresh_token

    async def get_by_jti(self, jti: str) -> Optional[RefreshToken]:
        """Get refresh token by JWT ID."""
        query = select(RefreshToken).where(RefreshToken.jti == jti)
        result = await self.session.exec(query)
        return result.first()

    async def get_by_token(self, token: str) -> Optional[RefreshToken]:
        """Get refresh token by token string."""
        query = select(RefreshToken).where(RefreshToken.token == token)
        result = await self.session.exec(query)
        return result.first()

    async def revoke(self, refresh_token: RefreshToken) -> None:
        """Revoke a single refresh token."""
        refresh_token.revoked = True
        refresh_token.revoked_at = datetime.utcnow()
        self.session.add(refresh_token)
        await self.session.commit()

    async def revoke_all_for_user(self, user_id: uuid.UUID, commit: bool = True) -> int:
        """Revoke all refresh tokens for a user."""
        query = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked == False
        )
        result = await self.session.exec(query)
        tokens = result.all()

        now = datetime.utcnow()
        for token in tokens:
            token.revoked = True
            token.revoked_at = now
            self.session.add(token)

        if commit:
            await self.session.commit()
        return len(tokens)
