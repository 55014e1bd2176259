"""
API dependencies - shared across all routes.
"""
from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.database import get_session
from mdmc_crm.config import settings
from mdmc_crm.core.exceptions import UnauthorizedError
from mdmc_crm.core.pagination import PaginationParams, MAX_PAGE_SIZE
from mdmc_crm.core.permissions import Role, authorize
from mdmc_crm.core.rate_limit import UserRateLimiter
from mdmc_crm.models.user import User
from mdmc_crm.services.auth_service import AuthService


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/token", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session)
) -> User:
    """Get current authenticated user from the bearer access token."""
    if not token:
        raise UnauthorizedError("Not authenticated")
    return await AuthService(session).authenticate(token)


def get_rate_limiter(request: Request) -> UserRateLimiter:
    return request.app.state.rate_limiter


async def rate_limit(
    current_user: User = Depends(get_current_user),
    limiter: UserRateLimiter = Depends(get_rate_limiter)
) -> User:
    """Authenticated user whose request fits the per-account rate limit."""
    limiter.check(current_user.id)
    return current_user


def require_permission(permission: str):
    """Dependency factory: the caller must hold ``permission`` (admins always pass)."""
    async def checker(current_user: User = Depends(rate_limit)) -> User:
        authorize(current_user, permission=permission)
        return current_user
    return checker


def require_roles(*roles: Role):
    """Dependency factory: the caller must have one of ``roles`` (admins always pass)."""
    async def checker(current_user: User = Depends(rate_limit)) -> User:
        authorize(current_user, roles=roles)
        return current_user
    return checker


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    sort: Optional[str] = None,
    order: str = Query("desc", pattern="^(asc|desc)$")
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit, sort=sort, order=order)


def get_client_info(request: Request) -> dict:
    """Extract client info from request."""
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent")
    }
