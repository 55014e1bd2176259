"""
User administration API routes.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.pagination import PaginationParams, PaginatedResponse
from mdmc_crm.core.permissions import Permission, Role
from mdmc_crm.services.user_service import UserService
from mdmc_crm.schemas.user import (
    UserResponse, UserCreate, UserUpdate, UserBulkUpdate, RoleChangeRequest, PermissionsUpdate
)
from mdmc_crm.schemas.lead import BulkUpdateResponse
from mdmc_crm.api.deps import require_permission, require_roles, get_pagination
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/users", tags=["users"])

admin_only = Depends(require_roles(Role.ADMIN))
manager_and_above = Depends(require_roles(Role.ADMIN, Role.MANAGER))


@router.get("/", response_model=PaginatedResponse[UserResponse])
async def list_users(
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    pagination: PaginationParams = Depends(get_pagination),
    current_user: User = Depends(require_permission(Permission.USERS_READ)),
    session: AsyncSession = Depends(get_session)
):
    """List accounts with filtering and pagination."""
    user_service = UserService(session)
    return await user_service.list_users(
        role=role,
        is_active=is_active,
        search=search,
        page=pagination.page,
        limit=pagination.limit,
        sort=pagination.sort,
        order_desc=pagination.descending
    )


@router.get("/stats", dependencies=[manager_and_above])
async def get_user_stats(
    current_user: User = Depends(require_permission(Permission.USERS_READ)),
    session: AsyncSession = Depends(get_session)
):
    """Account statistics."""
    return await UserService(session).get_stats()


@router.patch("/bulk", response_model=BulkUpdateResponse, dependencies=[admin_only])
async def bulk_update_users(
    body: UserBulkUpdate,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    """Apply one update to many accounts; all of them or none change."""
    return await UserService(session).bulk_update(current_user, body.user_ids, body.updates)


@router.post("/", response_model=UserResponse, status_code=201, dependencies=[admin_only])
async def create_user(
    body: UserCreate,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    """Create an account with any role."""
    return await UserService(session).create_user(current_user, body)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.USERS_READ)),
    session: AsyncSession = Depends(get_session)
):
    """Get an account by ID."""
    return await UserService(session).get_user(user_id)


@router.get("/{user_id}/activity")
async def get_user_activity(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.USERS_READ)),
    session: AsyncSession = Depends(get_session)
):
    """Last login, last activity, login count and account age."""
    return await UserService(session).get_activity(user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    """Update an account."""
    return await UserService(session).update_user(current_user, user_id, body)


@router.delete("/{user_id}", response_model=UserResponse, dependencies=[admin_only])
async def deactivate_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.USERS_DELETE)),
    session: AsyncSession = Depends(get_session)
):
    """Deactivate an account. Accounts are never removed."""
    return await UserService(session).deactivate_user(current_user, user_id)


@router.patch("/{user_id}/activate", response_model=UserResponse, dependencies=[admin_only])
async def activate_user(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    return await UserService(session).activate_user(current_user, user_id)


@router.patch("/{user_id}/role", response_model=UserResponse, dependencies=[admin_only])
async def change_role(
    user_id: uuid.UUID,
    body: RoleChangeRequest,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    """Change an account's role; its permissions reset to the role's set."""
    return await UserService(session).change_role(current_user, user_id, body.role)


@router.get("/{user_id}/permissions", dependencies=[admin_only])
async def get_permissions(
    user_id: uuid.UUID,
    current_user: User = Depends(require_permission(Permission.USERS_READ)),
    session: AsyncSession = Depends(get_session)
):
    user = await UserService(session).get_user(user_id)
    return {"user_id": user.id, "role": user.role, "permissions": user.permissions}


@router.patch("/{user_id}/permissions", response_model=UserResponse, dependencies=[admin_only])
async def update_permissions(
    user_id: uuid.UUID,
    body: PermissionsUpdate,
    current_user: User = Depends(require_permission(Permission.USERS_WRITE)),
    session: AsyncSession = Depends(get_session)
):
    """Override an account's permission list."""
    return await UserService(session).set_permissions(current_user, user_id, body.permissions)
