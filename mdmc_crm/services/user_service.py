"""
User service - profile and account administration.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, List

from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.core.exceptions import raise_not_found, raise_forbidden, raise_conflict, raise_validation_error
from mdmc_crm.core.permissions import ROLE_PERMISSIONS, Role, MANAGER_AND_ABOVE, is_admin, permissions_for_role
from mdmc_crm.core.security import get_password_hash
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.repositories.token_repo import RefreshTokenRepository
from mdmc_crm.models.user import User
from mdmc_crm.schemas.user import ProfileUpdate, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

ADMIN_ONLY_FIELDS = ("role", "permissions", "is_active")


class UserService:
    """Service for account operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repo = UserRepository(session)
        self.refresh_token_repo = RefreshTokenRepository(session)

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """Get account profile."""
        user = await self.user_repo.get(user_id)
        if not user:
            raise_not_found("User", str(user_id))
        return user

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Update the caller's own profile fields."""
        update_data = data.model_dump(exclude_unset=True)
        update_data["updated_by"] = user.id
        return await self.user_repo.update(user, update_data)

    async def list_users(
        self,
        role: Optional[Role] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        sort: Optional[str] = None,
        order_desc: bool = True
    ) -> dict:
        return await self.user_repo.search(
            role=role.value if role else None,
            is_active=is_active,
            search=search,
            page=page,
            limit=limit,
            order_by=sort,
            order_desc=order_desc
        )

    async def get_user(self, user_id: uuid.UUID) -> User:
        return await self.get_profile(user_id)

    async def create_user(self, actor: User, data: UserCreate) -> User:
        """Create an account on behalf of someone else (admin only)."""
        if not is_admin(actor):
            raise_forbidden("Only administrators can create accounts")

        if await self.user_repo.get_by_email(data.email):
            raise_conflict("User", "email", data.email)

        user = await self.user_repo.create_user(
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            password_hash=get_password_hash(data.password),
            role=data.role.value,
            phone=data.phone,
            timezone=data.timezone,
            is_verified=data.is_verified,
            created_by=actor.id
        )
        logger.info("Account %s created by %s with role %s", user.id, actor.id, user.role)
        return user

    async def update_user(self, actor: User, user_id: uuid.UUID, data: UserUpdate) -> User:
        """
        Update an account. The caller must be the account itself or a
        manager/admin; role, permissions and activation are admin-only.
        """
        target = await self.get_user(user_id)

        if actor.id != target.id and Role(actor.role) not in MANAGER_AND_ABOVE:
            raise_forbidden("You can only update your own account")
        if Role(actor.role) == Role.MANAGER and is_admin(target) and actor.id != target.id:
            raise_forbidden("Managers cannot modify administrator accounts")

        update_data = data.model_dump(exclude_unset=True)
        if not is_admin(actor) and any(field in update_data for field in ADMIN_ONLY_FIELDS):
            raise_forbidden("Only administrators can change roles, permissions or activation")

        if "email" in update_data and update_data["email"]:
            email = update_data["email"].strip().lower()
            existing = await self.user_repo.get_by_email(email)
            if existing and existing.id != target.id:
                raise_conflict("User", "email", email)
            update_data["email"] = email

        if "permissions" in update_data:
            update_data["permissions"] = self._check_permissions(update_data["permissions"])
        if "role" in update_data:
            new_role = Role(update_data["role"])
            update_data["role"] = new_role.value
            if "permissions" not in update_data:
                update_data["permissions"] = permissions_for_role(new_role)

        if update_data.get("is_active") is False:
            if actor.id == target.id:
                raise_validation_error("You cannot deactivate your own account", field="is_active")
            await self.refresh_token_repo.revoke_all_for_user(target.id, commit=False)

        update_data["updated_by"] = actor.id
        return await self.user_repo.update(target, update_data)

    async def deactivate_user(self, actor: User, user_id: uuid.UUID) -> User:
        """Deactivate an account and revoke its refresh tokens."""
        if actor.id == user_id:
            raise_validation_error("You cannot deactivate your own account")

        target = await self.get_user(user_id)
        target.is_active = False
        target.updated_by = actor.id
        await self.refresh_token_repo.revoke_all_for_user(target.id, commit=False)
        target = await self.user_repo.save(target)
        logger.info("Account %s deactivated by %s", target.id, actor.id)
        return target

    async def activate_user(self, actor: User, user_id: uuid.UUID) -> User:
        target = await self.get_user(user_id)
        target.is_active = True
        target.updated_by = actor.id
        return await self.user_repo.save(target)

    async def change_role(self, actor: User, user_id: uuid.UUID, role: Role) -> User:
        """Change an account's role and reset its permissions to that role's set."""
        if actor.id == user_id:
            raise_validation_error("You cannot change your own role")

        target = await self.get_user(user_id)
        previous = target.role
        target.role = role.value
        target.permissions = permissions_for_role(role)
        target.updated_by = actor.id
        target = await self.user_repo.save(target)
        logger.info("Account %s role changed %s -> %s by %s", target.id, previous, target.role, actor.id)
        return target

    @staticmethod
    def _check_permissions(permissions: List[str]) -> List[str]:
        unknown = sorted(set(permissions) - set(ROLE_PERMISSIONS[Role.ADMIN]))
        if unknown:
            raise_validation_error(f"Unknown permissions: {', '.join(unknown)}", field="permissions")
        return list(dict.fromkeys(permissions))

    async def set_permissions(self, actor: User, user_id: uuid.UUID, permissions: List[str]) -> User:
        """Replace an account's permission list with known permission names."""
        permissions = self._check_permissions(permissions)

        target = await self.get_user(user_id)
        target.permissions = permissions
        target.updated_by = actor.id
        return await self.user_repo.save(target)

    async def bulk_update(self, actor: User, user_ids: List[uuid.UUID], data: UserUpdate) -> dict:
        """
        Apply one update to many accounts (admin only). Fails as a whole if any
        account is missing. A role change resets permissions unless new ones are
        given; deactivation revokes refresh tokens.
        """
        if not is_admin(actor):
            raise_forbidden("Only administrators can bulk update accounts")

        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            raise_validation_error("No fields to update", field="updates")
        if "email" in update_data:
            raise_validation_error("Email cannot be bulk updated", field="email")

        unique_ids = list(dict.fromkeys(user_ids))
        if actor.id in unique_ids and ("role" in update_data or update_data.get("is_active") is False):
            raise_validation_error("You cannot change your own role or deactivate yourself", field="user_ids")

        if "permissions" in update_data:
            update_data["permissions"] = self._check_permissions(update_data["permissions"])
        if "role" in update_data:
            new_role = Role(update_data["role"])
            update_data["role"] = new_role.value
            update_data.setdefault("permissions", permissions_for_role(new_role))

        users = await self.user_repo.get_many(unique_ids)
        if len(users) != len(unique_ids):
            found = {user.id for user in users}
            raise_not_found("User", ", ".join(str(i) for i in unique_ids if i not in found))

        for user in users:
            for field, value in update_data.items():
                setattr(user, field, value)
            user.updated_by = actor.id
            if update_data.get("is_active") is False:
                await self.refresh_token_repo.revoke_all_for_user(user.id, commit=False)
        await self.user_repo.save_all(users)

        logger.info("Bulk updated %d accounts by %s", len(users), actor.id)
        return {"matched": len(users), "modified": len(users)}

    async def get_activity(self, user_id: uuid.UUID) -> dict:
        """Login and activity summary for one account."""
        user = await self.get_user(user_id)
        return {
            "user": {
                "id": user.id,
                "name": user.full_name,
                "email": user.email,
                "role": user.role
            },
            "stats": {
                "last_login_at": user.last_login_at,
                "last_activity_at": user.last_activity_at,
                "login_count": user.login_count,
                "account_age_days": (datetime.utcnow() - user.created_at).days
            }
        }

    async def get_stats(self) -> dict:
        """Account statistics for administrators."""
        total = await self.user_repo.count()
        active = await self.user_repo.count({"is_active": True})
        verified = await self.user_repo.count({"is_verified": True})
        new_accounts = await self.user_repo.count_created_since(datetime.utcnow() - timedelta(days=30))
        total_logins, avg_logins = await self.user_repo.login_totals()

        return {
            "total": total,
            "active": active,
            "inactive": total - active,
            "verified": verified,
            "new_last_30_days": new_accounts,
            "by_role": {role: count for role, count in await self.user_repo.count_by_role()},
            "total_logins": int(total_logins or 0),
            "avg_logins": round(float(avg_logins or 0), 1)
        }
