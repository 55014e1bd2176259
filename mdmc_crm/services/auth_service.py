"""
Authentication service - handles all auth operations.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    verify_token,
    generate_secure_token,
    hash_token
)
from mdmc_crm.core.exceptions import (
    ForbiddenError,
    TokenInvalidError,
    raise_conflict,
    raise_unauthorized,
    raise_not_found,
    raise_validation_error
)
from mdmc_crm.core.permissions import Role
from mdmc_crm.repositories.user_repo import UserRepository
from mdmc_crm.repositories.token_repo import RefreshTokenRepository
from mdmc_crm.models.user import User
from mdmc_crm.schemas.user import UserResponse
from mdmc_crm.services.email_service import get_email_service
from mdmc_crm.services.google_oauth import GoogleProfile

logger = logging.getLogger(__name__)

# Roles an account may pick for itself at registration
SELF_SERVICE_ROLES = (Role.AGENT, Role.VIEWER)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repo = UserRepository(session)
        self.refresh_token_repo = RefreshTokenRepository(session)
        self.email_service = get_email_service()

    async def _issue_tokens(
        self,
        user: User,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> dict:
        access_token = create_access_token(user.id)
        refresh_token = create_refresh_token(user.id)
        refresh_payload = verify_token(refresh_token, "refresh")

        await self.refresh_token_repo.add_for_user(
            user_id=user.id,
            jti=refresh_payload["jti"],
            token=refresh_token,
            user_agent=user_agent,
            ip_address=ip_address
        )

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    def _set_verification_token(self, user: User) -> str:
        raw = generate_secure_token()
        user.email_verification_token_hash = hash_token(raw)
        user.email_verification_expires_at = datetime.utcnow() + timedelta(
            hours=settings.EMAIL_VERIFICATION_TOKEN_EXPIRE_HOURS
        )
        return raw

    async def authenticate(self, token: str) -> User:
        """Resolve a bearer access token to an active account."""
        payload = verify_token(token, "access")

        try:
            user_id = uuid.UUID(payload["user_id"])
        except ValueError:
            raise TokenInvalidError()

        user = await self.user_repo.get(user_id)
        if not user:
            raise_unauthorized("User not found")
        if not user.is_active:
            raise_unauthorized("User account is deactivated")

        await self.user_repo.touch_activity(user)
        return user

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        role: Optional[Role] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> dict:
        """Register a new account and sign it in."""
        role = role or Role.AGENT
        if role not in SELF_SERVICE_ROLES:
            raise ForbiddenError(f"Cannot self-register with role '{role.value}'")

        existing = await self.user_repo.get_by_email(email)
        if existing:
            raise_conflict("User", "email", email)

        user = await self.user_repo.create_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=get_password_hash(password),
            role=role.value
        )
        verification_token = self._set_verification_token(user)
        user.last_login_at = datetime.utcnow()
        user.login_count = 1
        user = await self.user_repo.save(user)
        logger.info("Registered account %s (%s)", user.id, user.role)

        await self.email_service.send_verification_email(
            to=user.email,
            token=verification_token,
            base_url=settings.FRONTEND_URL
        )

        response = {
            "message": "Account registered successfully. Please check your email to verify your account.",
            "user": UserResponse.model_validate(user),
            **await self._issue_tokens(user, user_agent, ip_address)
        }

        # In DEV_MODE, include the token for easy testing
        if settings.DEV_MODE:
            response["_dev_verification_token"] = verification_token

        return response

    async def login(
        self,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        admin_only: bool = False
    ) -> dict:
        """Authenticate with email and password and return tokens."""
        user = await self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("Failed login for %s", email)
            raise_unauthorized("Incorrect email or password")

        if not user.is_active:
            raise_unauthorized("User account is deactivated")
        if admin_only and Role(user.role) != Role.ADMIN:
            raise ForbiddenError("Administrator access required")

        now = datetime.utcnow()
        user.last_login_at = now
        user.last_activity_at = now
        user.login_count += 1
        user = await self.user_repo.save(user)
        logger.info("Account %s logged in", user.id)

        return {
            "user": UserResponse.model_validate(user),
            **await self._issue_tokens(user, user_agent, ip_address)
        }

    async def login_with_google(
        self,
        profile: GoogleProfile,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None
    ) -> dict:
        """
        Sign in with a Google identity.
        Matches on the Google id first, then links an existing account by email,
        otherwise creates a verified agent account.
        """
        user = await self.user_repo.get_by_google_id(profile.provider_id)

        if not user:
            user = await self.user_repo.get_by_email(profile.email)
            if user:
                user.google_id = profile.provider_id
                user.is_verified = True
                if not user.avatar_url:
                    user.avatar_url = profile.avatar_url
                logger.info("Linked Google identity to account %s", user.id)
            else:
                user = await self.user_repo.create_user(
                    first_name=profile.given_name or profile.email.split("@")[0],
                    last_name=profile.family_name or "",
                    email=profile.email,
                    google_id=profile.provider_id,
                    avatar_url=profile.avatar_url,
                    is_verified=True
                )
                logger.info("Created account %s from Google sign-in", user.id)

        if not user.is_active:
            raise_unauthorized("User account is deactivated")

        now = datetime.utcnow()
        user.last_login_at = now
        user.last_activity_at = now
        user.login_count += 1
        user = await self.user_repo.save(user)

        return {
            "user": UserResponse.model_validate(user),
            **await self._issue_tokens(user, user_agent, ip_address)
        }

    async def refresh_access_token(self, refresh_token: str) -> dict:
        """
        Issue a new access token. The refresh token must still be live for an
        active account; it is not rotated.
        """
        payload = verify_token(refresh_token, "refresh")

        stored = await self.refresh_token_repo.get_by_jti(payload["jti"])
        if (
            not stored
            or not stored.is_live
            or stored.token != refresh_token
            or str(stored.user_id) != payload["user_id"]
        ):
            logger.info("Rejected refresh token %s", payload.get("jti"))
            raise_unauthorized("Invalid refresh token")

        user = await self.user_repo.get(stored.user_id)
        if not user or not user.is_active:
            raise_unauthorized("Invalid refresh token")

        return {
            "access_token": create_access_token(user.id),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        }

    async def logout(self, user_id: uuid.UUID, refresh_token: str) -> bool:
        """Revoke one refresh token of the account (single device)."""
        stored = await self.refresh_token_repo.get_by_token(refresh_token)
        if not stored or stored.user_id != user_id or stored.revoked:
            return False
        await self.refresh_token_repo.revoke(stored)
        return True

    async def logout_all(self, user_id: uuid.UUID) -> int:
        """Logout from all devices by revoking all refresh tokens."""
        return await self.refresh_token_repo.revoke_all_for_user(user_id)

    async def forgot_password(self, email: str) -> dict:
        """Initiate password reset flow."""
        response = {
            "message": "If the email exists, a reset link has been sent"
        }

        user = await self.user_repo.get_by_email(email)
        if not user or not user.is_active:
            # Don't reveal if email exists
            return response

        raw = generate_secure_token()
        user.password_reset_token_hash = hash_token(raw)
        user.password_reset_expires_at = datetime.utcnow() + timedelta(
            minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        await self.user_repo.save(user)

        await self.email_service.send_password_reset_email(
            to=user.email,
            token=raw,
            base_url=settings.FRONTEND_URL
        )

        # In DEV_MODE, include the token for easy testing
        if settings.DEV_MODE:
            response["_dev_reset_token"] = raw

        return response

    async def reset_password(self, token: str, new_password: str) -> bool:
        """Reset password using token. Every refresh token is revoked."""
        user = await self.user_repo.get_by_reset_token_hash(hash_token(token))
        if not user:
            raise_validation_error("Invalid or expired reset token")

        user.password_hash = get_password_hash(new_password)
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        await self.refresh_token_repo.revoke_all_for_user(user.id, commit=False)
        await self.user_repo.save(user)
        logger.info("Password reset for account %s", user.id)
        return True

    async def verify_email(self, token: str) -> bool:
        """Verify email using token."""
        user = await self.user_repo.get_by_verification_token_hash(hash_token(token))
        if not user:
            raise_validation_error("Invalid or expired verification token")

        user.is_verified = True
        user.email_verification_token_hash = None
        user.email_verification_expires_at = None
        await self.user_repo.save(user)
        return True

    async def resend_verification(self, email: str) -> dict:
        """Resend verification email."""
        response = {
            "message": "If the email exists and is not verified, a new verification link has been sent"
        }

        user = await self.user_repo.get_by_email(email)
        if not user or user.is_verified:
            return response

        raw = self._set_verification_token(user)
        await self.user_repo.save(user)

        await self.email_service.send_verification_email(
            to=user.email,
            token=raw,
            base_url=settings.FRONTEND_URL
        )

        if settings.DEV_MODE:
            response["_dev_verification_token"] = raw

        return response

    async def change_password(
        self,
        user_id: uuid.UUID,
        current_password: str,
        new_password: str
    ) -> bool:
        """Change password for logged-in account. Every refresh token is revoked."""
        user = await self.user_repo.get(user_id)
        if not user:
            raise_not_found("User")

        if user.password_hash and not verify_password(current_password, user.password_hash):
            raise_unauthorized("Current password is incorrect")

        user.password_hash = get_password_hash(new_password)
        await self.refresh_token_repo.revoke_all_for_user(user.id, commit=False)
        await self.user_repo.save(user)
        logger.info("Password changed for account %s", user.id)
        return True
