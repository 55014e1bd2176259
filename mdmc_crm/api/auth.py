"""
Authentication API routes.
"""
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel.ext.asyncio.session import AsyncSession

from mdmc_crm.config import settings
from mdmc_crm.database import get_session
from mdmc_crm.core.exceptions import ExternalServiceError
from mdmc_crm.core.security import generate_secure_token
from mdmc_crm.services.auth_service import AuthService
from mdmc_crm.services.user_service import UserService
from mdmc_crm.services.google_oauth import GoogleOAuthClient, get_google_client
from mdmc_crm.schemas.auth import (
    RegisterRequest, LoginRequest, AuthResponse, RefreshRequest, LogoutRequest,
    AccessTokenResponse, PasswordResetRequest, PasswordResetConfirm, ChangePasswordRequest,
    EmailVerificationRequest, ResendVerificationRequest, GoogleCallbackRequest
)
from mdmc_crm.schemas.common import MessageResponse
from mdmc_crm.schemas.user import UserResponse, ProfileUpdate
from mdmc_crm.api.deps import rate_limit, get_client_info
from mdmc_crm.models.user import User

router = APIRouter(prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])


def _configured_google(client: GoogleOAuthClient = Depends(get_google_client)) -> GoogleOAuthClient:
    if not client.configured:
        raise ExternalServiceError("Google", "Google sign-in is not configured")
    return client


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    session: AsyncSession = Depends(get_session)
):
    """Register a new account."""
    auth_service = AuthService(session)
    client_info = get_client_info(request)
    # In DEV_MODE, also includes _dev_verification_token for testing
    return await auth_service.register(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        role=body.role,
        **client_info
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session)
):
    """Login and get access + refresh tokens."""
    auth_service = AuthService(session)
    return await auth_service.login(body.email, body.password, **get_client_info(request))


@router.post("/admin-login", response_model=AuthResponse)
async def admin_login(
    body: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_session)
):
    """Login restricted to administrator accounts."""
    auth_service = AuthService(session)
    return await auth_service.login(
        body.email, body.password, admin_only=True, **get_client_info(request)
    )


@router.post("/token", response_model=AuthResponse)
async def token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session)
):
    """OAuth2 password-form login (used by the interactive docs)."""
    auth_service = AuthService(session)
    return await auth_service.login(form_data.username, form_data.password, **get_client_info(request))


@router.post("/refresh", response_model=AccessTokenResponse)
async def refresh_token(
    body: RefreshRequest,
    session: AsyncSession = Depends(get_session)
):
    """Get new access token using refresh token."""
    auth_service = AuthService(session)
    return await auth_service.refresh_access_token(body.refresh_token)


@router.post("/forgot-password")
async def forgot_password(
    body: PasswordResetRequest,
    session: AsyncSession = Depends(get_session)
):
    """Request password reset."""
    auth_service = AuthService(session)
    # In DEV_MODE, also includes _dev_reset_token for testing
    return await auth_service.forgot_password(body.email)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: PasswordResetConfirm,
    session: AsyncSession = Depends(get_session)
):
    """Reset password using token."""
    auth_service = AuthService(session)
    await auth_service.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    body: EmailVerificationRequest,
    session: AsyncSession = Depends(get_session)
):
    """Verify email using token."""
    auth_service = AuthService(session)
    await auth_service.verify_email(body.token)
    return MessageResponse(message="Email verified successfully")


@router.get("/verify-email/{token}", response_model=MessageResponse)
async def verify_email_link(
    token: str,
    session: AsyncSession = Depends(get_session)
):
    """Verify email from the link in the verification mail."""
    auth_service = AuthService(session)
    await auth_service.verify_email(token)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification")
async def resend_verification(
    body: ResendVerificationRequest,
    session: AsyncSession = Depends(get_session)
):
    """Resend verification email."""
    auth_service = AuthService(session)
    return await auth_service.resend_verification(body.email)


@router.get("/google")
async def google_auth_url(google: GoogleOAuthClient = Depends(_configured_google)):
    """Consent URL for Google sign-in."""
    state = generate_secure_token(16)
    return {"url": google.get_auth_url(state), "state": state}


@router.get("/google/callback")
async def google_callback_redirect(
    code: str,
    request: Request,
    google: GoogleOAuthClient = Depends(_configured_google),
    session: AsyncSession = Depends(get_session)
):
    """Browser redirect target: signs in and hands the tokens to the frontend."""
    profile = await google.exchange_code(code)
    result = await AuthService(session).login_with_google(profile, **get_client_info(request))
    query = urlencode({"token": result["access_token"], "refresh": result["refresh_token"]})
    return RedirectResponse(f"{settings.FRONTEND_URL}/auth/callback?{query}")


@router.post("/google/callback", response_model=AuthResponse)
async def google_callback(
    body: GoogleCallbackRequest,
    request: Request,
    google: GoogleOAuthClient = Depends(_configured_google),
    session: AsyncSession = Depends(get_session)
):
    """Exchange a Google authorization code for CRM tokens."""
    profile = await google.exchange_code(body.code)
    return await AuthService(session).login_with_google(profile, **get_client_info(request))


# Authenticated routes

@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(rate_limit)):
    """Get the current account."""
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(rate_limit),
    session: AsyncSession = Depends(get_session)
):
    """Update the current account's profile."""
    user_service = UserService(session)
    return await user_service.update_profile(current_user, body)


@router.get("/check")
async def check_auth(current_user: User = Depends(rate_limit)):
    """Confirm the access token and return the account with its permissions."""
    return {
        "is_authenticated": True,
        "user": UserResponse.model_validate(current_user),
        "permissions": current_user.permissions
    }


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    current_user: User = Depends(rate_limit),
    session: AsyncSession = Depends(get_session)
):
    """Change password; every session has to sign in again."""
    auth_service = AuthService(session)
    await auth_service.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    body: LogoutRequest,
    current_user: User = Depends(rate_limit),
    session: AsyncSession = Depends(get_session)
):
    """Logout by revoking the given refresh token."""
    if body.refresh_token:
        await AuthService(session).logout(current_user.id, body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    current_user: User = Depends(rate_limit),
    session: AsyncSession = Depends(get_session)
):
    """Logout from all devices."""
    auth_service = AuthService(session)
    count = await auth_service.logout_all(current_user.id)
    return MessageResponse(message=f"Logged out from {count} devices")
