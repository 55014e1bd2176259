"""
Authentication schemas.
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from mdmc_crm.core.permissions import Role
from mdmc_crm.schemas.user import UserResponse


class RegisterRequest(BaseModel):
    """Account registration request."""
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: Optional[Role] = None

    class Config:
        json_schema_extra = {
            "example": {
                "first_name": "Jordan",
                "last_name": "Lee",
                "email": "jordan@mdmcmusicads.com",
                "password": "securepassword123"
            }
        }


class LoginRequest(BaseModel):
    """Account login request."""
    email: EmailStr
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "email": "jordan@mdmcmusicads.com",
                "password": "securepassword123"
            }
        }


class TokenResponse(BaseModel):
    """Token pair issued on login."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class AuthResponse(TokenResponse):
    """Login response: tokens plus the account."""
    user: UserResponse


class RefreshRequest(BaseModel):
    """Refresh token request."""
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class AccessTokenResponse(BaseModel):
    """New access token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class PasswordResetRequest(BaseModel):
    """Request password reset."""
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Confirm password reset with token."""
    token: str
    new_password: str = Field(min_length=8, max_length=128)


class ChangePasswordRequest(BaseModel):
    """Change password for logged-in account."""
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)


class EmailVerificationRequest(BaseModel):
    """Verify email with token."""
    token: str


class ResendVerificationRequest(BaseModel):
    """Resend verification email."""
    email: EmailStr


class GoogleCallbackRequest(BaseModel):
    """Authorization code returned by Google."""
    code: str
    state: Optional[str] = None
