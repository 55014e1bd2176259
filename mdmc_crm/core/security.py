"""
Security utilities for the MDMC CRM API.
Access/refresh JWTs, bcrypt password hashing and one-time token helpers.
"""
from datetime import datetime, timedelta
from typing import Optional, Literal
import hashlib
import uuid
import secrets

import jwt
import bcrypt

from mdmc_crm.config import settings
from mdmc_crm.core.exceptions import TokenExpiredError, TokenInvalidError


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. Accounts without a password never match."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


# Token types
TokenType = Literal["access", "refresh"]


def _secret_for(token_type: TokenType) -> str:
    return settings.JWT_REFRESH_SECRET if token_type == "refresh" else settings.JWT_SECRET


def create_token(
    user_id,
    token_type: TokenType = "access",
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed JWT for an account.

    Args:
        user_id: Account id, stored as ``user_id`` in the payload
        token_type: 'access' or 'refresh' (each kind has its own secret)
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT string
    """
    now = datetime.utcnow()
    if expires_delta:
        expire = now + expires_delta
    elif token_type == "refresh":
        expire = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "user_id": str(user_id),
        "type": token_type,
        "exp": expire,
        "iat": now,
        "jti": str(uuid.uuid4())  # Unique token ID for revocation
    }
    return jwt.encode(payload, _secret_for(token_type), algorithm=settings.ALGORITHM)


def create_access_token(user_id, expires_delta: Optional[timedelta] = None) -> str:
    """Create an access token."""
    return create_token(user_id, token_type="access", expires_delta=expires_delta)


def create_refresh_token(user_id, expires_delta: Optional[timedelta] = None) -> str:
    """Create a refresh token."""
    return create_token(user_id, token_type="refresh", expires_delta=expires_delta)


def verify_token(token: str, token_type: TokenType = "access") -> dict:
    """
    Decode a token and check its kind.

    Raises:
        TokenExpiredError: signature is valid but ``exp`` has passed
        TokenInvalidError: bad signature, malformed, wrong kind or no user_id
    """
    label = "Refresh token" if token_type == "refresh" else "Token"
    try:
        payload = jwt.decode(token, _secret_for(token_type), algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError(label)
    except jwt.InvalidTokenError:
        raise TokenInvalidError(label)

    if payload.get("type") != token_type or not payload.get("user_id"):
        raise TokenInvalidError(label)
    return payload


def generate_secure_token(length: int = 32) -> str:
    """Generate a random hex token for password reset and email verification."""
    return secrets.token_hex(length)


def hash_token(token: str) -> str:
    """SHA-256 digest stored in place of a one-time token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
