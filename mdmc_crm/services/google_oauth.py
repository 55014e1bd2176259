"""
Google OAuth2 sign-in.
Builds the consent URL and exchanges an authorization code for the account profile.
"""
import logging
from typing import Optional, Dict, Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from mdmc_crm.config import settings
from mdmc_crm.core.exceptions import ExternalServiceError, UnauthorizedError

logger = logging.getLogger(__name__)


class GoogleProfile(BaseModel):
    """Identity returned by Google after a successful code exchange."""
    provider_id: str
    email: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    avatar_url: Optional[str] = None


class GoogleOAuthClient:
    """Authorization-code flow against Google's OAuth2 endpoints."""

    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
    SCOPES = ["openid", "email", "profile"]

    def __init__(
        self,
        client_id: str = None,
        client_secret: str = None,
        redirect_uri: str = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_auth_url(self, state: str) -> str:
        """URL the browser is sent to for consent."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.SCOPES),
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{self.AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleProfile:
        """Trade an authorization code for the signed-in Google profile."""
        async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
            token_data = await self._post_token(client, code)
            info = await self._get_userinfo(client, token_data["access_token"])

        if not info.get("email"):
            raise UnauthorizedError("Google account has no email address")

        return GoogleProfile(
            provider_id=str(info["sub"]),
            email=info["email"],
            given_name=info.get("given_name"),
            family_name=info.get("family_name"),
            avatar_url=info.get("picture"),
        )

    async def _post_token(self, client: httpx.AsyncClient, code: str) -> Dict[str, Any]:
        try:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"}
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError("Google", str(e))

        if response.status_code == 400:
            logger.info("Google rejected authorization code: %s", response.text)
            raise UnauthorizedError("Invalid Google authorization code")
        if response.status_code != 200:
            raise ExternalServiceError("Google", f"token exchange returned {response.status_code}")
        return response.json()

    async def _get_userinfo(self, client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
        try:
            response = await client.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError("Google", str(e))

        if response.status_code != 200:
            raise ExternalServiceError("Google", f"userinfo returned {response.status_code}")
        return response.json()


def get_google_client() -> GoogleOAuthClient:
    return GoogleOAuthClient()
