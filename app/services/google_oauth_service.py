"""
Google OAuth 2.0 sign-in (authorization code flow).
"""

import logging
import secrets
import time
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from app.config.settings import get_settings
from app.repositories.redis_repository import RedisRepository

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
STATE_TTL_SECONDS = 600


class GoogleOAuthError(Exception):
    """Raised when Google rejects the code exchange or the state is invalid."""

    pass


class OAuthState(BaseModel):
    created_at: float


class GoogleUserInfo(BaseModel):
    email: str
    name: str | None = None
    email_verified: bool = False


class GoogleOAuthService:
    """
    Builds the consent URL and exchanges the callback code for the Google profile.

    The anti-CSRF state is kept in Redis for STATE_TTL_SECONDS and can be
    consumed once.
    """

    def __init__(self):
        self.settings = get_settings()
        self.timeout = 15.0
        self.state_repo = RedisRepository[OAuthState](OAuthState, prefix="oauth_state")

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.GOOGLE_CLIENT_ID and self.settings.GOOGLE_CLIENT_SECRET)

    def build_authorization_url(self) -> str:
        state = secrets.token_urlsafe(24)
        self.state_repo.set(state, OAuthState(created_at=time.time()), expiration=STATE_TTL_SECONDS)

        params = {
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "redirect_uri": self.settings.GOOGLE_REDIRECT_URI,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "offline",
            "prompt": "select_account",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def consume_state(self, state: str) -> bool:
        if not state or not self.state_repo.exists(state):
            return False
        self.state_repo.delete(state)
        return True

    async def exchange_code(self, code: str) -> GoogleUserInfo:
        """
        Exchange an authorization code for the user's Google profile.

        Raises:
            GoogleOAuthError: If Google rejects the code or the email is unverified
        """
        payload = {
            "code": code,
            "client_id": self.settings.GOOGLE_CLIENT_ID,
            "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": self.settings.GOOGLE_REDIRECT_URI,
            "grant_type": "authorization_code",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_response = await client.post(GOOGLE_TOKEN_URL, data=payload)
                token_response.raise_for_status()
                tokens: Dict[str, Any] = token_response.json()

                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {tokens['access_token']}"},
                )
                userinfo_response.raise_for_status()
                profile = GoogleUserInfo.model_validate(userinfo_response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Google OAuth HTTP {e.response.status_code}: {e.response.text}")
            raise GoogleOAuthError("Google rejected the authorization code") from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Google OAuth exchange failed: {e}")
            raise GoogleOAuthError(f"Google sign-in failed: {e}") from e

        if not profile.email_verified:
            raise GoogleOAuthError("Google account email is not verified")

        return profile
